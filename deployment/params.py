import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, List, NamedTuple

from eth_typing import ChecksumAddress
from web3.constants import ADDRESS_ZERO

from deployment.exceptions import DeploymentConfigError, PlanValidationError
from deployment.networks import NetworkProfile


class VariableContext:
    """What a variable may refer to when it is declared at a given step."""

    def __init__(
        self,
        profile: NetworkProfile,
        step_name: str,
        produced: typing.Sequence[str],
        contract_names: typing.Sequence[str],
        constants: typing.Dict[str, Any] = None,
    ):
        self.profile = profile
        self.step_name = step_name
        self.produced = list(produced)
        self.contract_names = list(contract_names)
        self.constants = constants or dict()


class ResolutionContext(NamedTuple):
    """Addresses produced so far in a run, keyed by contract name."""

    addresses: typing.Dict[str, ChecksumAddress]
    deployer: ChecksumAddress

    @classmethod
    def placeholder(cls, contract_names: typing.Iterable[str]) -> "ResolutionContext":
        # eager validation - nothing is deployed yet
        return cls(addresses={name: ADDRESS_ZERO for name in contract_names}, deployer=ADDRESS_ZERO)


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self, context: ResolutionContext) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self, context: ResolutionContext) -> Any:
        return context.deployer

    def __repr__(self):
        return "$deployer"


class Constant(Variable):
    """
    An upper case name. Network dependency addresses take precedence over
    the plan's own constants so the same plan can target every network.
    """

    def __init__(self, constant_name: str, context: VariableContext):
        self.constant_name = constant_name
        if context.profile.has_dependency(constant_name):
            # raises for placeholder (empty) addresses
            self.constant_value = context.profile.dependency(constant_name)
        elif constant_name in context.constants:
            self.constant_value = context.constants[constant_name]
        else:
            raise PlanValidationError(
                f"Constant '{constant_name}' not found in network profile "
                f"'{context.profile.network_id}' or deployment file.",
                step=context.step_name,
            )

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self, context: ResolutionContext) -> Any:
        return self.constant_value

    def __repr__(self):
        return f"${self.constant_name}"


class ContractName(Variable):
    """The latest address produced under a contract name by an earlier step."""

    def __init__(self, contract_name: str, context: VariableContext):
        if contract_name not in context.produced:
            if contract_name in context.contract_names:
                raise PlanValidationError(
                    f"Forward reference to {contract_name}; it is not deployed "
                    f"before this step",
                    step=context.step_name,
                )
            raise PlanValidationError(
                f"Contract name {contract_name} not found", step=context.step_name
            )
        self.contract_name = contract_name

    def resolve(self, context: ResolutionContext) -> Any:
        try:
            return context.addresses[self.contract_name]
        except KeyError:
            raise DeploymentConfigError(f"{self.contract_name} has not been deployed")

    def __repr__(self):
        return f"${self.contract_name}"


def _resolve_param(value: Any, context: ResolutionContext) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v, context) for v in value]

    if isinstance(value, Variable):
        return value.resolve(context)

    return value  # literally a value


def _resolve_params(parameters: typing.Sequence[Any], context: ResolutionContext) -> List[Any]:
    return [_resolve_param(value, context) for value in parameters]


def _variable_from_value(variable: str, context: VariableContext) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX) :]
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return ContractName(variable, context)


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, variable_context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


def _process_raw_values(values: Any, variable_context: VariableContext) -> List[Any]:
    """
    Accepts positional (list) or named (mapping) parameters. Names of a mapping
    are not kept here; see `_param_names`.
    """
    if values is None:
        return list()
    if isinstance(values, dict):
        values = list(OrderedDict(values).values())
    elif isinstance(values, tuple):
        values = list(values)
    if not isinstance(values, list):
        raise PlanValidationError(
            f"Malformed parameters: expected a list or mapping, got {values!r}",
            step=variable_context.step_name,
        )
    return [_process_raw_value(value, variable_context) for value in values]


def _param_names(values: Any) -> typing.Optional[typing.Tuple[str, ...]]:
    """Returns the parameter names of named (mapping) parameters, in file order."""
    if isinstance(values, dict):
        return tuple(str(name) for name in OrderedDict(values))
    return None
