import typing
from enum import Enum
from pathlib import Path
from typing import Any, FrozenSet, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from eth_utils import is_address, to_checksum_address

from deployment.artifacts import ArtifactSource, UnsafeAllow
from deployment.constants import DEFAULT_INITIALIZER, PROXY_NAME
from deployment.exceptions import (
    DeploymentConfigError,
    DeploymentError,
    PlanValidationError,
)
from deployment.networks import NetworkProfile
from deployment.params import (
    Constant,
    ResolutionContext,
    Variable,
    VariableContext,
    _param_names,
    _process_raw_value,
    _process_raw_values,
    _resolve_param,
    _resolve_params,
)
from deployment.utils import _load_yaml

CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"
CONTRACT_PROXY_PARAMETER_KEY = "proxy"
CONTRACT_UPGRADE_PARAMETER_KEY = "upgrade"


class StepKind(Enum):
    DEPLOY = "deploy"
    PROXY = "proxy"
    UPGRADE = "upgrade"


class RunMode(Enum):
    FRESH = "fresh"
    UPGRADE = "upgrade"


class DeploymentStep(NamedTuple):
    """
    One transaction of a plan. `args` are constructor arguments for DEPLOY and
    initializer arguments for PROXY; values may hold unresolved variables.
    `arg_names` is set when the arguments were given by name.
    """

    kind: StepKind
    contract_name: str
    args: Sequence[Any] = ()
    arg_names: Optional[Tuple[str, ...]] = None
    initializer: Optional[str] = None
    initial_owner: Any = None
    proxy_address: Any = None
    unsafe_allow: FrozenSet[UnsafeAllow] = frozenset()

    @property
    def name(self) -> str:
        return f"{self.kind.value} {self.contract_name}"


def deploy_step(contract_name: str, constructor: Any = None) -> DeploymentStep:
    return DeploymentStep(
        kind=StepKind.DEPLOY, contract_name=contract_name, args=constructor or list()
    )


def proxy_step(
    contract_name: str,
    initializer_args: Any = None,
    initializer: Optional[str] = DEFAULT_INITIALIZER,
    initial_owner: Any = None,
    unsafe_allow: Iterable[str] = (),
) -> DeploymentStep:
    return DeploymentStep(
        kind=StepKind.PROXY,
        contract_name=contract_name,
        args=initializer_args or list(),
        initializer=initializer,
        initial_owner=initial_owner,
        unsafe_allow=UnsafeAllow.from_names(unsafe_allow),
    )


def upgrade_step(
    contract_name: str, proxy_address: Any, unsafe_allow: Iterable[str] = ()
) -> DeploymentStep:
    return DeploymentStep(
        kind=StepKind.UPGRADE,
        contract_name=contract_name,
        proxy_address=proxy_address,
        unsafe_allow=UnsafeAllow.from_names(unsafe_allow),
    )


class DeploymentPlan:
    """
    Ordered steps for one network. Construction processes every variable and
    rejects a step that references an address no earlier step produces.
    """

    def __init__(
        self,
        steps: typing.Sequence[DeploymentStep],
        profile: NetworkProfile,
        constants: typing.Dict[str, Any] = None,
    ):
        self.profile = profile
        self.constants = constants or dict()
        self.steps = self._process_steps(steps)

    @property
    def contract_names(self) -> List[str]:
        names = list()
        for step in self.steps:
            if step.contract_name not in names:
                names.append(step.contract_name)
        return names

    @property
    def mode(self) -> RunMode:
        if any(step.kind is StepKind.UPGRADE for step in self.steps):
            return RunMode.UPGRADE
        return RunMode.FRESH

    def _process_steps(self, steps: typing.Sequence[DeploymentStep]) -> List[DeploymentStep]:
        if not steps:
            raise PlanValidationError("Deployment plan has no steps.")

        contract_names = [step.contract_name for step in steps]
        produced = list()
        seen = set()
        processed = list()
        for step in steps:
            if (step.kind, step.contract_name) in seen:
                raise PlanValidationError(f"Duplicate step '{step.name}'", step=step.name)
            seen.add((step.kind, step.contract_name))

            if step.kind is not StepKind.DEPLOY:
                if any(s.kind is not StepKind.DEPLOY for s in processed):
                    raise PlanValidationError(
                        "A plan deploys or upgrades at most one proxy", step=step.name
                    )
            if step.kind is not StepKind.DEPLOY and step.contract_name not in produced:
                raise PlanValidationError(
                    f"{step.contract_name} must be deployed by an earlier step", step=step.name
                )

            context = VariableContext(
                profile=self.profile,
                step_name=step.name,
                produced=produced,
                contract_names=contract_names,
                constants=self.constants,
            )
            step = step._replace(
                args=_process_raw_values(step.args, context),
                arg_names=_param_names(step.args) or step.arg_names,
                initial_owner=_process_raw_value(step.initial_owner, context),
                proxy_address=_process_raw_value(step.proxy_address, context),
            )
            if step.kind is StepKind.UPGRADE:
                self._check_address(step, step.proxy_address, "the existing proxy address")
            elif step.kind is StepKind.PROXY and step.initial_owner is not None:
                self._check_address(step, step.initial_owner, "an initial owner address")

            processed.append(step)
            if step.kind is StepKind.DEPLOY:
                produced.append(step.contract_name)
        return processed

    @staticmethod
    def _check_address(step: DeploymentStep, value: Any, description: str) -> None:
        """
        Constants are known now and must be addresses. `$deployer` and
        `$ContractName` always resolve to addresses at run time.
        """
        if isinstance(value, Constant):
            value = value.constant_value
        elif isinstance(value, Variable):
            return
        if not value or not is_address(value):
            raise PlanValidationError(
                f"{step.name} needs {description}, got '{value}'",
                step=step.name,
                inputs={"value": value},
            )

    def resolve_args(self, step: DeploymentStep, context: ResolutionContext) -> List[Any]:
        return _resolve_params(step.args, context)

    def resolve_address(self, value: Any, context: ResolutionContext) -> Optional[str]:
        resolved = _resolve_param(value, context)
        if resolved is None:
            return None
        if not is_address(resolved):
            raise PlanValidationError(f"'{resolved}' is not an address", inputs={"value": resolved})
        return to_checksum_address(resolved)

    def validate(self, artifacts: ArtifactSource, proxy_artifact_name: str = PROXY_NAME) -> None:
        """
        Checks every step against its artifacts with placeholder addresses,
        so mismatched arguments and unsafe logic fail before the first transaction.
        """
        context = ResolutionContext.placeholder(self.contract_names)
        for step in self.steps:
            try:
                artifact = artifacts.get(step.contract_name)
                args = self.resolve_args(step, context)
                if step.kind is StepKind.DEPLOY:
                    if step.arg_names is not None:
                        artifact.check_input_names(step.arg_names)
                    artifact.validate_constructor_args(args)
                elif step.kind is StepKind.PROXY:
                    artifact.check_unsafe_opcodes(step.unsafe_allow)
                    init_data = self._validate_initializer(step, artifact, args)
                    owner = self.resolve_address(step.initial_owner, context) or context.deployer
                    proxy_artifact = artifacts.get(proxy_artifact_name)
                    proxy_artifact.validate_constructor_args(
                        [context.addresses[step.contract_name], owner, init_data]
                    )
                else:
                    self.resolve_address(step.proxy_address, context)
                    artifact.check_unsafe_opcodes(step.unsafe_allow)
            except DeploymentError as e:
                e.step = e.step or step.name
                raise

    @staticmethod
    def _validate_initializer(step: DeploymentStep, artifact, args: List[Any]) -> bytes:
        if not step.initializer:
            if args:
                raise DeploymentConfigError("Initializer arguments given without an initializer")
            return b""
        init_data = artifact.encode_call(step.initializer, args)
        if step.arg_names is not None:
            artifact.check_input_names(step.arg_names, method_name=step.initializer)
        return init_data

    def with_unsafe_allow(self, allowed: FrozenSet[UnsafeAllow]) -> "DeploymentPlan":
        """Returns a copy whose proxy and upgrade steps also accept `allowed`."""
        steps = [
            step
            if step.kind is StepKind.DEPLOY
            else step._replace(unsafe_allow=step.unsafe_allow | allowed)
            for step in self.steps
        ]
        # processed values pass through unchanged
        return DeploymentPlan(steps=steps, profile=self.profile, constants=self.constants)

    @classmethod
    def from_config(
        cls,
        config: typing.Dict,
        profile: NetworkProfile,
        constants: typing.Dict[str, Any] = None,
    ) -> "DeploymentPlan":
        deployment = config.get("deployment") or dict()
        network_id = deployment.get("network")
        if network_id and network_id != profile.network_id:
            raise DeploymentConfigError(
                f"network in params file ({network_id}) does not match "
                f"the selected network ({profile.network_id})."
            )

        contracts = config.get("contracts")
        if not contracts:
            raise DeploymentConfigError("Deployment parameters file missing 'contracts' field.")

        steps = list()
        for contract_info in contracts:
            if isinstance(contract_info, str):
                steps.append(deploy_step(contract_info))
                continue
            if not isinstance(contract_info, dict) or len(contract_info) != 1:
                raise DeploymentConfigError("Malformed deployment parameters YAML.")

            contract_name = list(contract_info.keys())[0]  # only one entry
            contract_data = contract_info[contract_name] or dict()
            steps.extend(cls._steps_from_config(contract_name, contract_data))

        plan_constants = dict(config.get("constants") or {})
        plan_constants.update(constants or {})
        return cls(steps=steps, profile=profile, constants=plan_constants)

    @staticmethod
    def _steps_from_config(contract_name: str, contract_data: typing.Dict) -> List[DeploymentStep]:
        steps = [deploy_step(contract_name, contract_data.get(CONTRACT_CONSTRUCTOR_PARAMETER_KEY))]

        if CONTRACT_PROXY_PARAMETER_KEY in contract_data:
            proxy_data = contract_data[CONTRACT_PROXY_PARAMETER_KEY] or dict()
            steps.append(
                proxy_step(
                    contract_name,
                    initializer_args=proxy_data.get("initializer_args"),
                    initializer=proxy_data.get("initializer", DEFAULT_INITIALIZER),
                    initial_owner=proxy_data.get("initial_owner"),
                    unsafe_allow=proxy_data.get("unsafe_allow", ()),
                )
            )

        if CONTRACT_UPGRADE_PARAMETER_KEY in contract_data:
            if CONTRACT_PROXY_PARAMETER_KEY in contract_data:
                raise DeploymentConfigError(
                    f"{contract_name} cannot both deploy a new proxy and upgrade an existing one."
                )
            upgrade_data = contract_data[CONTRACT_UPGRADE_PARAMETER_KEY] or dict()
            steps.append(
                upgrade_step(
                    contract_name,
                    proxy_address=upgrade_data.get("proxy_address"),
                    unsafe_allow=upgrade_data.get("unsafe_allow", ()),
                )
            )
        return steps

    @classmethod
    def from_yaml(
        cls,
        filepath: Path,
        profile: NetworkProfile,
        constants: typing.Dict[str, Any] = None,
    ) -> "DeploymentPlan":
        print(f"Processing deployment parameters from {filepath}...")
        return cls.from_config(_load_yaml(filepath), profile=profile, constants=constants)
