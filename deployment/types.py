import click
from eth_utils import is_address, to_checksum_address


class _BoundedNumber(click.ParamType):
    cast = float
    description = "a number"

    def __init__(self, lower_bound, inclusive=True):
        self.lower_bound = lower_bound
        self.inclusive = inclusive

    def convert(self, value, param, ctx):
        try:
            number = self.cast(value)
        except (TypeError, ValueError):
            self.fail(f"{value} is not {self.description}", param, ctx)
        too_small = number < self.lower_bound if self.inclusive else number <= self.lower_bound
        if too_small:
            relation = "at least" if self.inclusive else "greater than"
            self.fail(f"{value} must be {relation} {self.lower_bound}", param, ctx)
        return number


class MinInt(_BoundedNumber):
    """Whole number with a minimum, e.g. block confirmations."""

    name = "minint"
    cast = int
    description = "a valid integer"


class Seconds(_BoundedNumber):
    name = "seconds"
    description = "a number of seconds"

    def __init__(self):
        super().__init__(0, inclusive=False)


class ChecksumAddress(click.ParamType):
    name = "checksum_address"

    def convert(self, value, param, ctx):
        if not is_address(value):
            self.fail(f"Invalid ethereum address: {value}", param, ctx)
        return to_checksum_address(value)
