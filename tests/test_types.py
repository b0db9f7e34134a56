import click
import pytest

from deployment.types import ChecksumAddress, MinInt, Seconds

from conftest import WETH


def test_min_int():
    assert MinInt(1).convert("3", None, None) == 3
    with pytest.raises(click.BadParameter, match="at least 1"):
        MinInt(1).convert("0", None, None)
    with pytest.raises(click.BadParameter, match="not a valid integer"):
        MinInt(1).convert("three", None, None)


def test_seconds():
    assert Seconds().convert("2.5", None, None) == 2.5
    with pytest.raises(click.BadParameter):
        Seconds().convert("0", None, None)
    with pytest.raises(click.BadParameter):
        Seconds().convert("soon", None, None)


def test_checksum_address():
    assert ChecksumAddress().convert(WETH.lower(), None, None) == WETH
    with pytest.raises(click.BadParameter, match="Invalid ethereum address"):
        ChecksumAddress().convert("0x1234", None, None)
