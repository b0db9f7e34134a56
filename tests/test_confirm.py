import pytest
from web3.constants import ADDRESS_ZERO

from deployment.confirm import _confirm_resolution, _contains_zero_address

from conftest import WETH


@pytest.fixture
def answers(monkeypatch):
    prompts = list()
    replies = list()

    def fake_input(prompt):
        prompts.append(prompt)
        return replies.pop(0)

    monkeypatch.setattr("builtins.input", fake_input)
    return prompts, replies


def test_contains_zero_address():
    assert _contains_zero_address([WETH, [1, ADDRESS_ZERO]])
    assert not _contains_zero_address([WETH, 0, "0x"])


def test_confirm_resolution(answers, capsys):
    prompts, replies = answers
    replies.append("y")
    _confirm_resolution([WETH, 42], "deploy Token")
    assert prompts == ["deploy Token Y/N? "]
    output = capsys.readouterr().out
    assert f"[0] {WETH}" in output
    assert "[1] 42" in output


def test_confirm_zero_address(answers):
    prompts, replies = answers
    replies.extend(["y", "y"])
    _confirm_resolution([ADDRESS_ZERO], "proxy SwapX")
    assert len(prompts) == 2
    assert "Zero Address" in prompts[1]


def test_declined_step_aborts(answers, capsys):
    _, replies = answers
    replies.append("N")
    with pytest.raises(SystemExit):
        _confirm_resolution([], "deploy LogicV1")
    assert "Aborting deployment!" in capsys.readouterr().out
