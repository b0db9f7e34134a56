import json

import pytest
from eth_utils import function_signature_to_4byte_selector, to_checksum_address
from web3.auto import w3

from deployment.artifacts import (
    ArtifactSource,
    ContractArtifact,
    UnsafeAllow,
    find_unsafe_opcodes,
)
from deployment.exceptions import (
    ArgumentMismatchError,
    DeploymentConfigError,
    UnsafeOperationError,
)

from conftest import (
    DELEGATING_BYTECODE,
    LOGIC_V1_BYTECODE,
    TOKEN_CONSTRUCTOR_ABI,
    WETH,
)


def test_constructor_arg_types(token, logic_v1, proxy_artifact):
    assert token.constructor_arg_types == ["address", "uint256"]
    assert logic_v1.constructor_arg_types == []
    assert proxy_artifact.constructor_arg_types == ["address", "address", "bytes"]


@pytest.mark.parametrize("args", [[], [WETH], [WETH, 1, 2]])
def test_constructor_arity_mismatch(token, args):
    with pytest.raises(ArgumentMismatchError, match="length mismatch"):
        token.validate_constructor_args(args)
    with pytest.raises(ArgumentMismatchError):
        token.encode_deployment(args)


def test_constructor_type_mismatch(token):
    with pytest.raises(ArgumentMismatchError, match="position 1"):
        token.validate_constructor_args([WETH, "lots"])
    with pytest.raises(ArgumentMismatchError, match="position 0"):
        token.validate_constructor_args(["not-an-address", 1])


def test_encode_deployment(token, logic_v1):
    code = token.encode_deployment([WETH, 42])
    prefix = bytes.fromhex(token.bytecode[2:])
    assert code.startswith(prefix)
    weth, fee = w3.codec.decode(["address", "uint256"], code[len(prefix) :])
    assert (to_checksum_address(weth), fee) == (WETH, 42)

    # no constructor arguments - creation code only
    assert logic_v1.encode_deployment([]) == bytes.fromhex(LOGIC_V1_BYTECODE[2:])


def test_encode_deployment_without_bytecode():
    artifact = ContractArtifact.from_abi(name="Interface", bytecode="0x", abi=[])
    with pytest.raises(DeploymentConfigError, match="no deployment bytecode"):
        artifact.encode_deployment([])


def test_encode_call(logic_v1):
    data = logic_v1.encode_call("initialize", [WETH, 42])
    assert data[:4] == function_signature_to_4byte_selector("initialize(address,uint256)")
    weth, fee = w3.codec.decode(["address", "uint256"], data[4:])
    assert (to_checksum_address(weth), fee) == (WETH, 42)


def test_encode_call_mismatch(logic_v1):
    with pytest.raises(ArgumentMismatchError, match="no method named"):
        logic_v1.encode_call("initializeV2", [])
    with pytest.raises(ArgumentMismatchError, match="Could not find ABI"):
        logic_v1.encode_call("initialize", [WETH])
    with pytest.raises(ArgumentMismatchError, match="Could not find ABI"):
        logic_v1.encode_call("initialize", [42, WETH])


def test_find_unsafe_opcodes():
    assert find_unsafe_opcodes(LOGIC_V1_BYTECODE) == frozenset()
    assert find_unsafe_opcodes(DELEGATING_BYTECODE) == {UnsafeAllow.DELEGATECALL}
    # SELFDESTRUCT
    assert find_unsafe_opcodes("0x6000ff") == {UnsafeAllow.SELFDESTRUCT}
    # PUSH1 0xf4 / PUSH2 0xf4ff - immediates are data, not opcodes
    assert find_unsafe_opcodes("0x60f4") == frozenset()
    assert find_unsafe_opcodes("0x61f4ff00") == frozenset()


def test_find_unsafe_opcodes_ignores_metadata():
    # PUSH1 0x01, then a 3 byte CBOR trailer (a1 f4 f4) and its length
    assert find_unsafe_opcodes("0x6001a1f4f40003") == frozenset()
    # the same bytes without a valid trailer are scanned
    assert find_unsafe_opcodes("0x6001a1f4f4") == {UnsafeAllow.DELEGATECALL}


def test_check_unsafe_opcodes(swap_artifacts, logic_v1):
    swapx = swap_artifacts[-1]
    with pytest.raises(UnsafeOperationError, match="delegatecall"):
        swapx.check_unsafe_opcodes(frozenset())
    swapx.check_unsafe_opcodes(frozenset({UnsafeAllow.DELEGATECALL}))
    logic_v1.check_unsafe_opcodes(frozenset())


def test_unsafe_allow_from_names():
    assert UnsafeAllow.from_names(["delegatecall"]) == {UnsafeAllow.DELEGATECALL}
    assert UnsafeAllow.from_names(["DelegateCall", " selfdestruct"]) == {
        UnsafeAllow.DELEGATECALL,
        UnsafeAllow.SELFDESTRUCT,
    }
    assert UnsafeAllow.from_names([]) == frozenset()
    with pytest.raises(DeploymentConfigError, match="Unknown unsafe-allow flag"):
        UnsafeAllow.from_names(["external-library-linking"])


def test_artifact_source(artifacts):
    assert "LogicV1" in artifacts
    assert artifacts.get("LogicV1").name == "LogicV1"
    with pytest.raises(DeploymentConfigError, match="No artifact found"):
        artifacts.get("LogicV9")


def test_artifact_source_from_hardhat_dir(tmp_path):
    contract_dir = tmp_path / "contracts" / "Token.sol"
    contract_dir.mkdir(parents=True)
    artifact = {
        "_format": "hh-sol-artifact-1",
        "contractName": "Token",
        "sourceName": "contracts/Token.sol",
        "abi": [TOKEN_CONSTRUCTOR_ABI],
        "bytecode": LOGIC_V1_BYTECODE,
        "deployedBytecode": "0x",
    }
    (contract_dir / "Token.json").write_text(json.dumps(artifact))
    (contract_dir / "Token.dbg.json").write_text(json.dumps({"buildInfo": "../build-info/x.json"}))

    source = ArtifactSource.from_hardhat_dir(tmp_path)
    assert source.names == ["Token"]
    token = source.get("Token")
    assert token.bytecode == LOGIC_V1_BYTECODE
    assert token.constructor_arg_types == ["address", "uint256"]


def test_artifact_source_from_empty_hardhat_dir(tmp_path):
    with pytest.raises(DeploymentConfigError, match="No contract artifacts"):
        ArtifactSource.from_hardhat_dir(tmp_path)
