import pytest
from eth_utils import keccak, to_checksum_address
from web3.auto import w3

from deployment.artifacts import ArtifactSource, ContractArtifact
from deployment.constants import (
    EIP1967_ADMIN_SLOT,
    EIP1967_IMPLEMENTATION_SLOT,
    PROXY_NAME,
)
from deployment.networks import NetworkTable
from deployment.submitter import TransactionOutcome, TransactionSubmitter

DEPLOYER = to_checksum_address("0x9fd5a3cb5c6b5bb17d1bf8d5e8d1c4d2e6f7a8b9")
WETH = to_checksum_address("0x7b79995e5f793a07bc00c21412e50ecae098e7f9")

# Plain bytecode without DELEGATECALL or SELFDESTRUCT
LOGIC_V1_BYTECODE = "0x6080604052348015600f57600080fd5b50"
LOGIC_V2_BYTECODE = "0x60806040526001600055"
PROXY_BYTECODE = "0x60806040526040516103e8"
# PUSH1 0x80 PUSH1 0x40 MSTORE DELEGATECALL STOP
DELEGATING_BYTECODE = "0x6080604052f400"

INITIALIZE_ABI = {
    "type": "function",
    "name": "initialize",
    "stateMutability": "nonpayable",
    "inputs": [
        {"name": "_logic", "type": "address", "internalType": "address"},
        {"name": "_fee", "type": "uint256", "internalType": "uint256"},
    ],
    "outputs": [],
}

SWAPX_INITIALIZE_ABI = {
    "type": "function",
    "name": "initialize",
    "stateMutability": "nonpayable",
    "inputs": [
        {"name": "_swapV2", "type": "address", "internalType": "address"},
        {"name": "_swapV3", "type": "address", "internalType": "address"},
    ],
    "outputs": [],
}

PROXY_CONSTRUCTOR_ABI = {
    "type": "constructor",
    "stateMutability": "payable",
    "inputs": [
        {"name": "_logic", "type": "address", "internalType": "address"},
        {"name": "initialOwner", "type": "address", "internalType": "address"},
        {"name": "_data", "type": "bytes", "internalType": "bytes"},
    ],
}

TOKEN_CONSTRUCTOR_ABI = {
    "type": "constructor",
    "stateMutability": "nonpayable",
    "inputs": [
        {"name": "_weth", "type": "address", "internalType": "address"},
        {"name": "_fee", "type": "uint256", "internalType": "uint256"},
    ],
}


def _derive_address(*parts) -> str:
    return to_checksum_address("0x" + keccak(text=":".join(str(p) for p in parts))[-20:].hex())


def _slot(address: str) -> bytes:
    return bytes(12) + bytes.fromhex(address[2:])


class FakeSubmitter(TransactionSubmitter):
    """
    In-memory chain. Proxy creations and ProxyAdmin.upgradeAndCall calls are
    interpreted so EIP-1967 slots behave like the real contracts.
    """

    def __init__(self, proxy_bytecode: str = PROXY_BYTECODE, pending_polls: int = 0):
        self.proxy_code = bytes.fromhex(proxy_bytecode[2:])
        self.pending_polls = pending_polls
        self.submitted = list()
        self.storage = dict()
        self.admins = dict()  # admin -> owner
        self.block_number = 100
        self.fail_submit = None
        self.revert_initializer = False
        self.revert_reason = None
        self.revert_all = False
        self._outcomes = dict()
        self._polls = dict()

    @property
    def sender(self):
        return DEPLOYER

    @property
    def chain_id(self):
        return 31337

    def submit(self, request):
        if self.fail_submit is not None:
            raise self.fail_submit
        nonce = len(self.submitted)
        tx_hash = "0x" + keccak(text=f"tx:{nonce}").hex()
        self.submitted.append(request)
        self.block_number += 1
        self._outcomes[tx_hash] = self._execute(request, tx_hash, nonce)
        self._polls[tx_hash] = 0
        return tx_hash

    def poll(self, tx_hash):
        self._polls[tx_hash] += 1
        if self._polls[tx_hash] <= self.pending_polls:
            return None
        return self._outcomes[tx_hash]

    def get_storage_at(self, address, slot):
        return self.storage.get((address, slot), bytes(32))

    def _reverted(self, tx_hash, reason):
        return TransactionOutcome(
            tx_hash=tx_hash, confirmed=False, block_number=self.block_number, revert_reason=reason
        )

    def _execute(self, request, tx_hash, nonce):
        if self.revert_all:
            return self._reverted(tx_hash, self.revert_reason)

        if request.target is None:
            address = _derive_address(DEPLOYER, nonce)
            if request.data.startswith(self.proxy_code):
                logic, owner, init_data = w3.codec.decode(
                    ["address", "address", "bytes"], request.data[len(self.proxy_code) :]
                )
                if init_data and self.revert_initializer:
                    return self._reverted(tx_hash, self.revert_reason)
                admin = _derive_address(address, "admin")
                self.admins[admin] = to_checksum_address(owner)
                self.storage[(address, EIP1967_ADMIN_SLOT)] = _slot(admin)
                self.storage[(address, EIP1967_IMPLEMENTATION_SLOT)] = _slot(logic)
            return TransactionOutcome(
                tx_hash=tx_hash,
                confirmed=True,
                block_number=self.block_number,
                contract_address=address,
            )

        if request.target in self.admins:
            if self.admins[request.target] != DEPLOYER:
                return self._reverted(tx_hash, "OwnableUnauthorizedAccount")
            proxy, logic, _ = w3.codec.decode(
                ["address", "address", "bytes"], request.data[4:]
            )
            self.storage[(to_checksum_address(proxy), EIP1967_IMPLEMENTATION_SLOT)] = _slot(logic)

        return TransactionOutcome(tx_hash=tx_hash, confirmed=True, block_number=self.block_number)


@pytest.fixture
def submitter():
    return FakeSubmitter()


@pytest.fixture(scope="session")
def network_table():
    return NetworkTable(
        {
            "testnet-A": {
                "chain_id": 31337,
                "dependencies": {"WETH": WETH, "SWAP_V2": ""},
                "gas": {"gas_price": 1000000000},
            },
            "testnet-B": {"chain_id": 31338, "dependencies": {}},
        }
    )


@pytest.fixture
def profile(network_table):
    return network_table.resolve("testnet-A")


@pytest.fixture(scope="session")
def proxy_artifact():
    return ContractArtifact.from_abi(
        name=PROXY_NAME, bytecode=PROXY_BYTECODE, abi=[PROXY_CONSTRUCTOR_ABI]
    )


@pytest.fixture(scope="session")
def logic_v1():
    return ContractArtifact.from_abi(
        name="LogicV1", bytecode=LOGIC_V1_BYTECODE, abi=[INITIALIZE_ABI]
    )


@pytest.fixture(scope="session")
def logic_v2():
    return ContractArtifact.from_abi(
        name="LogicV2", bytecode=LOGIC_V2_BYTECODE, abi=[INITIALIZE_ABI]
    )


@pytest.fixture(scope="session")
def token():
    return ContractArtifact.from_abi(
        name="Token", bytecode=LOGIC_V2_BYTECODE, abi=[TOKEN_CONSTRUCTOR_ABI]
    )


@pytest.fixture(scope="session")
def swap_artifacts():
    swap_v2 = ContractArtifact.from_abi(name="SwapV2", bytecode=LOGIC_V1_BYTECODE, abi=[])
    swap_v3 = ContractArtifact.from_abi(name="SwapV3", bytecode=LOGIC_V2_BYTECODE, abi=[])
    swapx = ContractArtifact.from_abi(
        name="SwapX", bytecode=DELEGATING_BYTECODE, abi=[SWAPX_INITIALIZE_ABI]
    )
    return [swap_v2, swap_v3, swapx]


@pytest.fixture(scope="session")
def artifacts(proxy_artifact, logic_v1, logic_v2, token, swap_artifacts):
    return ArtifactSource([proxy_artifact, logic_v1, logic_v2, token, *swap_artifacts])
