from pathlib import Path

import deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(deployment.__file__).parent
CONSTRUCTOR_PARAMS_DIR = DEPLOYMENT_DIR / "constructor_params"

#
# Networks
#

ETH_MAIN = "eth_main"
SEPOLIA = "sepolia"
LOCAL = "local"

GWEI = 10**9

# network id -> raw profile data; empty addresses are not yet deployed
NETWORK_TABLE = {
    ETH_MAIN: {
        "chain_id": 1,
        "dependencies": {
            "WETH": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
            "SWAP_V2": "",
            "SWAP_V3": "",
        },
        "gas": {"gas_price": 13 * GWEI},
    },
    SEPOLIA: {
        "chain_id": 11155111,
        "dependencies": {
            "WETH": "0x7b79995e5f793A07Bc00c21412e50Ecae098E7f9",
            "SWAP_V2": "",
            "SWAP_V3": "",
        },
        "gas": {"gas_price": 330 * GWEI},
    },
    LOCAL: {
        "chain_id": 1337,
        "dependencies": {},
        "gas": {},
    },
}

SUPPORTED_NETWORKS = list(NETWORK_TABLE)

#
# Contracts
#

PROXY_NAME = "TransparentUpgradeableProxy"
DEFAULT_INITIALIZER = "initialize"

# EIP1967 Admin slot - https://eips.ethereum.org/EIPS/eip-1967#admin-address
EIP1967_ADMIN_SLOT = 0xB53127684A568B3173AE13B9F8A6016E243E63B6E8EE1178D6A717850B5D6103

# EIP1967 Logic slot - https://eips.ethereum.org/EIPS/eip-1967#logic-contract-address
EIP1967_IMPLEMENTATION_SLOT = 0x360894A13BA1A3210667C828492DB98DCA3E2076CC3735A920A3CA505D382BBC

# ProxyAdmin.upgradeAndCall(ITransparentUpgradeableProxy proxy, address implementation, bytes data)
UPGRADE_AND_CALL_SIGNATURE = "upgradeAndCall(address,address,bytes)"

#
# Confirmations
#

DEFAULT_POLL_INTERVAL = 2.0  # seconds
DEFAULT_CONFIRMATION_TIMEOUT = 300.0  # seconds

#
# Opcodes
#

PUSH1 = 0x60
PUSH32 = 0x7F
DELEGATECALL = 0xF4
SELFDESTRUCT = 0xFF
