"""All constants for the project"""

import os
from pathlib import Path

from dotenv import load_dotenv

from safe_relay_toolkit.shared.exceptions import ConfigurationException

load_dotenv(dotenv_path=Path(os.getenv("DOTENV_CONFIG_PATH", ".env")))


class GlobalConstants:
    """Global class constants for the project"""

    ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

    CHAIN_IDS = {
        "arbitrum": 42161,
        "avalanche": 43114,
        "avalanche-fuji": 43113,
        "bsc": 56,
        "bsc-testnet": 97,
        "gnosis": 100,
        "chiado": 10200,
        "goerli": 5,
        "hardhat": 31337,
        "mainnet": 1,
        "optimism": 10,
        "optimism-goerli": 420,
        "polygon": 137,
        "polygon-mumbai": 80001,
        "sepolia": 11155111,
    }

    # Used when <NETWORK>_JSON_RPC_URL is not set
    PUBLIC_RPC_URLS = {
        "mainnet": "https://ethereum.publicnode.com",
        "avalanche": "https://api.avax.network/ext/bc/C/rpc",
        "bsc": "https://bsc-dataseed1.binance.org",
        "gnosis": "https://rpc.gnosis.gateway.fm",
        "chiado": "https://rpc.chiadochain.net/",
        "hardhat": "http://127.0.0.1:8545",
    }

    @staticmethod
    def get_chain_id(network: str) -> int:
        """Get chain ID for a network name"""
        if network not in GlobalConstants.CHAIN_IDS:
            raise ConfigurationException(f"Network {network} not supported")
        return GlobalConstants.CHAIN_IDS[network]

    @staticmethod
    def get_rpc_url(network: str) -> str:
        """Get RPC URL for specified network"""
        GlobalConstants.get_chain_id(network)

        env_key = f"{network.upper().replace('-', '_')}_JSON_RPC_URL"
        rpc_url = os.getenv(env_key)
        if rpc_url:
            return rpc_url

        if network in GlobalConstants.PUBLIC_RPC_URLS:
            return GlobalConstants.PUBLIC_RPC_URLS[network]

        infura_api_key = os.getenv("INFURA_API_KEY")
        if not infura_api_key:
            raise ConfigurationException(
                f"Please set {env_key} or INFURA_API_KEY in a .env file"
            )
        return f"https://{network}.infura.io/v3/{infura_api_key}"

    @staticmethod
    def get_private_key() -> str:
        """Get the signer private key"""
        private_key = os.getenv("PRIVATE_KEY")
        if not private_key:
            raise ConfigurationException(
                "Please set your PRIVATE_KEY in a .env file"
            )
        return private_key


class RelayConstants:
    """Gas settings used by the relay flow"""

    # Destination Safe transaction (signed on the destination chain)
    SAFE_TX_GAS = 0
    BASE_GAS = 0
    GAS_PRICE = 1_000_000_000

    # Source Safe transaction calling the peripheral
    SOURCE_SAFE_TX_GAS = 500_000

    # ControllerModule.execTransaction gas limit
    DESTINATION_GAS_LIMIT = 750_000

    # Base slot of the peripheral mapping proven on the destination chain
    PERIPHERAL_STORAGE_SLOT = 0

    # Safe operation types
    CALL = 0
    DELEGATE_CALL = 1
