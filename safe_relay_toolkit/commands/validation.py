from eth_utils import is_address, to_checksum_address

from safe_relay_toolkit.shared.constants import GlobalConstants


def validate_eth_address(address: str, param_name: str = "address") -> str:
    """Validate and return checksum ethereum address"""
    if not address or not isinstance(address, str):
        raise ValueError(
            f"Invalid {param_name}: address must be a non-empty string"
        )
    if not is_address(address):
        raise ValueError(
            f"Invalid {param_name}: {address} is not a valid Ethereum address"
        )
    return to_checksum_address(address)


def validate_network(network: str) -> str:
    """Validate and normalize network name"""
    network = network.lower()
    if network not in GlobalConstants.CHAIN_IDS:
        raise ValueError(
            f"Invalid network: {network}. Must be one of "
            f"{sorted(GlobalConstants.CHAIN_IDS)}"
        )
    return network


def validate_block_number(block_number: int) -> int:
    if block_number <= 0:
        raise ValueError("Block number must be a positive integer")
    return block_number
