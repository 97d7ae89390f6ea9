"""
FactoryClient: read-only view of a deployed vault factory over web3.
"""

import logging

from web3 import Web3

from .pool import PoolKey, checksum

logger = logging.getLogger(__name__)

_POOL_KEY_COMPONENTS = [
    {"name": "currency0", "type": "address"},
    {"name": "currency1", "type": "address"},
    {"name": "fee", "type": "uint24"},
    {"name": "tickSpacing", "type": "int24"},
    {"name": "hooks", "type": "address"},
]

FACTORY_ABI = [
    {
        "type": "function",
        "name": "computeVaultAddress",
        "inputs": [
            {"name": "creator", "type": "address"},
            {"name": "key", "type": "tuple", "components": _POOL_KEY_COMPONENTS},
            {"name": "nonce", "type": "uint256"},
            {"name": "agent", "type": "address"},
            {"name": "allowedTickLower", "type": "int24"},
            {"name": "allowedTickUpper", "type": "int24"},
            {"name": "swapAllowed", "type": "bool"},
            {"name": "maxPositionsK", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "nonces",
        "inputs": [{"name": "creator", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "isVault",
        "inputs": [{"name": "vault", "type": "address"}],
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "getVaultsByCreator",
        "inputs": [{"name": "creator", "type": "address"}],
        "outputs": [{"name": "", "type": "address[]"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "totalVaults",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    },
]


class FactoryClient:
    """Reads the deployed factory's directory and address prediction."""

    def __init__(self, w3: Web3, address: str):
        self.w3 = w3
        self.factory = w3.eth.contract(address=Web3.to_checksum_address(address), abi=FACTORY_ABI)

    def compute_vault_address(
        self,
        creator: str,
        pool_key: PoolKey,
        nonce: int,
        agent: str | None,
        allowed_tick_lower: int,
        allowed_tick_upper: int,
        swap_allowed: bool,
        max_positions_k: int,
    ) -> str:
        try:
            result = self.factory.functions.computeVaultAddress(
                Web3.to_checksum_address(creator),
                tuple(pool_key),
                nonce,
                checksum(agent),
                allowed_tick_lower,
                allowed_tick_upper,
                swap_allowed,
                max_positions_k,
            ).call()
        except Exception as e:
            logger.error("Failed to compute vault address on chain: %s", e)
            raise
        return Web3.to_checksum_address(result)

    def next_nonce(self, creator: str) -> int:
        return self.factory.functions.nonces(Web3.to_checksum_address(creator)).call()

    def is_vault(self, address: str) -> bool:
        return self.factory.functions.isVault(Web3.to_checksum_address(address)).call()

    def vaults_of(self, creator: str) -> list[str]:
        result = self.factory.functions.getVaultsByCreator(
            Web3.to_checksum_address(creator)
        ).call()
        return [Web3.to_checksum_address(a) for a in result]

    def total_vaults(self) -> int:
        return self.factory.functions.totalVaults().call()
