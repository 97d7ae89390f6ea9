"""
Pool binding and address helpers shared by the vault, factory and encoders.
"""

from typing import NamedTuple

from eth_abi import encode as abi_encode
from eth_utils import keccak, to_checksum_address

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
NATIVE = ZERO_ADDRESS

POOL_KEY_TYPE = "(address,address,uint24,int24,address)"

MIN_INT24 = -(2**23)
MAX_INT24 = 2**23 - 1


def checksum(address: str | None) -> str:
    """Normalize an address to EIP-55 form; ``None`` maps to the null address."""
    if address is None:
        return ZERO_ADDRESS
    return to_checksum_address(address)


def is_zero(address: str | None) -> bool:
    return address is None or int(address, 16) == 0


def is_native(currency: str) -> bool:
    """The chain's native asset is addressed as the null currency."""
    return is_zero(currency)


class PoolKey(NamedTuple):
    """V4 PoolKey: (currency0, currency1, fee, tickSpacing, hooks).

    Being a plain tuple it can be handed straight to eth_abi as the
    ``(address,address,uint24,int24,address)`` struct.
    """

    currency0: str
    currency1: str
    fee: int
    tick_spacing: int
    hooks: str = ZERO_ADDRESS

    @classmethod
    def create(
        cls,
        currency0: str,
        currency1: str,
        fee: int,
        tick_spacing: int,
        hooks: str = ZERO_ADDRESS,
    ) -> "PoolKey":
        return cls(
            checksum(currency0),
            checksum(currency1),
            int(fee),
            int(tick_spacing),
            checksum(hooks),
        )

    def encode(self) -> bytes:
        return abi_encode([POOL_KEY_TYPE], [tuple(self)])

    def pool_id(self) -> str:
        return compute_pool_id(self)


def compute_pool_id(pool_key: PoolKey) -> str:
    """keccak256 of the ABI-encoded PoolKey, as a 0x-prefixed hex string."""
    return "0x" + keccak(pool_key.encode()).hex()
