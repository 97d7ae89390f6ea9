"""OmyVault: owner-custodied Uniswap V4 liquidity vaults driven by a bounded agent."""

from .access import Roles
from .errors import (
    AgentInactive,
    DuplicatePosition,
    ExternalCallFailure,
    InsufficientOutput,
    InvalidConfiguration,
    InvalidTickParams,
    PositionLimitExceeded,
    PositionOutOfBounds,
    Reentrancy,
    SwapDisabled,
    TransferFailure,
    Unauthorized,
    UnknownPosition,
    VaultError,
)
from .factory import VaultFactory, compute_vault_address
from .pool import NATIVE, ZERO_ADDRESS, PoolKey, compute_pool_id
from .registry import PositionRegistry
from .vault import Event, Vault

__version__ = "0.1.0"
