import os
from pathlib import Path

from dotenv import load_dotenv

# Load omyvault/.env into os.environ BEFORE reading any env-backed settings.
# override=False means Docker/shell env vars take precedence over .env.
load_dotenv(Path(__file__).resolve().parent / ".env", override=False)

RPC_URL = os.environ.get("RPC_URL", "http://localhost:8545")

# Deployed vault factory (empty until deployed on the target chain)
FACTORY_ADDRESS = os.environ.get("FACTORY_ADDRESS", "")

# Compiled OmyVault artifact (forge out/ layout) holding the creation code
VAULT_ARTIFACT = os.environ.get("VAULT_ARTIFACT", "out/OmyVault.sol/OmyVault.json")

# Uniswap V4 contracts on Base
POSITION_MANAGER = os.environ.get(
    "POSITION_MANAGER", "0x7C5f5A4bBd8fD63184577525326123B519429bDc"
)
UNIVERSAL_ROUTER = os.environ.get(
    "UNIVERSAL_ROUTER", "0x6ff5693b99212da76ad316178a184ab56d299b43"
)
PERMIT2 = os.environ.get("PERMIT2", "0x000000000022D473030F116dDEE9F6B43aC78BA3")

# Tokens
ETH_ADDRESS = "0x0000000000000000000000000000000000000000"  # Native ETH (currency0)
USDC_ADDRESS = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"  # 6 decimals (currency1)

# Pool params (ETH/USDC 0.05% pool on Base)
POOL_FEE = int(os.environ.get("POOL_FEE", "500"))
TICK_SPACING = int(os.environ.get("TICK_SPACING", "10"))
HOOKS_ADDRESS = os.environ.get(
    "HOOKS_ADDRESS", "0x0000000000000000000000000000000000000000"
)

# Vault defaults used when a creator does not pass explicit bounds
DEFAULT_ALLOWED_TICK_LOWER = int(os.environ.get("ALLOWED_TICK_LOWER", "-887270"))
DEFAULT_ALLOWED_TICK_UPPER = int(os.environ.get("ALLOWED_TICK_UPPER", "887270"))
DEFAULT_MAX_POSITIONS_K = int(os.environ.get("MAX_POSITIONS_K", "0"))
DEFAULT_SWAP_ALLOWED = os.environ.get("SWAP_ALLOWED", "true").lower() in ("true", "1", "yes")

# V4 PositionManager Action codes
INCREASE_LIQUIDITY = 0x00
DECREASE_LIQUIDITY = 0x01
MINT_POSITION = 0x02
BURN_POSITION = 0x03
SETTLE_PAIR = 0x0D
TAKE_PAIR = 0x11
CLOSE_CURRENCY = 0x12
SWEEP = 0x14

# V4 Router actions and Universal Router command
SWAP_EXACT_IN_SINGLE = 0x06
SETTLE_ALL = 0x0C
TAKE_ALL = 0x0F
V4_SWAP = 0x10

# Max uint values used in approvals
MAX_UINT256 = 2**256 - 1
MAX_UINT160 = 2**160 - 1
MAX_UINT48 = 2**48 - 1


def build_pool_key():
    from .pool import PoolKey

    currency0, currency1 = ETH_ADDRESS, USDC_ADDRESS
    if int(currency0, 16) > int(currency1, 16):
        currency0, currency1 = currency1, currency0

    return PoolKey.create(currency0, currency1, POOL_FEE, TICK_SPACING, HOOKS_ADDRESS)
