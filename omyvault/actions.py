"""
Uniswap V4 wire encodings issued by the vault.

PositionManager requests are ``modifyLiquidities(unlockData, deadline)`` where
unlockData = abi.encode(bytes actions, bytes[] params). Swaps go through the
Universal Router as a single V4_SWAP command.
"""

import logging

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_utils import to_checksum_address

from . import config
from .pool import POOL_KEY_TYPE, PoolKey, is_native

logger = logging.getLogger(__name__)

MINT_PARAMS_TYPES = [
    POOL_KEY_TYPE,
    "int24",
    "int24",
    "uint256",
    "uint128",
    "uint128",
    "address",
    "bytes",
]
# (uint256 tokenId, uint256 liquidity, uint128 amount0, uint128 amount1, bytes hookData)
MODIFY_PARAMS_TYPES = ["uint256", "uint256", "uint128", "uint128", "bytes"]
# (uint256 tokenId, uint128 amount0Min, uint128 amount1Min, bytes hookData)
BURN_PARAMS_TYPES = ["uint256", "uint128", "uint128", "bytes"]
SETTLE_PAIR_TYPES = ["address", "address"]
TAKE_PAIR_TYPES = ["address", "address", "address"]
CLOSE_CURRENCY_TYPES = ["address"]
SWEEP_TYPES = ["address", "address"]

# ExactInputSingleParams(PoolKey poolKey, bool zeroForOne, uint128 amountIn,
#                        uint128 amountOutMinimum, bytes hookData)
EXACT_IN_SINGLE_TYPE = f"({POOL_KEY_TYPE},bool,uint128,uint128,bytes)"
SETTLE_ALL_TYPES = ["address", "uint256"]
TAKE_ALL_TYPES = ["address", "uint256"]

PARAM_TYPES = {
    config.MINT_POSITION: MINT_PARAMS_TYPES,
    config.INCREASE_LIQUIDITY: MODIFY_PARAMS_TYPES,
    config.DECREASE_LIQUIDITY: MODIFY_PARAMS_TYPES,
    config.BURN_POSITION: BURN_PARAMS_TYPES,
    config.SETTLE_PAIR: SETTLE_PAIR_TYPES,
    config.TAKE_PAIR: TAKE_PAIR_TYPES,
    config.CLOSE_CURRENCY: CLOSE_CURRENCY_TYPES,
    config.SWEEP: SWEEP_TYPES,
}

SWAP_PARAM_TYPES = {
    config.SWAP_EXACT_IN_SINGLE: [EXACT_IN_SINGLE_TYPE],
    config.SETTLE_ALL: SETTLE_ALL_TYPES,
    config.TAKE_ALL: TAKE_ALL_TYPES,
}


# ----------------------------------------------------------------------
# Single-action params
# ----------------------------------------------------------------------


def mint_params(
    pool_key: PoolKey,
    tick_lower: int,
    tick_upper: int,
    liquidity: int,
    amount0_max: int,
    amount1_max: int,
    owner: str,
    hook_data: bytes = b"",
) -> bytes:
    return abi_encode(
        MINT_PARAMS_TYPES,
        [
            tuple(pool_key),
            tick_lower,
            tick_upper,
            liquidity,
            amount0_max,
            amount1_max,
            to_checksum_address(owner),
            hook_data,
        ],
    )


def modify_params(
    token_id: int, liquidity: int, amount0: int, amount1: int, hook_data: bytes = b""
) -> bytes:
    """Params shared by INCREASE_LIQUIDITY (max amounts) and DECREASE_LIQUIDITY (min amounts)."""
    return abi_encode(MODIFY_PARAMS_TYPES, [token_id, liquidity, amount0, amount1, hook_data])


def burn_params(
    token_id: int, amount0_min: int, amount1_min: int, hook_data: bytes = b""
) -> bytes:
    return abi_encode(BURN_PARAMS_TYPES, [token_id, amount0_min, amount1_min, hook_data])


def settle_pair_params(currency0: str, currency1: str) -> bytes:
    return abi_encode(
        SETTLE_PAIR_TYPES,
        [to_checksum_address(currency0), to_checksum_address(currency1)],
    )


def take_pair_params(currency0: str, currency1: str, recipient: str) -> bytes:
    return abi_encode(
        TAKE_PAIR_TYPES,
        [
            to_checksum_address(currency0),
            to_checksum_address(currency1),
            to_checksum_address(recipient),
        ],
    )


def sweep_params(currency: str, to: str) -> bytes:
    return abi_encode(SWEEP_TYPES, [to_checksum_address(currency), to_checksum_address(to)])


# ----------------------------------------------------------------------
# unlockData
# ----------------------------------------------------------------------


def encode_unlock_data(actions: list[int], params: list[bytes]) -> bytes:
    if len(actions) != len(params):
        raise ValueError("actions and params must have the same length")
    return abi_encode(["bytes", "bytes[]"], [bytes(actions), params])


def decode_unlock_data(unlock_data: bytes) -> list[tuple[int, tuple]]:
    """Split unlockData into ``[(action, decoded_params), ...]``.

    Raises ValueError on an unknown action code.
    """
    actions, params = abi_decode(["bytes", "bytes[]"], unlock_data)
    if len(actions) != len(params):
        raise ValueError("actions and params length mismatch")

    decoded = []
    for action, raw in zip(actions, params):
        types = PARAM_TYPES.get(action)
        if types is None:
            raise ValueError(f"unsupported action 0x{action:02x}")
        decoded.append((action, abi_decode(types, raw)))
    return decoded


def _settle_tail(pool_key: PoolKey, vault: str) -> tuple[list[int], list[bytes]]:
    """SETTLE_PAIR, plus a SWEEP of leftover native value back to the vault."""
    actions = [config.SETTLE_PAIR]
    params = [settle_pair_params(pool_key.currency0, pool_key.currency1)]
    if is_native(pool_key.currency0):
        actions.append(config.SWEEP)
        params.append(sweep_params(pool_key.currency0, vault))
    return actions, params


def mint_unlock_data(
    pool_key: PoolKey,
    tick_lower: int,
    tick_upper: int,
    liquidity: int,
    amount0_max: int,
    amount1_max: int,
    vault: str,
) -> bytes:
    """Actions: [MINT_POSITION, SETTLE_PAIR] (+ SWEEP for native currency0)."""
    tail_actions, tail_params = _settle_tail(pool_key, vault)
    return encode_unlock_data(
        [config.MINT_POSITION, *tail_actions],
        [
            mint_params(
                pool_key, tick_lower, tick_upper, liquidity, amount0_max, amount1_max, vault
            ),
            *tail_params,
        ],
    )


def increase_unlock_data(
    pool_key: PoolKey,
    token_id: int,
    liquidity: int,
    amount0_max: int,
    amount1_max: int,
    vault: str,
) -> bytes:
    """Actions: [INCREASE_LIQUIDITY, SETTLE_PAIR] (+ SWEEP for native currency0)."""
    tail_actions, tail_params = _settle_tail(pool_key, vault)
    return encode_unlock_data(
        [config.INCREASE_LIQUIDITY, *tail_actions],
        [modify_params(token_id, liquidity, amount0_max, amount1_max), *tail_params],
    )


def decrease_unlock_data(
    pool_key: PoolKey,
    token_id: int,
    liquidity: int,
    amount0_min: int,
    amount1_min: int,
    vault: str,
) -> bytes:
    """Actions: [DECREASE_LIQUIDITY, TAKE_PAIR]. liquidity=0 collects fees only."""
    return encode_unlock_data(
        [config.DECREASE_LIQUIDITY, config.TAKE_PAIR],
        [
            modify_params(token_id, liquidity, amount0_min, amount1_min),
            take_pair_params(pool_key.currency0, pool_key.currency1, vault),
        ],
    )


def burn_unlock_data(
    pool_key: PoolKey,
    token_id: int,
    amount0_min: int,
    amount1_min: int,
    vault: str,
) -> bytes:
    """Actions: [BURN_POSITION, TAKE_PAIR]."""
    return encode_unlock_data(
        [config.BURN_POSITION, config.TAKE_PAIR],
        [
            burn_params(token_id, amount0_min, amount1_min),
            take_pair_params(pool_key.currency0, pool_key.currency1, vault),
        ],
    )


# ----------------------------------------------------------------------
# Universal Router swap
# ----------------------------------------------------------------------


def exact_input_single_swap(
    pool_key: PoolKey, *, zero_for_one: bool, amount_in: int, amount_out_min: int
) -> tuple[bytes, list[bytes]]:
    """Build (commands, inputs) for a single-pool exact-input swap.

    Actions: [SWAP_EXACT_IN_SINGLE, SETTLE_ALL, TAKE_ALL]
    """
    if zero_for_one:
        input_currency, output_currency = pool_key.currency0, pool_key.currency1
    else:
        input_currency, output_currency = pool_key.currency1, pool_key.currency0

    swap = abi_encode(
        [EXACT_IN_SINGLE_TYPE],
        [(tuple(pool_key), zero_for_one, amount_in, amount_out_min, b"")],
    )
    settle = abi_encode(SETTLE_ALL_TYPES, [to_checksum_address(input_currency), amount_in])
    take = abi_encode(TAKE_ALL_TYPES, [to_checksum_address(output_currency), amount_out_min])

    actions = bytes([config.SWAP_EXACT_IN_SINGLE, config.SETTLE_ALL, config.TAKE_ALL])
    v4_input = abi_encode(["bytes", "bytes[]"], [actions, [swap, settle, take]])
    logger.debug(
        "Encoded V4 swap zero_for_one=%s amount_in=%d min_out=%d",
        zero_for_one,
        amount_in,
        amount_out_min,
    )
    return bytes([config.V4_SWAP]), [v4_input]


def decode_swap_input(v4_input: bytes) -> list[tuple[int, tuple]]:
    """Inverse of the V4_SWAP input built by :func:`exact_input_single_swap`."""
    actions, params = abi_decode(["bytes", "bytes[]"], v4_input)
    decoded = []
    for action, raw in zip(actions, params):
        types = SWAP_PARAM_TYPES.get(action)
        if types is None:
            raise ValueError(f"unsupported swap action 0x{action:02x}")
        decoded.append((action, abi_decode(types, raw)))
    return decoded
