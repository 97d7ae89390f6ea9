"""
In-process reference collaborators: a ledger, Permit2, a V4 PositionManager
and a Universal Router that consume the same encoded requests the vault
sends on chain.

Pricing is deliberately flat (fixed cost per unit of liquidity, fixed swap
price) since the AMM itself sits outside the vault. Each request is atomic:
a rejected request leaves every participant untouched.
"""

import copy
import logging

from eth_abi.exceptions import DecodingError

from . import actions, config
from .errors import ExternalCallFailure, VaultError
from .interfaces import (
    Checkpointable,
    Journal,
    Ledger,    Permit2,
    PositionManager,
    SwapRouter,
    checkpoint,
)
from .pool import NATIVE, PoolKey, checksum, is_native

logger = logging.getLogger(__name__)


class InMemoryLedger(Ledger, Checkpointable):
    """Balances keyed by (currency, account); the null currency is native ETH."""

    def __init__(self):
        self._balances: dict[tuple[str, str], int] = {}
        self._allowances: dict[tuple[str, str, str], int] = {}
        self._receive_hooks: dict = {}
        self.journal = Journal()
        self.journal.track(self)

    def mint(self, currency: str, account: str, amount: int) -> None:
        """Fund an account directly (an external actor's transfer)."""
        key = (checksum(currency), checksum(account))
        self._balances[key] = self._balances.get(key, 0) + amount

    def set_receive_hook(self, account: str, hook) -> None:
        """Run ``hook(sender, amount)`` whenever native value is pushed to account.

        A hook that raises a VaultError rejects the transfer.
        """
        self._receive_hooks[checksum(account)] = hook

    def balance_of(self, currency: str, account: str) -> int:
        return self._balances.get((checksum(currency), checksum(account)), 0)

    def move(self, currency: str, sender: str, to: str, amount: int) -> None:
        currency, sender, to = checksum(currency), checksum(sender), checksum(to)
        if amount < 0:
            raise ExternalCallFailure("NegativeAmount")
        available = self._balances.get((currency, sender), 0)
        if available < amount:
            raise ExternalCallFailure(
                f"InsufficientBalance({currency}, {sender}, {available} < {amount})"
            )
        self._balances[(currency, sender)] = available - amount
        self._balances[(currency, to)] = self._balances.get((currency, to), 0) + amount

    def send_native(self, sender: str, to: str, amount: int) -> bool:
        state = self.journal.snapshot()
        try:
            self.move(NATIVE, sender, to, amount)
            hook = self._receive_hooks.get(checksum(to))
            if hook is not None:
                hook(checksum(sender), amount)
        except VaultError as e:
            self.journal.restore(state)
            logger.warning("Native transfer %s -> %s of %d rejected: %s", sender, to, amount, e)
            return False
        return True

    def transfer(self, token: str, sender: str, to: str, amount: int) -> None:
        if is_native(token):
            raise ExternalCallFailure("native value is not a token")
        self.move(token, sender, to, amount)

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        self._allowances[(checksum(token), checksum(owner), checksum(spender))] = amount

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self._allowances.get((checksum(token), checksum(owner), checksum(spender)), 0)

    def transfer_from(
        self, token: str, spender: str, owner: str, to: str, amount: int
    ) -> None:
        key = (checksum(token), checksum(owner), checksum(spender))
        allowed = self._allowances.get(key, 0)
        if allowed < amount:
            raise ExternalCallFailure(f"InsufficientAllowance({allowed} < {amount})")
        self.transfer(token, owner, to, amount)
        if allowed != config.MAX_UINT256:
            self._allowances[key] = allowed - amount

    def snapshot(self):
        return (dict(self._balances), dict(self._allowances))

    def restore(self, state) -> None:
        balances, allowances = state
        self._balances = dict(balances)
        self._allowances = dict(allowances)


class SimPermit2(Permit2, Checkpointable):
    def __init__(self, address: str, ledger: InMemoryLedger):
        self.address = checksum(address)
        self.ledger = ledger
        self.block_timestamp = 0
        self._allowances: dict[tuple[str, str, str], tuple[int, int, int]] = {}
        ledger.journal.track(self)

    def approve(
        self, token: str, spender: str, amount: int, expiration: int, *, sender: str
    ) -> None:
        key = (checksum(sender), checksum(token), checksum(spender))
        _, _, nonce = self._allowances.get(key, (0, 0, 0))
        self._allowances[key] = (amount, expiration, nonce)

    def allowance(self, owner: str, token: str, spender: str) -> tuple[int, int, int]:
        return self._allowances.get((checksum(owner), checksum(token), checksum(spender)), (0, 0, 0))

    def transfer_from(
        self, owner: str, to: str, amount: int, token: str, *, sender: str
    ) -> None:
        key = (checksum(owner), checksum(token), checksum(sender))
        allowed, expiration, nonce = self._allowances.get(key, (0, 0, 0))
        if self.block_timestamp > expiration:
            raise ExternalCallFailure(f"AllowanceExpired({expiration})")
        if allowed < amount:
            raise ExternalCallFailure(f"InsufficientAllowance({allowed} < {amount})")
        # Permit2 itself needs the token-level allowance from the owner
        self.ledger.transfer_from(token, self.address, owner, to, amount)
        if allowed != config.MAX_UINT160:
            self._allowances[key] = (allowed - amount, expiration, nonce)

    def snapshot(self):
        return dict(self._allowances)

    def restore(self, state) -> None:
        self._allowances = dict(state)


class _Settlement:
    """Per-request currency deltas; positive is owed to the caller."""

    def __init__(self, contract, caller: str, native_credit: int):
        self.contract = contract
        self.caller = caller
        self.native_credit = native_credit
        self.deltas: dict[str, int] = {}

    def credit(self, currency: str, amount: int) -> None:
        currency = checksum(currency)
        self.deltas[currency] = self.deltas.get(currency, 0) + amount

    def owed(self, currency: str) -> int:
        return self.deltas.get(checksum(currency), 0)

    def settle(self, currency: str) -> int:
        """Pull whatever the caller owes in currency. Returns the amount paid."""
        currency = checksum(currency)
        debt = -self.deltas.get(currency, 0)
        if debt <= 0:
            return 0
        if is_native(currency):
            if self.native_credit < debt:
                raise ExternalCallFailure(f"NativeValueTooLow({self.native_credit} < {debt})")
            self.native_credit -= debt
        else:
            self.contract.permit2.transfer_from(
                self.caller, self.contract.address, debt, currency, sender=self.contract.address
            )
        self.deltas[currency] = 0
        return debt

    def take(self, currency: str, recipient: str, keep_bps: int = 0) -> int:
        """Pay out what is owed in currency; ``keep_bps`` is withheld on the way."""
        currency = checksum(currency)
        amount = self.deltas.get(currency, 0)
        if amount <= 0:
            return 0
        self.deltas[currency] = 0
        self.pay(currency, recipient, amount - amount * keep_bps // 10_000)
        return amount

    def pay(self, currency: str, recipient: str, amount: int) -> None:
        ledger = self.contract.ledger
        if is_native(currency):
            if not ledger.send_native(self.contract.address, recipient, amount):
                raise ExternalCallFailure("NativeTransferFailed")
        else:
            ledger.transfer(currency, self.contract.address, recipient, amount)

    def require_settled(self) -> None:
        open_deltas = {c: d for c, d in self.deltas.items() if d != 0}
        if open_deltas:
            raise ExternalCallFailure(f"CurrencyNotSettled({open_deltas})")


class SimPositionManager(PositionManager, Checkpointable):
    def __init__(
        self,
        address: str,
        ledger: InMemoryLedger,
        permit2: SimPermit2,
        unit0: int = 1,
        unit1: int = 1,
        first_token_id: int = 1,
    ):
        self.address = checksum(address)
        self.ledger = ledger
        self.permit2 = permit2
        self.unit0 = unit0
        self.unit1 = unit1
        self.block_timestamp = 0
        self._next_id = first_token_id
        self._positions: dict[int, dict] = {}
        ledger.journal.track(self)

    def next_token_id(self) -> int:
        return self._next_id

    def owner_of(self, token_id: int) -> str:
        return self._position(token_id)["owner"]

    def position(self, token_id: int) -> dict:
        return dict(self._position(token_id))

    def exists(self, token_id: int) -> bool:
        return token_id in self._positions

    def accrue_fees(self, token_id: int, amount0: int, amount1: int) -> None:
        """Credit swap fees to a position, backed by fresh balance here."""
        pos = self._position(token_id)
        pos["fees0"] += amount0
        pos["fees1"] += amount1
        self.ledger.mint(pos["pool_key"].currency0, self.address, amount0)
        self.ledger.mint(pos["pool_key"].currency1, self.address, amount1)

    def modify_liquidities(
        self, unlock_data: bytes, deadline: int, *, sender: str, value: int = 0
    ) -> None:
        sender = checksum(sender)
        with checkpoint(self, self.ledger, self.permit2):
            if deadline < self.block_timestamp:
                raise ExternalCallFailure(f"DeadlinePassed({deadline})")
            try:
                steps = actions.decode_unlock_data(unlock_data)
            except (ValueError, DecodingError) as e:
                raise ExternalCallFailure(f"InvalidUnlockData({e})") from e
            if value:
                self.ledger.move(NATIVE, sender, self.address, value)

            settlement = _Settlement(self, sender, value)
            for action, params in steps:
                self._apply(action, params, settlement)
            settlement.require_settled()

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _apply(self, action: int, params: tuple, settlement: _Settlement) -> None:
        if action == config.MINT_POSITION:
            self._mint(settlement, *params)
        elif action == config.INCREASE_LIQUIDITY:
            self._increase(settlement, *params)
        elif action == config.DECREASE_LIQUIDITY:
            self._decrease(settlement, *params)
        elif action == config.BURN_POSITION:
            self._burn(settlement, *params)
        elif action == config.SETTLE_PAIR:
            for currency in params:
                settlement.settle(currency)
        elif action == config.TAKE_PAIR:
            currency0, currency1, recipient = params
            settlement.take(currency0, recipient)
            settlement.take(currency1, recipient)
        elif action == config.CLOSE_CURRENCY:
            (currency,) = params
            if settlement.owed(currency) < 0:
                settlement.settle(currency)
            else:
                settlement.take(currency, settlement.caller)
        elif action == config.SWEEP:
            currency, recipient = params
            if is_native(currency) and settlement.native_credit:
                amount, settlement.native_credit = settlement.native_credit, 0
                settlement.pay(currency, recipient, amount)

    def _mint(
        self, settlement, pool_key, lower, upper, liquidity, amount0_max, amount1_max, owner, hook_data
    ):
        key = PoolKey.create(*pool_key)
        if lower >= upper or lower % key.tick_spacing or upper % key.tick_spacing:
            raise ExternalCallFailure(f"InvalidTicks({lower}, {upper})")
        if liquidity == 0:
            raise ExternalCallFailure("ZeroLiquidity")
        cost0, cost1 = liquidity * self.unit0, liquidity * self.unit1
        if cost0 > amount0_max or cost1 > amount1_max:
            raise ExternalCallFailure("MaximumAmountExceeded")

        token_id = self._next_id
        self._next_id += 1
        self._positions[token_id] = {
            "owner": checksum(owner),
            "pool_key": key,
            "tick_lower": lower,
            "tick_upper": upper,
            "liquidity": liquidity,
            "fees0": 0,
            "fees1": 0,
        }
        settlement.credit(key.currency0, -cost0)
        settlement.credit(key.currency1, -cost1)
        logger.debug("Sim minted token_id=%d ticks=[%d, %d] liq=%d", token_id, lower, upper, liquidity)

    def _increase(self, settlement, token_id, liquidity, amount0_max, amount1_max, hook_data):
        pos = self._owned(token_id, settlement.caller)
        cost0, cost1 = liquidity * self.unit0, liquidity * self.unit1
        if cost0 > amount0_max or cost1 > amount1_max:
            raise ExternalCallFailure("MaximumAmountExceeded")
        pos["liquidity"] += liquidity
        self._credit_fees(pos, settlement)
        settlement.credit(pos["pool_key"].currency0, -cost0)
        settlement.credit(pos["pool_key"].currency1, -cost1)

    def _decrease(self, settlement, token_id, liquidity, amount0_min, amount1_min, hook_data):
        pos = self._owned(token_id, settlement.caller)
        if liquidity > pos["liquidity"]:
            raise ExternalCallFailure("InsufficientLiquidity")
        out0 = liquidity * self.unit0 + pos["fees0"]
        out1 = liquidity * self.unit1 + pos["fees1"]
        if out0 < amount0_min or out1 < amount1_min:
            raise ExternalCallFailure("MinimumAmountInsufficient")
        pos["liquidity"] -= liquidity
        self._credit_fees(pos, settlement)
        settlement.credit(pos["pool_key"].currency0, liquidity * self.unit0)
        settlement.credit(pos["pool_key"].currency1, liquidity * self.unit1)

    def _burn(self, settlement, token_id, amount0_min, amount1_min, hook_data):
        pos = self._owned(token_id, settlement.caller)
        out0 = pos["liquidity"] * self.unit0 + pos["fees0"]
        out1 = pos["liquidity"] * self.unit1 + pos["fees1"]
        if out0 < amount0_min or out1 < amount1_min:
            raise ExternalCallFailure("MinimumAmountInsufficient")
        del self._positions[token_id]
        settlement.credit(pos["pool_key"].currency0, out0)
        settlement.credit(pos["pool_key"].currency1, out1)

    def _credit_fees(self, pos: dict, settlement: _Settlement) -> None:
        settlement.credit(pos["pool_key"].currency0, pos["fees0"])
        settlement.credit(pos["pool_key"].currency1, pos["fees1"])
        pos["fees0"] = pos["fees1"] = 0

    def _position(self, token_id: int) -> dict:
        try:
            return self._positions[token_id]
        except KeyError:
            raise ExternalCallFailure(f"UnknownToken({token_id})") from None

    def _owned(self, token_id: int, caller: str) -> dict:
        pos = self._position(token_id)
        if pos["owner"] != caller:
            raise ExternalCallFailure(f"NotApproved({caller})")
        return pos

    def snapshot(self):
        return (self._next_id, copy.deepcopy(self._positions))

    def restore(self, state) -> None:
        self._next_id, positions = state
        self._positions = copy.deepcopy(positions)


class SimSwapRouter(SwapRouter, Checkpointable):
    """Fixed-price router: ``price_num / price_den`` units of currency1 per currency0.

    ``output_tax_bps`` models an output token that skims on transfer.
    """

    def __init__(
        self,
        address: str,
        ledger: InMemoryLedger,
        permit2: SimPermit2,
        price_num: int = 1,
        price_den: int = 1,
        output_tax_bps: int = 0,
    ):
        self.address = checksum(address)
        self.ledger = ledger
        self.permit2 = permit2
        self.price_num = price_num
        self.price_den = price_den
        self.output_tax_bps = output_tax_bps
        self.block_timestamp = 0
        self.swaps: list[dict] = []
        ledger.journal.track(self)

    def quote(self, pool_key: PoolKey, zero_for_one: bool, amount_in: int) -> int:
        after_fee = amount_in * (1_000_000 - pool_key.fee) // 1_000_000
        if zero_for_one:
            return after_fee * self.price_num // self.price_den
        return after_fee * self.price_den // self.price_num

    def execute(
        self,
        commands: bytes,
        inputs: list[bytes],
        deadline: int,
        *,
        sender: str,
        value: int = 0,
    ) -> None:
        sender = checksum(sender)
        with checkpoint(self, self.ledger, self.permit2):
            if deadline < self.block_timestamp:
                raise ExternalCallFailure(f"TransactionDeadlinePassed({deadline})")
            if len(commands) != len(inputs):
                raise ExternalCallFailure("LengthMismatch")
            if value:
                self.ledger.move(NATIVE, sender, self.address, value)

            settlement = _Settlement(self, sender, value)
            for command, v4_input in zip(commands, inputs):
                if command != config.V4_SWAP:
                    raise ExternalCallFailure(f"InvalidCommandType({command})")
                try:
                    steps = actions.decode_swap_input(v4_input)
                except (ValueError, DecodingError) as e:
                    raise ExternalCallFailure(f"InvalidSwapInput({e})") from e
                for action, params in steps:
                    self._apply(action, params, settlement)
            settlement.require_settled()

    def _apply(self, action: int, params: tuple, settlement: _Settlement) -> None:
        if action == config.SWAP_EXACT_IN_SINGLE:
            ((pool_key, zero_for_one, amount_in, amount_out_min, _hook_data),) = params
            key = PoolKey.create(*pool_key)
            amount_out = self.quote(key, zero_for_one, amount_in)
            if amount_out < amount_out_min:
                raise ExternalCallFailure(f"V4TooLittleReceived({amount_out_min}, {amount_out})")
            currency_in = key.currency0 if zero_for_one else key.currency1
            currency_out = key.currency1 if zero_for_one else key.currency0
            settlement.credit(currency_in, -amount_in)
            settlement.credit(currency_out, amount_out)
            self.swaps.append(
                {
                    "pool_id": key.pool_id(),
                    "zero_for_one": zero_for_one,
                    "amount_in": amount_in,
                    "amount_out": amount_out,
                }
            )
        elif action == config.SETTLE_ALL:
            currency, max_amount = params
            if -settlement.owed(currency) > max_amount:
                raise ExternalCallFailure("V4TooMuchRequested")
            settlement.settle(currency)
        elif action == config.TAKE_ALL:
            currency, min_amount = params
            if settlement.owed(currency) < min_amount:
                raise ExternalCallFailure("V4TooLittleReceived")
            settlement.take(currency, settlement.caller, keep_bps=self.output_tax_bps)

    def snapshot(self):
        return list(self.swaps)

    def restore(self, state) -> None:
        self.swaps = list(state)
