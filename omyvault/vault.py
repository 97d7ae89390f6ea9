"""
Vault: per-owner custody of liquidity positions in one fixed V4 pool.

The owner configures roles and bounds, withdraws, and can force an emergency
exit. The agent mints, adjusts, burns and swaps within those bounds. Every
state-mutating call runs under a single-flight reentrance lock inside a
checkpoint of the ledger's journal, so a failed call leaves everything sharing
the ledger exactly as it was.
"""

import functools
import logging
from dataclasses import dataclass, field

from eth_utils import to_checksum_address

from . import actions, bounds, config
from .access import Roles, normalize_agent
from .errors import (
    InsufficientOutput,
    InvalidConfiguration,
    Reentrancy,
    SwapDisabled,
    TransferFailure,
    UnknownPosition,
)
from .interfaces import Checkpointable, Ledger, Permit2, PositionManager, SwapRouter, checkpoint
from .pool import PoolKey, is_native, is_zero
from .registry import PositionRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    name: str
    args: dict = field(default_factory=dict)


def nonreentrant(method):
    """Hold the vault lock for the whole call and roll back on any failure."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        if self._entered:
            raise Reentrancy(f"{method.__name__} re-entered a busy vault")
        self._entered = True
        try:
            with checkpoint(self.ledger.journal):
                return method(self, *args, **kwargs)
        finally:
            self._entered = False

    return wrapper


class Vault(Checkpointable):
    def __init__(
        self,
        address: str,
        owner: str,
        pool_key: PoolKey,
        position_manager: PositionManager,
        swap_router: SwapRouter,
        permit2: Permit2,
        ledger: Ledger,
        agent: str | None = None,
        allowed_tick_lower: int = config.DEFAULT_ALLOWED_TICK_LOWER,
        allowed_tick_upper: int = config.DEFAULT_ALLOWED_TICK_UPPER,
        swap_allowed: bool = False,
        max_positions_k: int = 0,
    ):
        if is_zero(owner):
            raise InvalidConfiguration("owner must be set")
        for name, collaborator in (
            ("position manager", position_manager),
            ("swap router", swap_router),
            ("permit2", permit2),
        ):
            if is_zero(getattr(collaborator, "address", None)):
                raise InvalidConfiguration(f"{name} address must be set")
        if max_positions_k < 0:
            raise InvalidConfiguration("max positions must be non-negative")
        bounds.validate_tick_order(allowed_tick_lower, allowed_tick_upper)

        self.address = to_checksum_address(address)
        self._pool_key = PoolKey.create(*pool_key)
        self.position_manager = position_manager
        self.swap_router = swap_router
        self.permit2 = permit2
        self.ledger = ledger

        self.roles = Roles(owner=to_checksum_address(owner), agent=normalize_agent(agent))
        self.swap_allowed = bool(swap_allowed)
        self.allowed_tick_lower = allowed_tick_lower
        self.allowed_tick_upper = allowed_tick_upper
        self.max_positions_k = max_positions_k
        self.positions = PositionRegistry()
        self.events: list[Event] = []
        self._entered = False

        for participant in (self, *self._collaborators()):
            if isinstance(participant, Checkpointable):
                ledger.journal.track(participant)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def owner(self) -> str:
        return self.roles.owner

    @property
    def agent(self) -> str | None:
        return self.roles.agent

    @property
    def agent_paused(self) -> bool:
        return self.roles.agent_paused

    def get_pool_key(self) -> PoolKey:
        return PoolKey(*self._pool_key)

    def position_count(self) -> int:
        return self.positions.length()

    def is_managed(self, token_id: int) -> bool:
        return self.positions.contains(token_id)

    def position_ticks(self, token_id: int) -> tuple[int, int]:
        return self.positions.ticks_of(token_id)

    def managed_positions(self) -> list[int]:
        return self.positions.ids()

    def get_logs(self, name: str) -> list[Event]:
        return [e for e in self.events if e.name == name]

    # ------------------------------------------------------------------
    # Owner: roles and bounds
    # ------------------------------------------------------------------

    @nonreentrant
    def transfer_ownership(self, new_owner: str, *, sender: str) -> None:
        self.roles.require_owner(sender)
        if is_zero(new_owner):
            raise InvalidConfiguration("new owner must be set")
        previous = self.roles.owner
        self.roles.owner = to_checksum_address(new_owner)
        self._emit("OwnershipTransferred", previous=previous, owner=self.roles.owner)

    @nonreentrant
    def set_agent(self, agent: str | None, *, sender: str) -> None:
        """Pass ``None`` (or the null address) to disable the agent."""
        self.roles.require_owner(sender)
        self.roles.agent = normalize_agent(agent)
        self._emit("AgentUpdated", agent=self.roles.agent)

    @nonreentrant
    def set_agent_paused(self, paused: bool, *, sender: str) -> None:
        self.roles.require_owner(sender)
        self.roles.agent_paused = bool(paused)
        self._emit("AgentPaused", paused=self.roles.agent_paused)

    @nonreentrant
    def set_swap_allowed(self, allowed: bool, *, sender: str) -> None:
        self.roles.require_owner(sender)
        self.swap_allowed = bool(allowed)
        self._emit("SwapAllowed", allowed=self.swap_allowed)

    @nonreentrant
    def set_allowed_tick_range(self, lower: int, upper: int, *, sender: str) -> None:
        """Only future mints and increases are held to the new range."""
        self.roles.require_owner(sender)
        bounds.validate_tick_order(lower, upper)
        self.allowed_tick_lower = lower
        self.allowed_tick_upper = upper
        self._emit("AllowedTickRangeUpdated", lower=lower, upper=upper)

    @nonreentrant
    def set_max_positions_k(self, k: int, *, sender: str) -> None:
        """May go below the current count; held positions stay valid."""
        self.roles.require_owner(sender)
        if k < 0:
            raise InvalidConfiguration("max positions must be non-negative")
        self.max_positions_k = k
        self._emit("MaxPositionsKUpdated", k=k)

    # ------------------------------------------------------------------
    # Owner: funds
    # ------------------------------------------------------------------

    @nonreentrant
    def grant_spend_allowance(
        self, currency: str, spender: str, amount: int, expiration: int, *, sender: str
    ) -> None:
        """Approve token -> Permit2 -> spender for the position manager or router.

        Native ETH needs no approval (sent as value).
        """
        self.roles.require_owner(sender)
        spender = to_checksum_address(spender)
        if spender not in (
            to_checksum_address(self.position_manager.address),
            to_checksum_address(self.swap_router.address),
        ):
            raise InvalidConfiguration(f"spender {spender} is not whitelisted")
        if is_native(currency):
            raise InvalidConfiguration("native currency has no allowance")
        if not 0 <= amount <= config.MAX_UINT160 or not 0 <= expiration <= config.MAX_UINT48:
            raise InvalidConfiguration("allowance amount or expiration out of range")

        currency = to_checksum_address(currency)
        permit2 = to_checksum_address(self.permit2.address)
        self.ledger.approve(currency, self.address, permit2, config.MAX_UINT256)
        self.permit2.approve(currency, spender, amount, expiration, sender=self.address)
        logger.info(
            "Granted allowance token=%s spender=%s amount=%d expiration=%d",
            currency,
            spender,
            amount,
            expiration,
        )

    @nonreentrant
    def withdraw(self, currency: str, amount: int, to: str, *, sender: str) -> None:
        self.roles.require_owner(sender)
        if is_zero(to):
            raise InvalidConfiguration("withdraw target must be set")
        to = to_checksum_address(to)

        if is_native(currency):
            if not self.ledger.send_native(self.address, to, amount):
                raise TransferFailure(f"native transfer of {amount} to {to} rejected")
        else:
            self.ledger.transfer(to_checksum_address(currency), self.address, to, amount)
        logger.info("Withdrew %d of %s to %s", amount, currency, to)

    @nonreentrant
    def pause_and_exit_all(self, deadline: int, *, sender: str) -> None:
        """Pause the agent, then burn every managed position with zero minimums."""
        self.roles.require_owner(sender)
        self.roles.agent_paused = True
        self._emit("AgentPaused", paused=True)

        # tail first: a swap-remove pulls the last id into the freed slot
        for index in reversed(range(self.positions.length())):
            self._burn(self.positions.id_at(index), 0, 0, deadline)
        logger.warning("Emergency exit complete, agent paused")

    # ------------------------------------------------------------------
    # Agent: positions
    # ------------------------------------------------------------------

    @nonreentrant
    def mint_position(
        self,
        tick_lower: int,
        tick_upper: int,
        liquidity: int,
        amount0_max: int,
        amount1_max: int,
        deadline: int,
        *,
        sender: str,
    ) -> int:
        """Mint a new position inside the allowed range. Returns its token id."""
        self.roles.require_active_agent(sender)
        bounds.enforce_count_cap_for_mint(self.positions.length(), self.max_positions_k)
        bounds.validate_mint_or_increase_ticks(
            tick_lower,
            tick_upper,
            self.allowed_tick_lower,
            self.allowed_tick_upper,
            self._pool_key.tick_spacing,
        )

        token_id = self.position_manager.next_token_id()
        unlock_data = actions.mint_unlock_data(
            self._pool_key,
            tick_lower,
            tick_upper,
            liquidity,
            amount0_max,
            amount1_max,
            self.address,
        )
        self.position_manager.modify_liquidities(
            unlock_data, deadline, sender=self.address, value=self._native_value(amount0_max)
        )

        self.positions.add(token_id, tick_lower, tick_upper)
        self._emit(
            "PositionAdded", token_id=token_id, tick_lower=tick_lower, tick_upper=tick_upper
        )
        return token_id

    @nonreentrant
    def increase_liquidity(
        self,
        token_id: int,
        liquidity: int,
        amount0_max: int,
        amount1_max: int,
        deadline: int,
        *,
        sender: str,
    ) -> None:
        self.roles.require_active_agent(sender)
        tick_lower, tick_upper = self._managed_ticks(token_id)
        bounds.validate_existing_position_in_bounds(
            tick_lower, tick_upper, self.allowed_tick_lower, self.allowed_tick_upper
        )

        unlock_data = actions.increase_unlock_data(
            self._pool_key, token_id, liquidity, amount0_max, amount1_max, self.address
        )
        self.position_manager.modify_liquidities(
            unlock_data, deadline, sender=self.address, value=self._native_value(amount0_max)
        )
        logger.info("Increased liquidity token_id=%d liq=%d", token_id, liquidity)

    @nonreentrant
    def decrease_liquidity_to_vault(
        self,
        token_id: int,
        liquidity: int,
        amount0_min: int,
        amount1_min: int,
        deadline: int,
        *,
        sender: str,
    ) -> None:
        self.roles.require_active_agent(sender)
        self._decrease(token_id, liquidity, amount0_min, amount1_min, deadline)
        logger.info("Decreased liquidity token_id=%d liq=%d", token_id, liquidity)

    @nonreentrant
    def collect_fees_to_vault(
        self, token_id: int, amount0_min: int, amount1_min: int, deadline: int, *, sender: str
    ) -> None:
        """DECREASE_LIQUIDITY with liquidity=0 => collect fees only."""
        self.roles.require_active_agent(sender)
        self._decrease(token_id, 0, amount0_min, amount1_min, deadline)
        logger.info("Collected fees token_id=%d", token_id)

    @nonreentrant
    def burn_position_to_vault(
        self, token_id: int, amount0_min: int, amount1_min: int, deadline: int, *, sender: str
    ) -> None:
        self.roles.require_active_agent(sender)
        self._burn(token_id, amount0_min, amount1_min, deadline)

    # ------------------------------------------------------------------
    # Agent: swap
    # ------------------------------------------------------------------

    @nonreentrant
    def swap_exact_input_single(
        self,
        zero_for_one: bool,
        amount_in: int,
        min_amount_out: int,
        deadline: int,
        *,
        sender: str,
    ) -> int:
        """Exact-input swap in the vault's own pool. Returns the amount received."""
        self.roles.require_active_agent(sender)
        if not self.swap_allowed:
            raise SwapDisabled("swaps are disabled for this vault")

        key = self._pool_key
        input_currency = key.currency0 if zero_for_one else key.currency1
        output_currency = key.currency1 if zero_for_one else key.currency0

        balance_before = self.ledger.balance_of(output_currency, self.address)
        commands, inputs = actions.exact_input_single_swap(
            key,
            zero_for_one=zero_for_one,
            amount_in=amount_in,
            amount_out_min=min_amount_out,
        )
        value = amount_in if is_native(input_currency) else 0
        self.swap_router.execute(commands, inputs, deadline, sender=self.address, value=value)

        amount_out = self.ledger.balance_of(output_currency, self.address) - balance_before
        if amount_out < min_amount_out:
            raise InsufficientOutput(f"received {amount_out}, wanted at least {min_amount_out}")
        logger.info(
            "Swapped zero_for_one=%s amount_in=%d amount_out=%d",
            zero_for_one,
            amount_in,
            amount_out,
        )
        return amount_out

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _collaborators(self) -> tuple:
        return (self.ledger, self.position_manager, self.swap_router, self.permit2)

    def _native_value(self, amount0_max: int) -> int:
        return amount0_max if is_native(self._pool_key.currency0) else 0

    def _managed_ticks(self, token_id: int) -> tuple[int, int]:
        if not self.positions.contains(token_id):
            raise UnknownPosition(f"position {token_id} is not managed by this vault")
        return self.positions.ticks_of(token_id)

    def _decrease(
        self, token_id: int, liquidity: int, amount0_min: int, amount1_min: int, deadline: int
    ) -> None:
        self._managed_ticks(token_id)
        unlock_data = actions.decrease_unlock_data(
            self._pool_key, token_id, liquidity, amount0_min, amount1_min, self.address
        )
        self.position_manager.modify_liquidities(unlock_data, deadline, sender=self.address)

    def _burn(self, token_id: int, amount0_min: int, amount1_min: int, deadline: int) -> None:
        self._managed_ticks(token_id)
        unlock_data = actions.burn_unlock_data(
            self._pool_key, token_id, amount0_min, amount1_min, self.address
        )
        self.position_manager.modify_liquidities(unlock_data, deadline, sender=self.address)

        self.positions.remove(token_id)
        self._emit("PositionRemoved", token_id=token_id)

    def _emit(self, name: str, **args) -> None:
        self.events.append(Event(name, args))
        logger.info("%s vault=%s %s", name, self.address, args)

    def snapshot(self):
        return (
            Roles(self.roles.owner, self.roles.agent, self.roles.agent_paused),
            self.swap_allowed,
            self.allowed_tick_lower,
            self.allowed_tick_upper,
            self.max_positions_k,
            self.positions.snapshot(),
            len(self.events),
        )

    def restore(self, state) -> None:
        (
            self.roles,
            self.swap_allowed,
            self.allowed_tick_lower,
            self.allowed_tick_upper,
            self.max_positions_k,
            registry_state,
            event_count,
        ) = state
        self.positions.restore(registry_state)
        del self.events[event_count:]
