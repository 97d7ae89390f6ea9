"""
Boundary of the external collaborators the vault drives.

Only capabilities are fixed here; pricing, settlement and token mechanics
live behind them. Implementations signal a rejected request by raising
:class:`omyvault.errors.ExternalCallFailure`.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager


class Checkpointable(ABC):
    """State that can be captured and put back when an operation aborts."""

    @abstractmethod
    def snapshot(self):
        ...

    @abstractmethod
    def restore(self, state) -> None:
        ...


@contextmanager
def checkpoint(*participants):
    """Restore every checkpointable participant if the body raises."""
    saved = [
        (p, p.snapshot()) for p in participants if isinstance(p, Checkpointable)
    ]
    try:
        yield
    except BaseException:
        for participant, state in reversed(saved):
            participant.restore(state)
        raise


class Journal(Checkpointable):
    """Every participant sharing one ledger, captured and restored together.

    Calls that reach another vault or the factory mid-request (from a receive
    hook, say) unwind with the request that made them.
    """

    def __init__(self):
        self._participants: list[Checkpointable] = []

    def track(self, participant: Checkpointable) -> None:
        if not any(p is participant for p in self._participants):
            self._participants.append(participant)

    def __contains__(self, participant) -> bool:
        return any(p is participant for p in self._participants)

    def snapshot(self):
        return [(p, p.snapshot()) for p in self._participants]

    def restore(self, state) -> None:
        # participants tracked after the snapshot were created inside the
        # aborted scope and are forgotten with it
        for participant, saved in reversed(state):
            participant.restore(saved)


class Ledger(ABC):
    """Native-asset and fungible-token balances.

    ``journal`` holds every piece of state that shares these balances.
    """

    journal: Journal

    @abstractmethod
    def balance_of(self, currency: str, account: str) -> int:
        ...

    @abstractmethod
    def send_native(self, sender: str, to: str, amount: int) -> bool:
        """Push native value; False when the recipient rejects it."""

    @abstractmethod
    def transfer(self, token: str, sender: str, to: str, amount: int) -> None:
        ...

    @abstractmethod
    def transfer_from(
        self, token: str, spender: str, owner: str, to: str, amount: int
    ) -> None:
        ...

    @abstractmethod
    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        ...

    @abstractmethod
    def allowance(self, token: str, owner: str, spender: str) -> int:
        ...


class Permit2(ABC):
    """Amount- and time-bounded allowances layered over token allowances."""

    address: str

    @abstractmethod
    def approve(
        self, token: str, spender: str, amount: int, expiration: int, *, sender: str
    ) -> None:
        ...

    @abstractmethod
    def allowance(self, owner: str, token: str, spender: str) -> tuple[int, int, int]:
        """Returns (amount, expiration, nonce)."""

    @abstractmethod
    def transfer_from(
        self, owner: str, to: str, amount: int, token: str, *, sender: str
    ) -> None:
        ...


class PositionManager(ABC):
    address: str

    @abstractmethod
    def next_token_id(self) -> int:
        ...

    @abstractmethod
    def modify_liquidities(
        self, unlock_data: bytes, deadline: int, *, sender: str, value: int = 0
    ) -> None:
        """Apply every action in unlock_data atomically or raise."""


class SwapRouter(ABC):
    address: str

    @abstractmethod
    def execute(
        self,
        commands: bytes,
        inputs: list[bytes],
        deadline: int,
        *,
        sender: str,
        value: int = 0,
    ) -> None:
        ...
