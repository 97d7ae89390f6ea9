"""
Failure taxonomy for vault and factory operations.

Every failure aborts the whole operation; the vault restores its state (and
that of any checkpointable collaborator) before the exception escapes.
"""


class VaultError(Exception):
    """Base class for every vault/factory failure."""


class Unauthorized(VaultError):
    pass


class AgentInactive(VaultError):
    pass


class InvalidConfiguration(VaultError):
    pass


class InvalidTickParams(VaultError):
    pass


class PositionLimitExceeded(VaultError):
    pass


class UnknownPosition(VaultError):
    pass


class DuplicatePosition(VaultError):
    pass


class PositionOutOfBounds(VaultError):
    pass


class SwapDisabled(VaultError):
    pass


class InsufficientOutput(VaultError):
    pass


class TransferFailure(VaultError):
    pass


class Reentrancy(VaultError):
    pass


class ExternalCallFailure(VaultError):
    """A collaborator rejected the request; ``reason`` is its own message."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
