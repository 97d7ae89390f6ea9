"""
Owner / agent roles and the agent pause flag.

A flat record with straight-line predicate checks; pausing is a field that
composes with the identity check rather than a separate lifecycle state.
"""

from dataclasses import dataclass

from eth_utils import to_checksum_address

from .errors import AgentInactive, Unauthorized
from .pool import is_zero


def normalize_agent(agent: str | None) -> str | None:
    """The null address means "no agent"; store it as ``None``."""
    if is_zero(agent):
        return None
    return to_checksum_address(agent)


@dataclass
class Roles:
    owner: str
    agent: str | None = None
    agent_paused: bool = False

    @property
    def agent_enabled(self) -> bool:
        return self.agent is not None

    def is_owner(self, caller: str) -> bool:
        return to_checksum_address(caller) == self.owner

    def is_agent(self, caller: str) -> bool:
        return self.agent is not None and to_checksum_address(caller) == self.agent

    def require_owner(self, caller: str) -> None:
        if not self.is_owner(caller):
            raise Unauthorized(f"{caller} is not the vault owner")

    def require_active_agent(self, caller: str) -> None:
        if not self.is_agent(caller):
            raise Unauthorized(f"{caller} is not the vault agent")
        if self.agent_paused:
            raise AgentInactive("agent is paused")
