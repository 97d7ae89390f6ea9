"""
VaultFactory: deterministic (CREATE2) vault deployment and a directory of
deployed vaults.

Prediction and creation both go through :func:`compute_vault_address`, so a
predicted address is the deployed address for the same creator nonce.
"""

import json
import logging
from pathlib import Path

from eth_abi import encode as abi_encode
from eth_utils import keccak, to_bytes, to_checksum_address

from . import bounds
from .access import normalize_agent
from .errors import InvalidConfiguration
from .interfaces import Checkpointable, Ledger, Permit2, PositionManager, SwapRouter
from .pool import POOL_KEY_TYPE, PoolKey, checksum, is_zero
from .vault import Event, Vault

logger = logging.getLogger(__name__)

CONSTRUCTOR_TYPES = [
    "address",  # owner
    POOL_KEY_TYPE,
    "address",  # positionManager
    "address",  # universalRouter
    "address",  # permit2
    "address",  # agent
    "int24",  # allowedTickLower
    "int24",  # allowedTickUpper
    "bool",  # swapAllowed
    "uint256",  # maxPositionsK
]


def load_creation_code(path: str | Path) -> bytes:
    """Read creation bytecode from a compiled artifact (``bytecode.object``).

    Accepts forge (``{"bytecode": {"object": "0x.."}}``) and hardhat
    (``{"bytecode": "0x.."}``) layouts.
    """
    with open(path) as f:
        artifact = json.load(f)
    bytecode = artifact["bytecode"]
    if isinstance(bytecode, dict):
        bytecode = bytecode["object"]
    return to_bytes(hexstr=bytecode)


def vault_salt(creator: str, pool_key: PoolKey, nonce: int) -> bytes:
    return keccak(
        abi_encode(
            ["address", POOL_KEY_TYPE, "uint256"],
            [to_checksum_address(creator), tuple(pool_key), nonce],
        )
    )


def vault_init_code(
    creation_code: bytes,
    owner: str,
    pool_key: PoolKey,
    position_manager: str,
    swap_router: str,
    permit2: str,
    agent: str | None,
    allowed_tick_lower: int,
    allowed_tick_upper: int,
    swap_allowed: bool,
    max_positions_k: int,
) -> bytes:
    args = abi_encode(
        CONSTRUCTOR_TYPES,
        [
            to_checksum_address(owner),
            tuple(pool_key),
            to_checksum_address(position_manager),
            to_checksum_address(swap_router),
            to_checksum_address(permit2),
            checksum(agent),
            allowed_tick_lower,
            allowed_tick_upper,
            swap_allowed,
            max_positions_k,
        ],
    )
    return creation_code + args


def create2_address(deployer: str, salt: bytes, init_code_hash: bytes) -> str:
    """keccak256(0xff ++ deployer ++ salt ++ keccak256(initCode))[12:]"""
    digest = keccak(b"\xff" + to_bytes(hexstr=deployer) + salt + init_code_hash)
    return to_checksum_address(digest[12:])


def compute_vault_address(
    factory: str,
    creation_code: bytes,
    creator: str,
    pool_key: PoolKey,
    nonce: int,
    position_manager: str,
    swap_router: str,
    permit2: str,
    agent: str | None,
    allowed_tick_lower: int,
    allowed_tick_upper: int,
    swap_allowed: bool,
    max_positions_k: int,
) -> str:
    bounds.validate_tick_order(allowed_tick_lower, allowed_tick_upper)
    if max_positions_k < 0:
        raise InvalidConfiguration("max positions must be non-negative")
    if nonce < 0:
        raise InvalidConfiguration("nonce must be non-negative")
    salt = vault_salt(creator, pool_key, nonce)
    init_code = vault_init_code(
        creation_code,
        creator,
        pool_key,
        position_manager,
        swap_router,
        permit2,
        agent,
        allowed_tick_lower,
        allowed_tick_upper,
        swap_allowed,
        max_positions_k,
    )
    return create2_address(factory, salt, keccak(init_code))


class VaultFactory(Checkpointable):
    def __init__(
        self,
        address: str,
        position_manager: PositionManager,
        swap_router: SwapRouter,
        permit2: Permit2,
        ledger: Ledger,
        creation_code: bytes,
    ):
        for name, collaborator in (
            ("position manager", position_manager),
            ("swap router", swap_router),
            ("permit2", permit2),
        ):
            if is_zero(getattr(collaborator, "address", None)):
                raise InvalidConfiguration(f"{name} address must be set")
        if not creation_code:
            raise InvalidConfiguration("vault creation code is empty")

        self.address = to_checksum_address(address)
        self.position_manager = position_manager
        self.swap_router = swap_router
        self.permit2 = permit2
        self.ledger = ledger
        self.creation_code = bytes(creation_code)

        self._nonces: dict[str, int] = {}
        self._all_vaults: list[str] = []
        self._by_creator: dict[str, list[str]] = {}
        self._vaults: dict[str, Vault] = {}
        self.events: list[Event] = []
        ledger.journal.track(self)

    # ------------------------------------------------------------------
    # Deployment
    # ------------------------------------------------------------------

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
        return compute_vault_address(
            self.address,
            self.creation_code,
            creator,
            PoolKey.create(*pool_key),
            nonce,
            self.position_manager.address,
            self.swap_router.address,
            self.permit2.address,
            normalize_agent(agent),
            allowed_tick_lower,
            allowed_tick_upper,
            bool(swap_allowed),
            max_positions_k,
        )

    def create_vault(
        self,
        pool_key: PoolKey,
        agent: str | None,
        allowed_tick_lower: int,
        allowed_tick_upper: int,
        swap_allowed: bool,
        max_positions_k: int,
        *,
        sender: str,
    ) -> Vault:
        creator = to_checksum_address(sender)
        pool_key = PoolKey.create(*pool_key)
        nonce = self._nonces.get(creator, 0)

        address = self.compute_vault_address(
            creator,
            pool_key,
            nonce,
            agent,
            allowed_tick_lower,
            allowed_tick_upper,
            swap_allowed,
            max_positions_k,
        )
        if address in self._vaults:
            raise InvalidConfiguration(f"vault already deployed at {address}")

        vault = Vault(
            address,
            creator,
            pool_key,
            self.position_manager,
            self.swap_router,
            self.permit2,
            self.ledger,
            agent=agent,
            allowed_tick_lower=allowed_tick_lower,
            allowed_tick_upper=allowed_tick_upper,
            swap_allowed=swap_allowed,
            max_positions_k=max_positions_k,
        )

        self._nonces[creator] = nonce + 1
        self._all_vaults.append(address)
        self._by_creator.setdefault(creator, []).append(address)
        self._vaults[address] = vault
        self.events.append(
            Event(
                "VaultCreated",
                {"creator": creator, "vault": address, "pool_key": pool_key, "nonce": nonce},
            )
        )
        logger.info(
            "VaultCreated creator=%s vault=%s nonce=%d pool_id=%s",
            creator,
            address,
            nonce,
            pool_key.pool_id(),
        )
        return vault

    # ------------------------------------------------------------------
    # Directory
    # ------------------------------------------------------------------

    def get_vaults_by_creator(self, creator: str) -> list[str]:
        return list(self._by_creator.get(to_checksum_address(creator), []))

    def get_all_vaults(self) -> list[str]:
        return list(self._all_vaults)

    def total_vaults(self) -> int:
        return len(self._all_vaults)

    def next_nonce(self, creator: str) -> int:
        return self._nonces.get(to_checksum_address(creator), 0)

    def is_vault(self, address: str) -> bool:
        return to_checksum_address(address) in self._vaults

    def get_vault(self, address: str) -> Vault:
        return self._vaults[to_checksum_address(address)]

    def get_logs(self, name: str) -> list[Event]:
        return [e for e in self.events if e.name == name]

    def snapshot(self):
        return (
            dict(self._nonces),
            list(self._all_vaults),
            {creator: list(vaults) for creator, vaults in self._by_creator.items()},
            dict(self._vaults),
            len(self.events),
        )

    def restore(self, state) -> None:
        nonces, all_vaults, by_creator, vaults, event_count = state
        self._nonces = dict(nonces)
        self._all_vaults = list(all_vaults)
        self._by_creator = {creator: list(v) for creator, v in by_creator.items()}
        self._vaults = dict(vaults)
        del self.events[event_count:]
