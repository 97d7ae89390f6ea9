import pytest
from eth_account import Account

from conf_utils import CREATION_CODE, FACTORY_ADDRESS, USDC
from omyvault import config
from omyvault.factory import VaultFactory
from omyvault.pool import NATIVE, PoolKey
from omyvault.sim import InMemoryLedger, SimPermit2, SimPositionManager, SimSwapRouter


# accounts


@pytest.fixture(scope="session")
def owner():
    return Account.create().address


@pytest.fixture(scope="session")
def agent():
    return Account.create().address


@pytest.fixture(scope="session")
def alice():
    return Account.create().address


@pytest.fixture(scope="session")
def bob():
    return Account.create().address


# collaborators


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def permit2(ledger):
    return SimPermit2(config.PERMIT2, ledger)


@pytest.fixture
def position_manager(ledger, permit2):
    return SimPositionManager(config.POSITION_MANAGER, ledger, permit2)


@pytest.fixture
def swap_router(ledger, permit2):
    router = SimSwapRouter(config.UNIVERSAL_ROUTER, ledger, permit2, price_num=2000, price_den=1)
    ledger.mint(NATIVE, router.address, 10**24)
    ledger.mint(USDC, router.address, 10**24)
    return router


@pytest.fixture
def factory(position_manager, swap_router, permit2, ledger):
    return VaultFactory(
        FACTORY_ADDRESS, position_manager, swap_router, permit2, ledger, CREATION_CODE
    )


# vaults


@pytest.fixture
def pool_key():
    return PoolKey.create(NATIVE, USDC, 500, 60)


@pytest.fixture
def vault(factory, pool_key, owner, agent):
    return factory.create_vault(pool_key, agent, -600, 600, True, 0, sender=owner)


@pytest.fixture
def funded_vault(vault, ledger, owner, position_manager, swap_router):
    ledger.mint(NATIVE, vault.address, 10**21)
    ledger.mint(USDC, vault.address, 10**12)
    for spender in (position_manager.address, swap_router.address):
        vault.grant_spend_allowance(
            USDC, spender, config.MAX_UINT160, config.MAX_UINT48, sender=owner
        )
    return vault
