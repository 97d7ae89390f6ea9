import json

import pytest
from eth_utils import keccak

from conf_utils import CREATION_CODE, FACTORY_ADDRESS, USDC
from omyvault.errors import InvalidConfiguration, InvalidTickParams
from omyvault.factory import (
    VaultFactory,
    compute_vault_address,
    create2_address,
    load_creation_code,
    vault_salt,
)
from omyvault.pool import NATIVE, ZERO_ADDRESS
from omyvault.sim import SimPositionManager
from omyvault.vault import Vault


# address derivation


def test_create2_reference_vectors():
    # EIP-1014 examples 0 and 1
    assert (
        create2_address(ZERO_ADDRESS, b"\x00" * 32, keccak(b"\x00"))
        == "0x4D1A2e2bB4F88F0250f26Ffff098B0b30B26BF38"
    )
    assert (
        create2_address("0xdeadbeef00000000000000000000000000000000", b"\x00" * 32, keccak(b"\x00"))
        == "0xB928f69Bb1D91Cd65274e3c79d8986362984fDA3"
    )


def test_salt_depends_on_creator_and_nonce(pool_key, owner, alice):
    assert vault_salt(owner, pool_key, 0) != vault_salt(owner, pool_key, 1)
    assert vault_salt(owner, pool_key, 0) != vault_salt(alice, pool_key, 0)
    assert vault_salt(owner, pool_key, 7) == vault_salt(owner.lower(), pool_key, 7)


def test_predicted_address_matches_created(factory, pool_key, owner, agent):
    params = [
        (agent, -600, 600, True, 0),
        (None, -887270, 887270, False, 3),
        (agent, -60, 60, True, 1),
    ]
    for nonce, (vault_agent, lower, upper, swap_allowed, k) in enumerate(params):
        predicted = factory.compute_vault_address(
            owner, pool_key, nonce, vault_agent, lower, upper, swap_allowed, k
        )
        vault = factory.create_vault(pool_key, vault_agent, lower, upper, swap_allowed, k, sender=owner)
        assert vault.address == predicted
        assert factory.next_nonce(owner) == nonce + 1


def test_prediction_for_future_nonce(factory, pool_key, owner, agent):
    later = factory.compute_vault_address(owner, pool_key, 2, agent, -600, 600, True, 0)
    factory.create_vault(pool_key, agent, -600, 600, True, 0, sender=owner)
    factory.create_vault(pool_key, agent, -600, 600, True, 0, sender=owner)
    third = factory.create_vault(pool_key, agent, -600, 600, True, 0, sender=owner)
    assert third.address == later


def test_module_routine_matches_factory(factory, pool_key, owner, agent, position_manager, swap_router, permit2):
    expected = compute_vault_address(
        FACTORY_ADDRESS,
        CREATION_CODE,
        owner,
        pool_key,
        0,
        position_manager.address,
        swap_router.address,
        permit2.address,
        agent,
        -600,
        600,
        True,
        0,
    )
    assert factory.compute_vault_address(owner, pool_key, 0, agent, -600, 600, True, 0) == expected


def test_null_agent_and_none_predict_the_same(factory, pool_key, owner):
    assert factory.compute_vault_address(
        owner, pool_key, 0, None, -600, 600, True, 0
    ) == factory.compute_vault_address(owner, pool_key, 0, ZERO_ADDRESS, -600, 600, True, 0)


def test_every_parameter_changes_the_address(factory, pool_key, owner, agent):
    base = factory.compute_vault_address(owner, pool_key, 0, agent, -600, 600, True, 0)
    variants = [
        (owner, pool_key._replace(fee=3000), 0, agent, -600, 600, True, 0),
        (owner, pool_key, 0, None, -600, 600, True, 0),
        (owner, pool_key, 0, agent, -660, 600, True, 0),
        (owner, pool_key, 0, agent, -600, 660, True, 0),
        (owner, pool_key, 0, agent, -600, 600, False, 0),
        (owner, pool_key, 0, agent, -600, 600, True, 1),
    ]
    addresses = {factory.compute_vault_address(*v) for v in variants}
    assert base not in addresses
    assert len(addresses) == len(variants)


# creation


def test_create_vault_state(factory, pool_key, owner, agent):
    vault = factory.create_vault(pool_key, agent, -600, 600, True, 2, sender=owner)

    assert isinstance(vault, Vault)
    assert vault.owner == owner
    assert vault.agent == agent
    assert not vault.agent_paused
    assert vault.swap_allowed
    assert (vault.allowed_tick_lower, vault.allowed_tick_upper) == (-600, 600)
    assert vault.max_positions_k == 2
    assert vault.get_pool_key() == pool_key
    assert vault.position_count() == 0

    log = factory.get_logs("VaultCreated")[-1]
    assert log.args["creator"] == owner
    assert log.args["vault"] == vault.address
    assert log.args["nonce"] == 0


def test_directory(factory, pool_key, owner, alice, agent):
    a = factory.create_vault(pool_key, agent, -600, 600, True, 0, sender=owner)
    b = factory.create_vault(pool_key, agent, -600, 600, True, 0, sender=alice)
    c = factory.create_vault(pool_key, None, -600, 600, False, 0, sender=owner)

    assert factory.get_vaults_by_creator(owner) == [a.address, c.address]
    assert factory.get_vaults_by_creator(alice) == [b.address]
    assert factory.get_all_vaults() == [a.address, b.address, c.address]
    assert factory.total_vaults() == 3
    assert factory.is_vault(b.address)
    assert factory.is_vault(b.address.lower())
    assert not factory.is_vault(owner)
    assert factory.get_vault(c.address) is c
    assert factory.next_nonce(owner) == 2
    assert factory.next_nonce(alice) == 1


def test_same_params_different_creators(factory, pool_key, owner, alice, agent):
    a = factory.create_vault(pool_key, agent, -600, 600, True, 0, sender=owner)
    b = factory.create_vault(pool_key, agent, -600, 600, True, 0, sender=alice)
    assert a.address != b.address


def test_failed_create_keeps_nonce(factory, pool_key, owner, agent):
    with pytest.raises(InvalidTickParams):
        factory.create_vault(pool_key, agent, 600, -600, True, 0, sender=owner)
    with pytest.raises(InvalidConfiguration):
        factory.create_vault(pool_key, agent, -600, 600, True, -1, sender=owner)

    assert factory.next_nonce(owner) == 0
    assert factory.total_vaults() == 0
    assert not factory.get_logs("VaultCreated")


def test_factory_rejects_null_collaborators(ledger, permit2, swap_router):
    position_manager = SimPositionManager(ZERO_ADDRESS, ledger, permit2)
    with pytest.raises(InvalidConfiguration):
        VaultFactory(FACTORY_ADDRESS, position_manager, swap_router, permit2, ledger, CREATION_CODE)


def test_factory_rejects_empty_creation_code(ledger, permit2, position_manager, swap_router):
    with pytest.raises(InvalidConfiguration):
        VaultFactory(FACTORY_ADDRESS, position_manager, swap_router, permit2, ledger, b"")


def test_vault_rejects_null_owner(pool_key, ledger, permit2, position_manager, swap_router):
    with pytest.raises(InvalidConfiguration):
        Vault(FACTORY_ADDRESS, ZERO_ADDRESS, pool_key, position_manager, swap_router, permit2, ledger)


def test_vault_rejects_bad_bounds(pool_key, owner, ledger, permit2, position_manager, swap_router):
    with pytest.raises(InvalidTickParams):
        Vault(
            FACTORY_ADDRESS,
            owner,
            pool_key,
            position_manager,
            swap_router,
            permit2,
            ledger,
            allowed_tick_lower=60,
            allowed_tick_upper=60,
        )


def test_token_pool_vault(factory, owner, agent):
    weth = "0x4200000000000000000000000000000000000006"
    token_pool = (weth, USDC, 3000, 60, ZERO_ADDRESS)
    vault = factory.create_vault(token_pool, agent, -600, 600, True, 0, sender=owner)
    assert vault.get_pool_key().currency0 == weth
    assert vault.get_pool_key().currency1 != NATIVE


# artifacts


def test_load_creation_code_forge(tmp_path):
    path = tmp_path / "OmyVault.json"
    path.write_text(json.dumps({"abi": [], "bytecode": {"object": "0x" + CREATION_CODE.hex()}}))
    assert load_creation_code(path) == CREATION_CODE


def test_load_creation_code_hardhat(tmp_path):
    path = tmp_path / "OmyVault.json"
    path.write_text(json.dumps({"bytecode": "0x" + CREATION_CODE.hex()}))
    assert load_creation_code(str(path)) == CREATION_CODE
