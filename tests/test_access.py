import pytest

from conf_utils import DEADLINE, USDC, mint_position
from omyvault.access import Roles, normalize_agent
from omyvault.errors import AgentInactive, InvalidConfiguration, Unauthorized
from omyvault.pool import ZERO_ADDRESS


# Roles


def test_roles_owner_check(owner, alice):
    roles = Roles(owner=owner)
    roles.require_owner(owner)
    roles.require_owner(owner.lower())
    with pytest.raises(Unauthorized):
        roles.require_owner(alice)


def test_roles_agent_check(owner, agent, alice):
    roles = Roles(owner=owner, agent=agent)
    roles.require_active_agent(agent)
    with pytest.raises(Unauthorized):
        roles.require_active_agent(alice)
    with pytest.raises(Unauthorized):
        roles.require_active_agent(owner)


def test_roles_pause_blocks_true_agent(owner, agent, alice):
    roles = Roles(owner=owner, agent=agent, agent_paused=True)
    with pytest.raises(AgentInactive):
        roles.require_active_agent(agent)
    # identity is still checked first
    with pytest.raises(Unauthorized):
        roles.require_active_agent(alice)


def test_null_agent_is_disabled(owner):
    assert normalize_agent(ZERO_ADDRESS) is None
    assert normalize_agent(None) is None
    roles = Roles(owner=owner, agent=normalize_agent(ZERO_ADDRESS))
    assert not roles.agent_enabled
    with pytest.raises(Unauthorized):
        roles.require_active_agent(ZERO_ADDRESS)


# vault role management


def test_set_agent(vault, owner, alice):
    vault.set_agent(alice, sender=owner)
    assert vault.agent == alice
    assert vault.get_logs("AgentUpdated")[-1].args == {"agent": alice}


def test_set_agent_no_perms(vault, agent, alice):
    with pytest.raises(Unauthorized):
        vault.set_agent(alice, sender=agent)
    assert vault.agent == agent


def test_set_agent_paused(vault, owner):
    vault.set_agent_paused(True, sender=owner)
    assert vault.agent_paused
    vault.set_agent_paused(False, sender=owner)
    assert not vault.agent_paused
    assert [e.args["paused"] for e in vault.get_logs("AgentPaused")] == [True, False]


def test_set_agent_paused_no_perms(vault, agent):
    with pytest.raises(Unauthorized):
        vault.set_agent_paused(True, sender=agent)
    assert not vault.agent_paused


def test_set_swap_allowed(vault, owner, agent):
    vault.set_swap_allowed(False, sender=owner)
    assert not vault.swap_allowed
    assert vault.get_logs("SwapAllowed")[-1].args == {"allowed": False}
    with pytest.raises(Unauthorized):
        vault.set_swap_allowed(True, sender=agent)


def test_transfer_ownership(vault, owner, alice):
    vault.transfer_ownership(alice, sender=owner)
    assert vault.owner == alice
    with pytest.raises(Unauthorized):
        vault.set_agent(None, sender=owner)
    vault.set_agent(None, sender=alice)


def test_transfer_ownership_to_null(vault, owner):
    with pytest.raises(InvalidConfiguration):
        vault.transfer_ownership(ZERO_ADDRESS, sender=owner)
    assert vault.owner == owner


def test_paused_agent_is_inactive(funded_vault, owner, agent):
    funded_vault.set_agent_paused(True, sender=owner)
    with pytest.raises(AgentInactive):
        mint_position(funded_vault, agent)

    funded_vault.set_agent_paused(False, sender=owner)
    mint_position(funded_vault, agent)
    assert funded_vault.position_count() == 1


def test_owner_operations_unaffected_by_pause(funded_vault, owner):
    funded_vault.set_agent_paused(True, sender=owner)
    funded_vault.set_allowed_tick_range(-1200, 1200, sender=owner)
    funded_vault.withdraw(USDC, 1, owner, sender=owner)
    assert funded_vault.allowed_tick_lower == -1200


@pytest.mark.parametrize("disabled", [None, ZERO_ADDRESS])
def test_disabled_agent_rejects_everyone(funded_vault, owner, agent, alice, disabled):
    token_id = mint_position(funded_vault, agent)
    funded_vault.set_agent(disabled, sender=owner)
    assert funded_vault.agent is None

    for caller in (agent, alice, owner, ZERO_ADDRESS):
        with pytest.raises(Unauthorized):
            mint_position(funded_vault, caller)
        with pytest.raises(Unauthorized):
            funded_vault.increase_liquidity(token_id, 1, 10, 10, DEADLINE, sender=caller)
        with pytest.raises(Unauthorized):
            funded_vault.decrease_liquidity_to_vault(token_id, 1, 0, 0, DEADLINE, sender=caller)
        with pytest.raises(Unauthorized):
            funded_vault.collect_fees_to_vault(token_id, 0, 0, DEADLINE, sender=caller)
        with pytest.raises(Unauthorized):
            funded_vault.burn_position_to_vault(token_id, 0, 0, DEADLINE, sender=caller)
        with pytest.raises(Unauthorized):
            funded_vault.swap_exact_input_single(True, 10, 0, DEADLINE, sender=caller)

    assert funded_vault.position_count() == 1
