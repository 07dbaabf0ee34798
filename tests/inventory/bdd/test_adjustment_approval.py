"""BDD tests for the adjustment approval workflow."""

from inventory.adjustment.adjustment import InventoryAdjustment
from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/adjustment_approval.feature")


def _create(scenario_state, service, user, adjustment_type, quantity_change):
    return service.create_adjustment(
        product_id=scenario_state["product"].id,
        warehouse_id=scenario_state["warehouse"].id,
        adjustment_type=adjustment_type,
        quantity_change=quantity_change,
        reason="Cycle count",
        user_id=user,
    )


def _adjustment(scenario_state):
    return current_domain.repository_for(InventoryAdjustment).get(scenario_state["adjustment_id"])


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('"{user}" recorded a theft removing {qty:d} units'))
def _(scenario_state, service, user, qty):
    scenario_state["adjustment_id"] = _create(scenario_state, service, user, "theft", -qty).id


@given(parsers.cfparse('"{user}" rejected the adjustment'))
def _(scenario_state, service, user):
    service.reject_adjustment(scenario_state["adjustment_id"], user)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('"{user}" records found stock of {qty:d} units'))
def _(scenario_state, service, user, qty):
    scenario_state["adjustment_id"] = _create(scenario_state, service, user, "found", qty).id


@when(parsers.cfparse('"{user}" records a theft removing {qty:d} units'))
def _(scenario_state, service, user, qty):
    scenario_state["adjustment_id"] = _create(scenario_state, service, user, "theft", -qty).id


@when(parsers.cfparse('"{user}" approves the adjustment'))
def _(scenario_state, service, attempt, user):
    attempt(lambda: service.approve_adjustment(scenario_state["adjustment_id"], user))


@when(parsers.cfparse('"{user}" rejects the adjustment'))
def _(scenario_state, service, attempt, user):
    attempt(lambda: service.reject_adjustment(scenario_state["adjustment_id"], user))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the adjustment is "{status}"'))
def _(scenario_state, status):
    assert _adjustment(scenario_state).status == status


@then(parsers.cfparse('the adjustment was approved by "{user}"'))
def _(scenario_state, user):
    assert _adjustment(scenario_state).approved_by == user
