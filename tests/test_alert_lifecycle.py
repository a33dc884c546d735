import asyncio

import pytest

from rapidaid.core.exceptions import AlertNotFound, InvalidTransition
from rapidaid.models.alert import AlertStatus
from rapidaid.services.alert_lifecycle import AlertLifecycleManager

from conftest import make_report


@pytest.fixture
def alert(service):
    return asyncio.run(service.submit_report(make_report())).alert


@pytest.fixture
def lifecycle(service):
    return service.lifecycle


class TestTransitionTable:

    def test_allowed_from_pending(self):
        assert AlertLifecycleManager.get_allowed_transitions("pending") == ["acknowledged", "resolved", "cancelled"]

    def test_terminal_states_have_no_exits(self):
        assert AlertLifecycleManager.get_allowed_transitions("resolved") == []
        assert AlertLifecycleManager.get_allowed_transitions("cancelled") == []

    def test_same_state_is_not_a_transition(self):
        assert not AlertLifecycleManager.is_valid_transition("acknowledged", "acknowledged")

    def test_unknown_status_is_invalid(self):
        assert not AlertLifecycleManager.is_valid_transition("pending", "en-route")
        assert AlertLifecycleManager.get_allowed_transitions("en-route") == []


def test_acknowledge_sets_response_time(lifecycle, alert, clock):
    clock.advance(30)
    updated = asyncio.run(lifecycle.acknowledge(alert.id))

    assert updated.status == AlertStatus.ACKNOWLEDGED
    assert updated.response_time == clock.now
    assert updated.status_history[-1].from_status == "pending"
    assert updated.status_history[-1].to_status == "acknowledged"


def test_acknowledge_twice_is_rejected(lifecycle, alert):
    asyncio.run(lifecycle.acknowledge(alert.id))

    with pytest.raises(InvalidTransition) as excinfo:
        asyncio.run(lifecycle.acknowledge(alert.id))

    assert excinfo.value.from_status == "acknowledged"
    assert excinfo.value.allowed == ["resolved", "cancelled"]


def test_resolve_from_acknowledged(lifecycle, alert, clock):
    asyncio.run(lifecycle.acknowledge(alert.id))
    clock.advance(600)

    resolved = asyncio.run(lifecycle.resolve(alert.id, note="Fire extinguished"))

    assert resolved.status == AlertStatus.RESOLVED
    assert resolved.resolved_time == clock.now
    assert resolved.description == "Fire extinguished"
    assert len(resolved.status_history) == 3


def test_resolve_directly_from_pending_keeps_description(lifecycle, alert):
    resolved = asyncio.run(lifecycle.resolve(alert.id))

    assert resolved.status == AlertStatus.RESOLVED
    assert resolved.description == alert.description


def test_cancel_from_acknowledged(lifecycle, alert):
    asyncio.run(lifecycle.acknowledge(alert.id))
    assert asyncio.run(lifecycle.cancel(alert.id)).status == AlertStatus.CANCELLED


@pytest.mark.parametrize("terminal", ["resolve", "cancel"])
def test_no_exit_from_terminal_state(lifecycle, alert, terminal):
    asyncio.run(getattr(lifecycle, terminal)(alert.id))

    for action in (lifecycle.acknowledge, lifecycle.resolve, lifecycle.cancel):
        with pytest.raises(InvalidTransition):
            asyncio.run(action(alert.id))


def test_update_status_uses_same_guard(lifecycle, alert):
    updated = asyncio.run(lifecycle.update_status(alert.id, AlertStatus.ACKNOWLEDGED, changed_by="dashboard"))
    assert updated.response_time is not None
    assert updated.status_history[-1].changed_by == "dashboard"

    with pytest.raises(InvalidTransition):
        asyncio.run(lifecycle.update_status(alert.id, AlertStatus.PENDING))


def test_unknown_alert(lifecycle):
    with pytest.raises(AlertNotFound):
        asyncio.run(lifecycle.acknowledge("missing"))


def test_concurrent_change_is_detected(alert, alert_store):
    # Status moves between the read and the compare-and-set
    with pytest.raises(InvalidTransition):
        asyncio.run(alert_store.update_status(
            alert.id,
            expected_status=AlertStatus.ACKNOWLEDGED,
            changes={"status": AlertStatus.RESOLVED},
        ))
    assert asyncio.run(alert_store.find_by_id(alert.id)).status == AlertStatus.PENDING
