import pytest

from gov2private.core.errors import InvalidTransitionError
from gov2private.core.status import StatusPolicy, ensure_transition
from gov2private.types import Run


def test_forward_path_is_allowed() -> None:
    policy = StatusPolicy()
    assert policy.allows("queued", "role_selection")
    assert policy.allows("role_selection", "generating")
    assert policy.allows("generating", "done")
    assert policy.allows("generating", "error")


def test_terminal_states_do_not_move_forward() -> None:
    policy = StatusPolicy()
    assert not policy.allows("done", "generating")
    assert not policy.allows("error", "role_selection")
    with pytest.raises(InvalidTransitionError):
        policy.ensure("done", "generating")


def test_restart_allows_reentering_generating() -> None:
    policy = StatusPolicy(restart=True)
    assert policy.allows("done", "generating")
    assert policy.allows("error", "generating")
    assert not policy.allows("queued", "generating")


def test_legacy_aliases_are_canonicalized() -> None:
    policy = StatusPolicy()
    assert policy.allows("awaiting_role", "running")
    assert policy.allows("pending", "done")


def test_unknown_target_status_is_rejected() -> None:
    with pytest.raises(ValueError):
        StatusPolicy().allows("queued", "finished")


def test_run_model_reads_legacy_status_names() -> None:
    run = Run(id="r1", created_at="2026-01-01T00:00:00Z", updated_at="2026-01-01T00:00:00Z", status="awaiting_role")
    assert run.status == "role_selection"


def test_ensure_transition_helper() -> None:
    ensure_transition("queued", "role_selection")
    ensure_transition("done", "generating", restart=True)
    with pytest.raises(InvalidTransitionError):
        ensure_transition("done", "generating")
