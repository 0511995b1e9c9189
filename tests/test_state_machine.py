from __future__ import annotations

import logging

import pytest

from compliance.state_machine import (
    TERMINAL_STATES,
    InvalidTransitionError,
    can_transition,
    transition_state,
)


def test_valid_transitions() -> None:
    assert transition_state("NOT_STARTED", "RUNNING") == "RUNNING"
    assert transition_state("RUNNING", "COMPLETED") == "COMPLETED"
    assert transition_state("running", " failed ") == "FAILED"


def test_invalid_transition_raises() -> None:
    with pytest.raises(InvalidTransitionError, match="Invalid transition"):
        transition_state("NOT_STARTED", "COMPLETED")


def test_unknown_state_raises() -> None:
    with pytest.raises(InvalidTransitionError, match="Unknown state"):
        transition_state("MISSING", "RUNNING")


def test_terminal_states_have_no_outbound_transitions() -> None:
    for state in TERMINAL_STATES:
        assert not can_transition(state, "RUNNING")
        with pytest.raises(InvalidTransitionError):
            transition_state(state, "RUNNING")


def test_transitions_are_logged_with_invoice_number(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="compliance.state_machine"):
        transition_state("NOT_STARTED", "RUNNING", invoice_number="INV-7")
    record = caplog.records[-1]
    assert record.invoice_number == "INV-7"
    assert record.state == "RUNNING"
    assert "NOT_STARTED -> RUNNING" in record.getMessage()


def test_rejected_transition_is_not_logged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="compliance.state_machine"):
        with pytest.raises(InvalidTransitionError):
            transition_state("COMPLETED", "RUNNING")
    assert caplog.records == []
