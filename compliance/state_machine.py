from __future__ import annotations

import logging
from typing import Final

from compliance.logger import log_validation_event

logger = logging.getLogger(__name__)


class InvalidTransitionError(ValueError):
    pass


NOT_STARTED: Final[str] = "NOT_STARTED"
RUNNING: Final[str] = "RUNNING"
COMPLETED: Final[str] = "COMPLETED"
FAILED: Final[str] = "FAILED"

TERMINAL_STATES: Final[set[str]] = {COMPLETED, FAILED}

# One validation call; nothing is persisted between states.
ALLOWED_TRANSITIONS: Final[dict[str, set[str]]] = {
    NOT_STARTED: {RUNNING},
    RUNNING: {COMPLETED, FAILED},
    COMPLETED: set(),
    FAILED: set(),
}


def _normalize(state: str) -> str:
    return state.strip().upper()


def can_transition(from_state: str, to_state: str) -> bool:
    return _normalize(to_state) in ALLOWED_TRANSITIONS.get(_normalize(from_state), set())


def transition_state(from_state: str, to_state: str, *, invoice_number: str | None = None) -> str:
    """Move one validation run to ``to_state`` and return the new state.

    Each accepted move is logged at DEBUG with the invoice number, so a run can
    be followed from RUNNING to its terminal state in the JSON log.
    """
    source = _normalize(from_state)
    target = _normalize(to_state)
    for state, raw in ((source, from_state), (target, to_state)):
        if state not in ALLOWED_TRANSITIONS:
            raise InvalidTransitionError(f"Unknown state: {raw}")
    if target not in ALLOWED_TRANSITIONS[source]:
        raise InvalidTransitionError(f"Invalid transition: {source} -> {target}")
    log_validation_event(
        logger,
        logging.DEBUG,
        f"Validation run {source} -> {target}",
        invoice_number=invoice_number,
        state=target,
    )
    return target
