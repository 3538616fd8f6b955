"""State machine for a certificate enrollment run.

The run moves strictly forward; every failure lands in a terminal state and
there is no way back to an earlier step.

Invariants:
    - SIGNED, REJECTED, TIMED_OUT and FAILED are terminal
    - REJECTED is only reachable from CSR_SUBMITTED
    - TIMED_OUT and SIGNED are only reachable from POLLING
    - ABORTED moves any non-terminal state to FAILED
"""

from typing import TYPE_CHECKING

from enrollment.domain.state_machine import StateMachine
from enrollment.domain.states import TERMINAL_STATES as _TERMINAL
from enrollment.domain.states import EnrollmentEvent as Event
from enrollment.domain.states import EnrollmentState as State

if TYPE_CHECKING:
    from enrollment.domain.models import EnrollmentRun

EnrollmentTransitions = dict[tuple[State, Event], State]

_FORWARD: EnrollmentTransitions = {
    (State.INIT, Event.TRUST_ESTABLISHED): State.CA_TRUSTED,
    (State.CA_TRUSTED, Event.NO_EXISTING_CERT): State.CHECKED_NO_EXISTING_CERT,
    (State.CHECKED_NO_EXISTING_CERT, Event.KEY_GENERATED): State.KEY_GENERATED,
    (State.KEY_GENERATED, Event.CSR_BUILT): State.CSR_BUILT,
    (State.CSR_BUILT, Event.CSR_SUBMITTED): State.CSR_SUBMITTED,
    # Submission response classified
    (State.CSR_SUBMITTED, Event.CSR_ACCEPTED): State.POLLING,
    (State.CSR_SUBMITTED, Event.CSR_REJECTED): State.REJECTED,
    # Polling outcomes
    (State.POLLING, Event.CERTIFICATE_SIGNED): State.SIGNED,
    (State.POLLING, Event.WAIT_EXPIRED): State.TIMED_OUT,
}

_ABORTS: EnrollmentTransitions = {
    (state, Event.ABORTED): State.FAILED for state in State if state not in _TERMINAL
}


class EnrollmentStateMachine(StateMachine[State, Event]):
    """State machine for an EnrollmentRun.

    Transition Table:
        (INIT, TRUST_ESTABLISHED) -> CA_TRUSTED
        (CA_TRUSTED, NO_EXISTING_CERT) -> CHECKED_NO_EXISTING_CERT
        (CHECKED_NO_EXISTING_CERT, KEY_GENERATED) -> KEY_GENERATED
        (KEY_GENERATED, CSR_BUILT) -> CSR_BUILT
        (CSR_BUILT, CSR_SUBMITTED) -> CSR_SUBMITTED
        (CSR_SUBMITTED, CSR_ACCEPTED) -> POLLING
        (CSR_SUBMITTED, CSR_REJECTED) -> REJECTED
        (POLLING, CERTIFICATE_SIGNED) -> SIGNED
        (POLLING, WAIT_EXPIRED) -> TIMED_OUT
        (<any non-terminal>, ABORTED) -> FAILED
    """

    TRANSITIONS: EnrollmentTransitions = {**_FORWARD, **_ABORTS}
    TERMINAL_STATES = _TERMINAL

    def __init__(self, run: "EnrollmentRun"):
        self._run = run

    def _get_state(self) -> State:
        return State(self._run.state)

    def _set_state(self, state: State) -> None:
        self._run.state = state

    def _get_entity_id(self) -> str:
        return self._run.cert_name

    def abort(self) -> State:
        """Move a live run to FAILED. A run already in a terminal state is left alone."""
        if self.is_terminal:
            return self._get_state()
        return self.transition(Event.ABORTED)
