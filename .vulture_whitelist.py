from enrollment.ca.client import CAClient
from enrollment.domain.models import EnrollmentRun, TrustAnchor
from enrollment.domain.state_machine import StateMachine
from enrollment.domain.state_machines import EnrollmentStateMachine
from enrollment.domain.states import EnrollmentEvent, EnrollmentState
from enrollment.main import main
from shared.config import Settings

# Pydantic Settings
Settings.model_config
Settings.CERTNAME
Settings.DNS_ALT_NAMES

# State machine introspection (used by tests and callers)
StateMachine.can_transition
StateMachine.get_valid_events
EnrollmentStateMachine.TERMINAL_STATES

# Enums referenced by value through the transition table
EnrollmentState.CSR_BUILT
EnrollmentEvent.ABORTED

# Results kept for callers inspecting a finished run
TrustAnchor.crl_path
EnrollmentRun.warnings
CAClient.is_trusted

# Console script
main
