from enum import StrEnum


class EnrollmentState(StrEnum):
    """All possible states of one enrollment run."""

    INIT = "init"
    CA_TRUSTED = "ca_trusted"
    CHECKED_NO_EXISTING_CERT = "checked_no_existing_cert"
    KEY_GENERATED = "key_generated"
    CSR_BUILT = "csr_built"
    CSR_SUBMITTED = "csr_submitted"
    POLLING = "polling"
    SIGNED = "signed"  # Terminal state
    REJECTED = "rejected"  # Terminal state
    TIMED_OUT = "timed_out"  # Terminal state
    FAILED = "failed"  # Terminal state


TERMINAL_STATES = frozenset(
    {
        EnrollmentState.SIGNED,
        EnrollmentState.REJECTED,
        EnrollmentState.TIMED_OUT,
        EnrollmentState.FAILED,
    }
)


class EnrollmentEvent(StrEnum):
    """All possible events that trigger enrollment transitions."""

    TRUST_ESTABLISHED = "trust_established"
    NO_EXISTING_CERT = "no_existing_cert"
    KEY_GENERATED = "key_generated"
    CSR_BUILT = "csr_built"
    CSR_SUBMITTED = "csr_submitted"
    CSR_ACCEPTED = "csr_accepted"
    CSR_REJECTED = "csr_rejected"
    CERTIFICATE_SIGNED = "certificate_signed"
    WAIT_EXPIRED = "wait_expired"
    ABORTED = "aborted"


class SubmissionOutcome(StrEnum):
    """Classification of the CA's answer to a CSR submission."""

    SUCCESS = "success"
    ALREADY_PENDING = "already_pending"
    ALT_NAMES_DISALLOWED = "alt_names_disallowed"
    ADVISORY = "advisory"
