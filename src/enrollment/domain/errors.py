"""Error taxonomy for certificate enrollment.

Every failure is terminal for a run. Each error carries a message that names
the check that failed, and the CLI prints it verbatim before exiting.
"""


class EnrollmentError(Exception):
    """Base class for all enrollment failures."""

    pass


class ConfigurationError(EnrollmentError):
    """Raised when inputs cannot produce a usable configuration."""

    pass


class TrustBootstrapError(EnrollmentError):
    """Raised when the CA certificate or CRL is unreachable or unparsable."""

    pass


class CATransportError(EnrollmentError):
    """Raised when a CA request still fails after transport retries."""

    def __init__(self, operation: str, attempts: int, cause: Exception):
        self.operation = operation
        self.attempts = attempts
        super().__init__(f"CA request '{operation}' failed after {attempts} attempt(s): {cause}")


class AlreadyEnrolledError(EnrollmentError):
    """Raised when the CA already holds a signed certificate for the name."""

    def __init__(self, cert_name: str):
        self.cert_name = cert_name
        super().__init__(f"CA already has signed certificate for '{cert_name}'")


class ArtifactExistsError(EnrollmentError):
    """Raised when a key or CSR file already occupies its target path."""

    def __init__(self, kind: str, path: object):
        self.kind = kind
        self.path = path
        super().__init__(f"{kind} '{path}' already exists")


class DuplicatePendingRequestError(EnrollmentError):
    """Raised when the CA already has an unsigned request for the name."""

    def __init__(self, cert_name: str):
        self.cert_name = cert_name
        super().__init__(f"unsigned CSR for '{cert_name}' already exists on CA")


class AltNamesRejectedError(EnrollmentError):
    """Raised when CA policy forbids subject alternative names."""

    def __init__(self, cert_name: str, response: str):
        self.cert_name = cert_name
        self.response = response
        super().__init__(f"DNS alt names not allowed by the CA for '{cert_name}'")


class EnrollmentTimeoutError(EnrollmentError):
    """Raised when the certificate is not signed within the wait budget."""

    def __init__(self, cert_name: str, waited_seconds: int):
        self.cert_name = cert_name
        self.waited_seconds = waited_seconds
        super().__init__(
            f"timed out after {waited_seconds}s waiting for certificate '{cert_name}' "
            "to be signed"
        )


class InvalidCertificateError(EnrollmentError):
    """Raised when the persisted certificate fails final validation."""

    pass


class ArtifactIOError(EnrollmentError):
    """Raised when the SSL directory cannot be created, written or read."""

    def __init__(self, action: str, path: object, cause: OSError):
        self.action = action
        self.path = path
        reason = cause.strerror or cause
        super().__init__(f"cannot {action} '{path}': {reason}")
