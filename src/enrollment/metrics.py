"""OpenTelemetry metrics for the enrollment module."""

from opentelemetry import metrics

# Get meter for enrollment module
meter = metrics.get_meter("enrollment")

# CA wire traffic
ca_requests_total = meter.create_counter(
    name="enrollment_ca_requests_total",
    description="Total requests sent to the CA",
    unit="1",
)

ca_request_retries_total = meter.create_counter(
    name="enrollment_ca_request_retries_total",
    description="Total CA requests retried after a transport failure",
    unit="1",
)

# CSR submission and polling
csr_submissions_total = meter.create_counter(
    name="enrollment_csr_submissions_total",
    description="Total CSR submissions by classified outcome",
    unit="1",
)

certificate_poll_attempts_total = meter.create_counter(
    name="enrollment_certificate_poll_attempts_total",
    description="Total polls for a signed certificate",
    unit="1",
)

# Key generation histogram
key_generation_duration = meter.create_histogram(
    name="enrollment_key_generation_duration_seconds",
    description="Key pair generation duration in seconds",
    unit="s",
)

# Run outcome
enrollments_total = meter.create_counter(
    name="enrollment_runs_total",
    description="Total enrollment runs by final state",
    unit="1",
)

enrollment_duration = meter.create_histogram(
    name="enrollment_run_duration_seconds",
    description="Enrollment run duration in seconds",
    unit="s",
)


class EnrollmentMetrics:
    """Facade for enrollment metrics with proper labels."""

    def record_ca_request(self, operation: str, result: str) -> None:
        """Record a CA request. Labels: result=ok|http_error|transport_error"""
        ca_requests_total.add(1, {"operation": operation, "result": result})

    def record_ca_retry(self, operation: str) -> None:
        ca_request_retries_total.add(1, {"operation": operation})

    def record_csr_submission(self, outcome: str) -> None:
        """Record CSR submission. Labels: outcome=success|already_pending|..."""
        csr_submissions_total.add(1, {"outcome": outcome})

    def record_poll_attempt(self, signed: bool) -> None:
        certificate_poll_attempts_total.add(1, {"signed": signed})

    def record_key_generated(self, duration_seconds: float) -> None:
        key_generation_duration.record(duration_seconds)

    def record_enrollment_finished(self, state: str, duration_seconds: float) -> None:
        """Record the end of a run. Labels: state=signed|rejected|timed_out|failed"""
        enrollments_total.add(1, {"state": state})
        enrollment_duration.record(duration_seconds, {"state": state})


# Singleton instance
enrollment_metrics = EnrollmentMetrics()
