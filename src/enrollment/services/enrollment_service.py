"""Enrollment service: drives one host through first-time certificate enrollment."""

import logging
import time
from collections.abc import Callable

from opentelemetry import trace

from enrollment.ca.client import CAClient
from enrollment.ca.crypto import CryptoError, describe_name, load_certificate
from enrollment.ca.key_generator import KeyGenerator
from enrollment.ca.responses import classify_submission, is_signed_certificate
from enrollment.domain.errors import (
    AlreadyEnrolledError,
    AltNamesRejectedError,
    DuplicatePendingRequestError,
    EnrollmentError,
    EnrollmentTimeoutError,
    InvalidCertificateError,
)
from enrollment.domain.models import (
    PEM_CERTIFICATE_HEADER,
    EnrollmentConfig,
    EnrollmentRun,
    SignedCertificate,
    TrustAnchor,
)
from enrollment.domain.state_machines import EnrollmentStateMachine
from enrollment.domain.states import EnrollmentEvent, SubmissionOutcome
from enrollment.metrics import enrollment_metrics
from enrollment.repository.ssl_layout import SSLLayout
from enrollment.services.trust_bootstrap import TrustStoreBootstrapper

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class EnrollmentService:
    """Runs the enrollment state machine against a CA.

    Each step either advances the run or raises an EnrollmentError; a failed
    run is never resumed, and artifacts already written are left in place
    for inspection.
    """

    POLL_INTERVAL_SECONDS = 10

    def __init__(
        self,
        config: EnrollmentConfig,
        client: CAClient,
        *,
        layout: SSLLayout | None = None,
        key_generator: KeyGenerator | None = None,
        waiter: Callable[[float], None] = time.sleep,
        poll_interval: int = POLL_INTERVAL_SECONDS,
    ) -> None:
        self.config = config
        self.client = client
        self.layout = layout or SSLLayout(config.ssl_root, config.cert_name)
        self.bootstrapper = TrustStoreBootstrapper(self.layout, client)
        self.key_generator = key_generator or KeyGenerator(self.layout)
        self.run = EnrollmentRun(cert_name=config.cert_name)
        self.state_machine = EnrollmentStateMachine(self.run)
        self.trust_anchor: TrustAnchor | None = None
        self._waiter = waiter
        self._poll_interval = poll_interval

    def enroll(self) -> SignedCertificate:
        """Run every step in order and return the signed certificate.

        Raises:
            EnrollmentError: Any subclass, naming the step that failed.
        """
        with tracer.start_as_current_span("EnrollmentService.enroll") as span:
            span.set_attribute("cert_name", self.config.cert_name)
            start_time = time.monotonic()
            try:
                self.layout.ensure_directories()

                self.trust_anchor = self.bootstrapper.bootstrap()
                self.state_machine.transition(EnrollmentEvent.TRUST_ESTABLISHED)

                self.check_not_enrolled()
                self.state_machine.transition(EnrollmentEvent.NO_EXISTING_CERT)

                self.key_generator.check_no_existing_artifacts()
                key_pair = self.key_generator.generate_key_pair()
                self.state_machine.transition(EnrollmentEvent.KEY_GENERATED)

                csr = self.key_generator.build_csr(
                    key_pair.private_key, self.config.cert_name, self.config.dns_alt_names
                )
                self.state_machine.transition(EnrollmentEvent.CSR_BUILT)

                self.submit_csr(csr.csr_pem)
                self.wait_for_certificate()
                signed = self.validate_certificate()
                self.state_machine.transition(EnrollmentEvent.CERTIFICATE_SIGNED)

                logger.info("Successfully signed certificate '%s'", signed.path)
                return signed
            except EnrollmentError as e:
                self.state_machine.abort()
                span.record_exception(e)
                raise
            finally:
                span.set_attribute("final_state", self.run.state.value)
                enrollment_metrics.record_enrollment_finished(
                    self.run.state.value, time.monotonic() - start_time
                )

    def check_not_enrolled(self) -> None:
        """Ask the CA whether it already signed a certificate for this name.

        Raises:
            AlreadyEnrolledError: If the CA answers with a PEM certificate.
        """
        response = self.client.fetch_certificate(self.config.cert_name)
        if is_signed_certificate(response.text):
            raise AlreadyEnrolledError(self.config.cert_name)
        logger.debug(
            "No signed certificate on CA for '%s' (HTTP %s)",
            self.config.cert_name,
            response.status_code,
        )

    def submit_csr(self, csr_pem: bytes) -> SubmissionOutcome:
        """Submit the CSR and act on the classified response.

        Raises:
            DuplicatePendingRequestError: The CA already holds an unsigned request.
            AltNamesRejectedError: The CA refuses subject alternative names.
        """
        name = self.config.cert_name
        response = self.client.submit_csr(name, csr_pem)
        self.state_machine.transition(EnrollmentEvent.CSR_SUBMITTED)

        text = response.text.strip()
        outcome = classify_submission(text, response.status_code)
        enrollment_metrics.record_csr_submission(outcome.value)

        if outcome is SubmissionOutcome.ALREADY_PENDING:
            self.state_machine.transition(EnrollmentEvent.CSR_REJECTED)
            raise DuplicatePendingRequestError(name)
        if outcome is SubmissionOutcome.ALT_NAMES_DISALLOWED:
            self.state_machine.transition(EnrollmentEvent.CSR_REJECTED)
            raise AltNamesRejectedError(name, text)
        if outcome is SubmissionOutcome.ADVISORY:
            # Unrecognised text does not stop the run; some CAs answer success with text
            advisory = text or f"HTTP {response.status_code} with empty body"
            self.run.warnings.append(advisory)
            logger.warning("CSR response: %s", advisory, extra={"cert_name": name})

        self.state_machine.transition(EnrollmentEvent.CSR_ACCEPTED)
        return outcome

    def _poll(self) -> str:
        response = self.client.fetch_certificate(self.config.cert_name)
        self.run.poll_attempts += 1
        signed = is_signed_certificate(response.text)
        enrollment_metrics.record_poll_attempt(signed)
        return response.text

    def wait_for_certificate(self) -> str:
        """Poll until the CA returns a signed certificate, then write it.

        The first poll happens immediately. Between polls the run waits a
        fixed interval and adds it to the accumulated wait.

        Raises:
            EnrollmentTimeoutError: Accumulated wait reached the timeout.
        """
        with tracer.start_as_current_span("EnrollmentService.wait_for_certificate") as span:
            body = self._poll()
            while not is_signed_certificate(body):
                if self.run.waited_seconds >= self.config.wait_timeout_seconds:
                    span.set_attribute("poll_attempts", self.run.poll_attempts)
                    self.state_machine.transition(EnrollmentEvent.WAIT_EXPIRED)
                    raise EnrollmentTimeoutError(self.config.cert_name, self.run.waited_seconds)
                logger.info("Waiting for certificate to be signed...")
                self._waiter(self._poll_interval)
                self.run.waited_seconds += self._poll_interval
                body = self._poll()

            span.set_attribute("poll_attempts", self.run.poll_attempts)
            if not body.endswith("\n"):
                body += "\n"
            self.layout.write_artifact(self.layout.certificate_path, body.encode("utf-8"))
            return body

    def validate_certificate(self) -> SignedCertificate:
        """Re-read the written certificate and make sure it parses.

        Raises:
            InvalidCertificateError: If the file is missing or unreadable, lacks
                the PEM header, or does not parse.
        """
        path = self.layout.certificate_path
        try:
            data = path.read_bytes()
        except FileNotFoundError as e:
            raise InvalidCertificateError(
                f"failed to get signed certificate for '{self.config.cert_name}'"
            ) from e
        except OSError as e:
            raise InvalidCertificateError(
                f"cannot read signed certificate '{path}': {e.strerror or e}"
            ) from e

        if not data.decode("utf-8", errors="replace").startswith(PEM_CERTIFICATE_HEADER):
            raise InvalidCertificateError(f"invalid signed certificate '{path}': missing header")
        try:
            certificate = load_certificate(data)
        except CryptoError as e:
            raise InvalidCertificateError(f"invalid signed certificate '{path}': {e}") from e

        subject = describe_name(certificate.subject)
        issuer = describe_name(certificate.issuer)
        logger.info("subject=%s issuer=%s", subject, issuer)
        return SignedCertificate(
            pem_body=data.decode("utf-8"),
            subject=subject,
            issuer=issuer,
            path=path,
        )
