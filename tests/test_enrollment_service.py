"""End-to-end tests for EnrollmentService against the in-process CA."""

from unittest.mock import patch

import pytest
from cryptography import x509

from enrollment.domain.errors import (
    AlreadyEnrolledError,
    AltNamesRejectedError,
    ArtifactExistsError,
    ArtifactIOError,
    DuplicatePendingRequestError,
    EnrollmentTimeoutError,
    InvalidCertificateError,
    TrustBootstrapError,
)
from enrollment.domain.states import EnrollmentState, SubmissionOutcome

PEM_HEADER = "-----BEGIN CERTIFICATE-----"
ALT_NAMES_REJECTION = (
    "CSR 'host3' contains subject alternative names (DNS:evil.example), which are "
    "disallowed. To allow subject alternative names, set allow-subject-alt-names to "
    "true in your ca.conf file. Then restart the puppetserver and try signing this "
    "certificate again."
)


class TestScenarios:
    """The three reference scenarios."""

    def test_scenario_a_fresh_host_is_enrolled(self, make_service, fake_ca):
        service = make_service("host1")

        signed = service.enroll()

        cert_path = service.layout.certificate_path
        assert cert_path == service.config.ssl_root / "certs" / "host1.pem"
        assert cert_path.read_text().splitlines()[0] == PEM_HEADER
        assert signed.subject == "CN=host1"
        assert signed.issuer == fake_ca.certificate.subject.rfc4514_string()
        assert service.run.state == EnrollmentState.SIGNED
        # No SANs requested
        with pytest.raises(x509.ExtensionNotFound):
            fake_ca.requests_received["host1"].extensions.get_extension_for_class(
                x509.SubjectAlternativeName
            )

    def test_scenario_b_already_enrolled_host_is_refused(self, make_service, fake_ca):
        fake_ca.issue("host2")
        service = make_service("host2")

        with pytest.raises(AlreadyEnrolledError, match="host2"):
            service.enroll()

        layout = service.layout
        assert not layout.private_key_path.exists()
        assert not layout.public_key_path.exists()
        assert not layout.csr_path.exists()
        assert fake_ca.paths("PUT") == []
        assert service.run.state == EnrollmentState.FAILED

    def test_scenario_c_alt_names_rejected(self, make_service, fake_ca):
        fake_ca.submission_status = 400
        fake_ca.submission_body = ALT_NAMES_REJECTION
        service = make_service("host3", dns_alt_names=("evil.example",))

        with pytest.raises(AltNamesRejectedError):
            service.enroll()

        assert service.layout.csr_path.exists()
        assert not service.layout.certificate_path.exists()
        assert service.run.state == EnrollmentState.REJECTED
        san = fake_ca.requests_received["host3"].extensions.get_extension_for_class(
            x509.SubjectAlternativeName
        )
        assert san.value.get_values_for_type(x509.DNSName) == ["evil.example"]


class TestRequestSequence:
    def test_full_request_sequence(self, make_service, fake_ca):
        make_service("host1").enroll()

        assert fake_ca.log == [
            ("GET", "/certificate/ca"),
            ("GET", "/certificate_revocation_list/ca"),
            ("GET", "/certificate/host1"),
            ("PUT", "/certificate_request/host1"),
            ("GET", "/certificate/host1"),
        ]

    def test_trust_failure_stops_everything(self, make_service, fake_ca):
        fake_ca.ca_body = b"not a certificate"
        service = make_service("host1")

        with pytest.raises(TrustBootstrapError):
            service.enroll()

        assert fake_ca.log == [("GET", "/certificate/ca")]
        assert service.run.state == EnrollmentState.FAILED
        assert not service.layout.private_key_path.exists()


class TestSubmission:
    def test_duplicate_pending_request_never_polls(self, make_service, fake_ca):
        fake_ca.submission_status = 400
        fake_ca.submission_body = (
            "host4 already has a requested certificate; ignoring certificate request"
        )
        service = make_service("host4")

        with pytest.raises(DuplicatePendingRequestError, match="host4"):
            service.enroll()

        put_index = fake_ca.log.index(("PUT", "/certificate_request/host4"))
        assert fake_ca.log[put_index + 1 :] == []
        assert service.run.poll_attempts == 0
        assert service.run.state == EnrollmentState.REJECTED

    def test_advisory_response_is_logged_and_polling_continues(self, make_service, fake_ca):
        fake_ca.submission_body = "Note: CA is running in compatibility mode"
        service = make_service("host1")

        with patch("enrollment.services.enrollment_service.enrollment_metrics") as mock_metrics:
            service.enroll()

        assert service.run.warnings == ["Note: CA is running in compatibility mode"]
        assert service.run.state == EnrollmentState.SIGNED
        mock_metrics.record_csr_submission.assert_called_once_with(
            SubmissionOutcome.ADVISORY.value
        )


class TestPolling:
    def test_zero_timeout_polls_once(self, make_service, fake_ca, waiter):
        fake_ca.auto_sign = False
        service = make_service("host1", wait_timeout_seconds=0)

        with pytest.raises(EnrollmentTimeoutError):
            service.enroll()

        assert service.run.poll_attempts == 1
        assert waiter.calls == []
        assert service.run.state == EnrollmentState.TIMED_OUT
        assert not service.layout.certificate_path.exists()

    def test_waits_in_fixed_intervals_until_timeout(self, make_service, fake_ca, waiter):
        fake_ca.auto_sign = False
        service = make_service("host1", wait_timeout_seconds=25)

        with pytest.raises(EnrollmentTimeoutError) as exc_info:
            service.enroll()

        # Polls at t=0, 10, 20, 30; gives up once 30 >= 25
        assert waiter.calls == [10, 10, 10]
        assert service.run.poll_attempts == 4
        assert exc_info.value.waited_seconds == 30

    def test_certificate_signed_after_some_polls(self, make_service, fake_ca, waiter):
        fake_ca.polls_before_sign = 2
        service = make_service("host1", wait_timeout_seconds=120)

        service.enroll()

        assert service.run.poll_attempts == 3
        assert waiter.calls == [10, 10]
        assert service.layout.certificate_path.exists()


class TestPreflight:
    def test_existing_private_key_blocks_enrollment(self, make_service, fake_ca):
        service = make_service("host1")
        service.layout.ensure_directories()
        service.layout.private_key_path.write_text("old identity")

        with pytest.raises(ArtifactExistsError, match="private key"):
            service.enroll()

        assert service.layout.private_key_path.read_text() == "old identity"
        assert not service.layout.public_key_path.exists()
        assert not service.layout.csr_path.exists()
        assert fake_ca.paths("PUT") == []

    def test_restart_after_partial_run_fails_preflight(self, make_service, fake_ca):
        fake_ca.auto_sign = False
        first = make_service("host1", wait_timeout_seconds=0)
        with pytest.raises(EnrollmentTimeoutError):
            first.enroll()

        second = make_service("host1", wait_timeout_seconds=0)
        with pytest.raises(ArtifactExistsError):
            second.enroll()


class TestFilesystemFailures:
    def test_ssl_root_under_regular_file_fails_the_run(self, make_service, fake_ca, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        service = make_service("host1", ssl_root=blocker / "ssl")

        with pytest.raises(ArtifactIOError, match="cannot create directory"):
            service.enroll()

        assert service.run.state == EnrollmentState.FAILED
        assert fake_ca.log == []

    def test_unwritable_certificate_path_fails_the_run(self, make_service, fake_ca):
        service = make_service("host1")
        service.layout.ensure_directories()
        # A directory where the signed certificate should go cannot be written over
        service.layout.certificate_path.mkdir()

        with pytest.raises(ArtifactIOError, match="cannot write"):
            service.enroll()

        assert service.run.state == EnrollmentState.FAILED
        assert fake_ca.paths("PUT") == ["/certificate_request/host1"]


class TestFinalValidation:
    def test_unparsable_certificate_is_rejected(self, make_service, fake_ca):
        fake_ca.signed["host1"] = f"{PEM_HEADER}\nnot base64 at all\n-----END CERTIFICATE-----"
        service = make_service("host1")
        # Bypass the existence check, which would see the bogus certificate
        service.layout.ensure_directories()
        service.bootstrapper.bootstrap()
        service.run.state = EnrollmentState.POLLING
        service.wait_for_certificate()

        with pytest.raises(InvalidCertificateError, match="invalid signed certificate"):
            service.validate_certificate()

    def test_missing_certificate_file_is_rejected(self, make_service):
        service = make_service("host1")

        with pytest.raises(InvalidCertificateError, match="failed to get signed certificate"):
            service.validate_certificate()

    def test_unreadable_certificate_is_rejected(self, make_service):
        service = make_service("host1")
        service.layout.certificate_path.mkdir(parents=True)

        with pytest.raises(InvalidCertificateError, match="cannot read signed certificate"):
            service.validate_certificate()
