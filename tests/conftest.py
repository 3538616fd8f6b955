"""Shared fixtures: an in-process Puppet CA served through httpx.MockTransport."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from enrollment.ca.client import CAClient
from enrollment.ca.key_generator import KeyGenerator
from enrollment.domain.models import EnrollmentConfig
from enrollment.repository.ssl_layout import SSLLayout
from enrollment.services.enrollment_service import EnrollmentService

CA_PREFIX = "/puppet-ca/v1"
TEST_KEY_SIZE = 2048


def make_ca() -> tuple[ec.EllipticCurvePrivateKey, x509.Certificate]:
    """Self-signed CA, EC keys keep the test suite fast."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "Puppet CA: puppet")])
    now = datetime.now(timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )
    return key, certificate


def make_crl(key: ec.EllipticCurvePrivateKey, ca_certificate: x509.Certificate) -> bytes:
    now = datetime.now(timezone.utc)
    crl = (
        x509.CertificateRevocationListBuilder()
        .issuer_name(ca_certificate.subject)
        .last_update(now)
        .next_update(now + timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    return crl.public_bytes(serialization.Encoding.PEM)


class FakeWaiter:
    """Records requested sleeps instead of sleeping."""

    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


class FakePuppetCA:
    """Minimal Puppet CA REST API backed by real certificates.

    Knobs:
        submission_body / submission_status: answer to a CSR PUT
        auto_sign: sign submitted CSRs
        polls_before_sign: 404 answers to give before returning the signature
        ca_body / crl_body: override the trust material served
    """

    def __init__(self):
        self.key, self.certificate = make_ca()
        self.ca_body: bytes = self.certificate.public_bytes(serialization.Encoding.PEM)
        self.crl_body: bytes = make_crl(self.key, self.certificate)
        self.signed: dict[str, str] = {}
        self.requests_received: dict[str, x509.CertificateSigningRequest] = {}
        self.submission_body = ""
        self.submission_status = 200
        self.auto_sign = True
        self.polls_before_sign = 0
        self.log: list[tuple[str, str]] = []
        self.submitted_headers: httpx.Headers | None = None
        self._pending_polls: dict[str, int] = {}

    def sign(self, csr: x509.CertificateSigningRequest) -> str:
        now = datetime.now(timezone.utc)
        certificate = (
            x509.CertificateBuilder()
            .subject_name(csr.subject)
            .issuer_name(self.certificate.subject)
            .public_key(csr.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(minutes=1))
            .not_valid_after(now + timedelta(days=30))
            .sign(self.key, hashes.SHA256())
        )
        return certificate.public_bytes(serialization.Encoding.PEM).decode("utf-8")

    def issue(self, cert_name: str) -> str:
        """Pre-sign a certificate for a name, as if enrolled earlier."""
        key = ec.generate_private_key(ec.SECP256R1())
        csr = (
            x509.CertificateSigningRequestBuilder()
            .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, cert_name)]))
            .sign(key, hashes.SHA256())
        )
        self.signed[cert_name] = self.sign(csr)
        return self.signed[cert_name]

    def paths(self, method: str) -> list[str]:
        return [path for m, path in self.log if m == method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        assert path.startswith(CA_PREFIX), path
        route = path[len(CA_PREFIX) :]
        self.log.append((request.method, route))

        if request.method == "GET" and route == "/certificate/ca":
            return httpx.Response(200, content=self.ca_body)
        if request.method == "GET" and route == "/certificate_revocation_list/ca":
            return httpx.Response(200, content=self.crl_body)
        if request.method == "GET" and route.startswith("/certificate/"):
            return self._get_certificate(route.removeprefix("/certificate/"))
        if request.method == "PUT" and route.startswith("/certificate_request/"):
            name = route.removeprefix("/certificate_request/")
            self.submitted_headers = request.headers
            self.requests_received[name] = x509.load_pem_x509_csr(request.content)
            return httpx.Response(self.submission_status, text=self.submission_body)
        return httpx.Response(404, text="Not Found")

    def _get_certificate(self, name: str) -> httpx.Response:
        if name in self.signed:
            return httpx.Response(200, text=self.signed[name])
        if name in self.requests_received and self.auto_sign:
            seen = self._pending_polls.get(name, 0)
            if seen >= self.polls_before_sign:
                self.signed[name] = self.sign(self.requests_received[name])
                return httpx.Response(200, text=self.signed[name])
            self._pending_polls[name] = seen + 1
        return httpx.Response(404, text=f"Not Found: Could not find certificate {name}")


@pytest.fixture
def fake_ca():
    return FakePuppetCA()


@pytest.fixture
def waiter():
    return FakeWaiter()


@pytest.fixture
def make_config(tmp_path):
    def _make(cert_name: str = "host1", **overrides) -> EnrollmentConfig:
        overrides.setdefault("ssl_root", tmp_path / "ssl")
        return EnrollmentConfig(cert_name=cert_name, **overrides)

    return _make


@pytest.fixture
def make_client(fake_ca, waiter):
    def _make(config: EnrollmentConfig, **kwargs) -> CAClient:
        return CAClient.for_config(
            config, waiter=waiter, transport=httpx.MockTransport(fake_ca.handler), **kwargs
        )

    return _make


@pytest.fixture
def make_service(make_config, make_client, waiter):
    def _make(cert_name: str = "host1", **overrides) -> EnrollmentService:
        config = make_config(cert_name, **overrides)
        layout = SSLLayout(config.ssl_root, config.cert_name)
        return EnrollmentService(
            config,
            make_client(config),
            layout=layout,
            key_generator=KeyGenerator(layout, key_size=TEST_KEY_SIZE),
            waiter=waiter,
        )

    return _make
