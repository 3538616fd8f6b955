"""Value objects passed between the enrollment components."""

import re
from dataclasses import dataclass, field
from pathlib import Path

from cryptography import x509

from enrollment.domain.errors import ConfigurationError
from enrollment.domain.states import EnrollmentState

PEM_CERTIFICATE_HEADER = "-----BEGIN CERTIFICATE-----"

# Same character set the puppet agent accepts for a certname
CERTNAME_PATTERN = re.compile(r"[a-z0-9._-]+")


def check_cert_name(name: str) -> str:
    """Return the name if it is safe to use as a file name under the SSL root.

    Raises:
        ConfigurationError: If the name is empty, has characters outside
            lowercase letters, digits, '.', '-' and '_', or is '.' or '..'.
    """
    if not name:
        raise ConfigurationError("certificate name must be non-empty value")
    if not CERTNAME_PATTERN.fullmatch(name) or name in (".", ".."):
        raise ConfigurationError(
            f"invalid certificate name '{name}': use lowercase letters, digits, '.', '-' or '_'"
        )
    return name


@dataclass(frozen=True)
class EnrollmentConfig:
    """Resolved inputs for one enrollment run.

    Built once by the configuration resolver and handed to every component;
    nothing downstream reads the process environment.
    """

    cert_name: str
    ca_host: str = "puppet"
    ssl_root: Path = Path("/etc/puppetlabs/puppet/ssl")
    wait_timeout_seconds: int = 120
    dns_alt_names: tuple[str, ...] = ()
    ca_port: int = 8140

    @property
    def ca_url(self) -> str:
        return f"https://{self.ca_host}:{self.ca_port}/puppet-ca/v1"

    @property
    def subject(self) -> str:
        return f"CN={self.cert_name}"


@dataclass(frozen=True)
class TrustAnchor:
    """CA certificate and CRL, both parsed and written to disk."""

    ca_certificate: x509.Certificate
    crl: x509.CertificateRevocationList
    ca_certificate_path: Path
    crl_path: Path


@dataclass(frozen=True)
class SignedCertificate:
    """Certificate returned by the CA and persisted for this host."""

    pem_body: str
    subject: str
    issuer: str
    path: Path


@dataclass
class EnrollmentRun:
    """Mutable record of a single enrollment attempt."""

    cert_name: str
    state: EnrollmentState = EnrollmentState.INIT
    waited_seconds: int = 0
    poll_attempts: int = 0
    warnings: list[str] = field(default_factory=list)
