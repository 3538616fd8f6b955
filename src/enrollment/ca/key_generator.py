"""Key pair and CSR generation for a host identity.

Generates the host's RSA key pair and a certificate signing request, and
writes them into the SSL layout without ever overwriting an existing file.
"""

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
from opentelemetry import trace

from enrollment.domain.errors import ArtifactExistsError
from enrollment.metrics import enrollment_metrics
from enrollment.repository.ssl_layout import PRIVATE_KEY_MODE, PUBLIC_FILE_MODE, SSLLayout

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class GeneratedKeyPair:
    """Result of key generation."""

    private_key: rsa.RSAPrivateKey
    private_key_pem: bytes
    public_key_pem: bytes


@dataclass
class GeneratedCSR:
    """Result of CSR generation."""

    csr: x509.CertificateSigningRequest
    csr_pem: bytes


class KeyGenerator:
    """Creates the host key pair and CSR inside an SSLLayout.

    Key attributes:
    - Key: RSA 4096, public exponent 65537
    - Private key: PKCS8 PEM, unencrypted, mode 0600
    - Public key: SubjectPublicKeyInfo PEM
    - CSR: Subject CN=<cert_name>, optional subjectAltName (DNS names), SHA-256
    """

    KEY_SIZE = 4096
    PUBLIC_EXPONENT = 65537

    def __init__(self, layout: SSLLayout, key_size: int | None = None) -> None:
        self._layout = layout
        self._key_size = key_size or self.KEY_SIZE

    def check_no_existing_artifacts(self) -> None:
        """Refuse to proceed if any key or CSR file is already on disk.

        Raises:
            ArtifactExistsError: For the first occupied path.
        """
        existing = self._layout.existing_key_artifacts()
        if existing:
            kind, path = existing[0]
            raise ArtifactExistsError(kind, path)

    def generate_key_pair(self) -> GeneratedKeyPair:
        """Generate the RSA key pair and write both halves.

        Raises:
            ArtifactExistsError: If a key file appears at its path.
        """
        with tracer.start_as_current_span("KeyGenerator.generate_key_pair") as span:
            span.set_attribute("key_size", self._key_size)
            start_time = time.time()

            private_key = rsa.generate_private_key(
                public_exponent=self.PUBLIC_EXPONENT,
                key_size=self._key_size,
            )
            private_pem = private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
            public_pem = private_key.public_key().public_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )

            self._create(
                "private key", self._layout.private_key_path, private_pem, PRIVATE_KEY_MODE
            )
            self._create("public key", self._layout.public_key_path, public_pem)

            duration = time.time() - start_time
            enrollment_metrics.record_key_generated(duration)
            logger.info(
                "Generated %d-bit RSA key pair for '%s'",
                self._key_size,
                self._layout.cert_name,
                extra={
                    "private_key_path": str(self._layout.private_key_path),
                    "duration_seconds": duration,
                },
            )

            return GeneratedKeyPair(
                private_key=private_key,
                private_key_pem=private_pem,
                public_key_pem=public_pem,
            )

    def build_csr(
        self,
        private_key: rsa.RSAPrivateKey,
        cert_name: str,
        dns_alt_names: Sequence[str] = (),
    ) -> GeneratedCSR:
        """Build the CSR, sign it with the host key and write it.

        Raises:
            ArtifactExistsError: If a CSR file appears at its path.
        """
        with tracer.start_as_current_span("KeyGenerator.build_csr") as span:
            span.set_attribute("cert_name", cert_name)
            span.set_attribute("dns_alt_names", list(dns_alt_names))

            builder = x509.CertificateSigningRequestBuilder().subject_name(
                x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, cert_name)])
            )
            if dns_alt_names:
                builder = builder.add_extension(
                    x509.SubjectAlternativeName([x509.DNSName(name) for name in dns_alt_names]),
                    critical=False,
                )

            csr = builder.sign(private_key, hashes.SHA256())
            csr_pem = csr.public_bytes(serialization.Encoding.PEM)

            self._create("certificate request", self._layout.csr_path, csr_pem)

            logger.info(
                "Wrote certificate request '%s'",
                self._layout.csr_path,
                extra={"cert_name": cert_name, "dns_alt_names": list(dns_alt_names)},
            )
            return GeneratedCSR(csr=csr, csr_pem=csr_pem)

    def _create(self, kind: str, path: Path, data: bytes, mode: int = PUBLIC_FILE_MODE) -> None:
        try:
            self._layout.write_new_artifact(path, data, mode)
        except FileExistsError as e:
            raise ArtifactExistsError(kind, path) from e
