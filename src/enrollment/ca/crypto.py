"""Parsing and formatting helpers for PEM material exchanged with the CA."""

import logging
from collections.abc import Sequence

from cryptography import x509

from enrollment.domain.models import PEM_CERTIFICATE_HEADER

logger = logging.getLogger(__name__)


class CryptoError(Exception):
    """Raised when PEM material cannot be parsed."""

    pass


def starts_with_certificate(body: str | bytes) -> bool:
    """Check whether the first line of a CA response is a PEM certificate header.

    Anything after the first line is ignored.
    """
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    first_line = body.split("\n", 1)[0].rstrip("\r")
    return first_line == PEM_CERTIFICATE_HEADER


def load_certificate(pem: bytes) -> x509.Certificate:
    """Parse a PEM certificate and make sure subject and issuer are readable.

    Raises:
        CryptoError: If the data is not a well-formed certificate.
    """
    try:
        certificate = x509.load_pem_x509_certificate(pem)
        # Force decoding of both names, like `openssl x509 -subject -issuer`
        certificate.subject.rfc4514_string()
        certificate.issuer.rfc4514_string()
        return certificate
    except Exception as e:
        raise CryptoError(f"not a valid PEM certificate: {e}") from e


def load_crl(pem: bytes) -> x509.CertificateRevocationList:
    """Parse a PEM certificate revocation list.

    Raises:
        CryptoError: If the data is not a well-formed CRL.
    """
    try:
        crl = x509.load_pem_x509_crl(pem)
        crl.issuer.rfc4514_string()
        return crl
    except Exception as e:
        raise CryptoError(f"not a valid PEM CRL: {e}") from e


def parse_dns_alt_names(raw: str | None) -> tuple[str, ...]:
    """Split a comma-separated list of DNS names, trimming and dropping blanks."""
    if not raw:
        return ()
    return tuple(name.strip() for name in raw.split(",") if name.strip())


def format_dns_alt_names(names: Sequence[str]) -> str | None:
    """Render names as an openssl subjectAltName value, e.g. ``DNS:a,DNS:b``.

    Returns None when there are no names, meaning no extension is requested.
    """
    if not names:
        return None
    return ",".join(f"DNS:{name}" for name in names)


def describe_name(name: x509.Name) -> str:
    return name.rfc4514_string()
