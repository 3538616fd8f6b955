"""Establishes the CA trust anchor before any verified request is made."""

import logging

from cryptography import x509
from opentelemetry import trace

from enrollment.ca.client import CAClient
from enrollment.ca.crypto import CryptoError, describe_name, load_certificate, load_crl
from enrollment.domain.errors import CATransportError, TrustBootstrapError
from enrollment.domain.models import TrustAnchor
from enrollment.repository.ssl_layout import SSLLayout

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class TrustStoreBootstrapper:
    """Fetches, persists and validates the CA certificate and CRL."""

    def __init__(self, layout: SSLLayout, client: CAClient) -> None:
        self._layout = layout
        self._client = client

    def fetch_ca_certificate(self) -> x509.Certificate:
        """Download the CA certificate over an unverified channel and validate it.

        Raises:
            TrustBootstrapError: If the CA is unreachable or the file is not
                a valid certificate.
        """
        with tracer.start_as_current_span("TrustStoreBootstrapper.fetch_ca_certificate"):
            try:
                response = self._client.fetch_ca_certificate()
            except CATransportError as e:
                raise TrustBootstrapError(f"cannot reach CA '{self._client.base_url}': {e}") from e
            if response.is_error:
                raise TrustBootstrapError(
                    f"CA returned HTTP {response.status_code} for the CA certificate"
                )

            path = self._layout.ca_certificate_path
            self._layout.write_artifact(path, response.content)
            try:
                certificate = load_certificate(self._layout.read_artifact(path))
            except CryptoError as e:
                raise TrustBootstrapError(f"invalid CA certificate '{path}': {e}") from e

            logger.info(
                "Fetched CA certificate: subject=%s issuer=%s",
                describe_name(certificate.subject),
                describe_name(certificate.issuer),
                extra={"path": str(path)},
            )
            return certificate

    def fetch_crl(self) -> x509.CertificateRevocationList:
        """Download the CRL, verified against the stored CA certificate.

        Raises:
            TrustBootstrapError: If retries are exhausted or the CRL is invalid.
        """
        with tracer.start_as_current_span("TrustStoreBootstrapper.fetch_crl"):
            try:
                response = self._client.fetch_crl()
            except CATransportError as e:
                raise TrustBootstrapError(f"cannot fetch CRL: {e}") from e
            if response.is_error:
                raise TrustBootstrapError(f"CA returned HTTP {response.status_code} for the CRL")

            path = self._layout.crl_path
            self._layout.write_artifact(path, response.content)
            try:
                crl = load_crl(self._layout.read_artifact(path))
            except CryptoError as e:
                raise TrustBootstrapError(f"invalid CRL '{path}': {e}") from e

            logger.info(
                "Fetched CRL with %d revoked certificate(s)",
                len(crl),
                extra={"path": str(path)},
            )
            return crl

    def bootstrap(self) -> TrustAnchor:
        """Fetch the CA certificate, switch the client to verified mode, fetch the CRL."""
        ca_certificate = self.fetch_ca_certificate()
        try:
            self._client.trust(self._layout.ca_certificate_path)
        except OSError as e:
            raise TrustBootstrapError(f"cannot use CA certificate as trust anchor: {e}") from e
        crl = self.fetch_crl()
        return TrustAnchor(
            ca_certificate=ca_certificate,
            crl=crl,
            ca_certificate_path=self._layout.ca_certificate_path,
            crl_path=self._layout.crl_path,
        )
