"""HTTP client for the Puppet CA REST API (``/puppet-ca/v1``).

The very first request, for the CA certificate itself, is sent with TLS
verification disabled: the host has no trust anchor yet, so there is nothing
to verify against (trust on first use). Every later request is verified
against the CA certificate written by that first call, and is refused until
``trust()`` has been called.
"""

import logging
import ssl
import time
from collections.abc import Callable
from pathlib import Path
from urllib.parse import quote

import httpx
from opentelemetry import trace

from enrollment.domain.errors import CATransportError, TrustBootstrapError
from enrollment.domain.models import EnrollmentConfig
from enrollment.metrics import enrollment_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

Waiter = Callable[[float], None]


class CAClient:
    """Synchronous client for the CA endpoints used during enrollment.

    Connection-level failures (refused, timeouts, resets) are retried a fixed
    number of times with a fixed delay. HTTP responses are returned as-is,
    whatever their status, because the CA reports most conditions in the body.
    """

    DEFAULT_RETRIES = 5
    DEFAULT_RETRY_DELAY = 2.0
    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        base_url: str,
        *,
        retries: int = DEFAULT_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        waiter: Waiter = time.sleep,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._retries = max(retries, 0)
        self._retry_delay = retry_delay
        self._timeout = timeout
        self._waiter = waiter
        self._transport = transport
        self._verified: httpx.Client | None = None

    @classmethod
    def for_config(
        cls,
        config: EnrollmentConfig,
        *,
        waiter: Waiter = time.sleep,
        transport: httpx.BaseTransport | None = None,
        **kwargs,
    ) -> "CAClient":
        return cls(config.ca_url, waiter=waiter, transport=transport, **kwargs)

    def __enter__(self) -> "CAClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._verified is not None:
            self._verified.close()
            self._verified = None

    @property
    def is_trusted(self) -> bool:
        return self._verified is not None

    def _build_client(self, verify: ssl.SSLContext | bool) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            verify=verify,
            timeout=self._timeout,
            headers={"Accept": "text/plain"},
            transport=self._transport,
        )

    def trust(self, ca_certificate_path: Path) -> None:
        """Verify all further requests against the given CA certificate."""
        context = ssl.create_default_context(cafile=str(ca_certificate_path))
        self.close()
        self._verified = self._build_client(context)
        logger.debug("CA client now verifies against %s", ca_certificate_path)

    def _trusted_client(self, operation: str) -> httpx.Client:
        if self._verified is None:
            raise TrustBootstrapError(
                f"refusing '{operation}': no trust anchor established for {self.base_url}"
            )
        return self._verified

    def _send(
        self,
        client: httpx.Client,
        operation: str,
        method: str,
        path: str,
        **kwargs,
    ) -> httpx.Response:
        attempts = self._retries + 1
        with tracer.start_as_current_span(f"CAClient.{operation}") as span:
            span.set_attribute("http.method", method)
            span.set_attribute("ca.path", path)
            attempt = 0
            while True:
                attempt += 1
                try:
                    response = client.request(method, path, **kwargs)
                except httpx.TransportError as e:
                    if attempt >= attempts:
                        enrollment_metrics.record_ca_request(operation, "transport_error")
                        raise CATransportError(operation, attempts, e) from e
                    enrollment_metrics.record_ca_retry(operation)
                    logger.warning(
                        "CA request '%s' failed (%s), retrying in %ss (%d/%d)",
                        operation,
                        e,
                        self._retry_delay,
                        attempt,
                        self._retries,
                        extra={"operation": operation, "attempt": attempt},
                    )
                    self._waiter(self._retry_delay)
                    continue

                span.set_attribute("http.status_code", response.status_code)
                span.set_attribute("attempts", attempt)
                enrollment_metrics.record_ca_request(
                    operation, "http_error" if response.is_error else "ok"
                )
                return response

    def fetch_ca_certificate(self) -> httpx.Response:
        """GET /certificate/ca without TLS verification (bootstrap only)."""
        with self._build_client(verify=False) as client:
            return self._send(client, "fetch_ca_certificate", "GET", "/certificate/ca")

    def fetch_crl(self) -> httpx.Response:
        """GET /certificate_revocation_list/ca."""
        client = self._trusted_client("fetch_crl")
        return self._send(client, "fetch_crl", "GET", "/certificate_revocation_list/ca")

    def fetch_certificate(self, cert_name: str) -> httpx.Response:
        """GET /certificate/<name>."""
        client = self._trusted_client("fetch_certificate")
        return self._send(
            client, "fetch_certificate", "GET", f"/certificate/{quote(cert_name, safe='')}"
        )

    def submit_csr(self, cert_name: str, csr_pem: bytes) -> httpx.Response:
        """PUT /certificate_request/<name> with the CSR PEM as a text/plain body."""
        client = self._trusted_client("submit_csr")
        return self._send(
            client,
            "submit_csr",
            "PUT",
            f"/certificate_request/{quote(cert_name, safe='')}",
            content=csr_pem,
            headers={"Content-Type": "text/plain"},
        )
