"""Resolution of settings and CLI input into one EnrollmentConfig."""

import logging
import socket
from collections.abc import Callable
from pathlib import Path

from pydantic import ValidationError

from enrollment.ca.crypto import format_dns_alt_names, parse_dns_alt_names
from enrollment.domain.errors import ConfigurationError
from enrollment.domain.models import EnrollmentConfig, check_cert_name
from shared.config import Settings

logger = logging.getLogger(__name__)


def load_settings() -> Settings:
    """Read settings from the environment and .env file.

    Raises:
        ConfigurationError: If a value fails validation (e.g. WAITFORCERT=abc).
    """
    try:
        return Settings()
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
        raise ConfigurationError(f"invalid configuration value(s): {fields}") from e


def resolve_config(
    settings: Settings,
    cert_name: str | None = None,
    hostname: Callable[[], str] = socket.gethostname,
) -> EnrollmentConfig:
    """Build the EnrollmentConfig for this run.

    The certificate name comes from the explicit argument, then CERTNAME,
    then the local host name (lowercased); the first one that is not blank
    wins. The result must be a valid certname.

    Raises:
        ConfigurationError: If no usable certificate name can be found, or
            the wait timeout is negative.
    """
    candidates = (cert_name, settings.CERTNAME, hostname().lower())
    resolved_name = next((n.strip() for n in candidates if n and n.strip()), "")
    check_cert_name(resolved_name)

    if settings.WAITFORCERT < 0:
        raise ConfigurationError(
            f"WAITFORCERT must be zero or a positive number of seconds, got {settings.WAITFORCERT}"
        )

    return EnrollmentConfig(
        cert_name=resolved_name,
        ca_host=settings.PUPPETSERVER_HOSTNAME,
        ssl_root=Path(settings.SSLDIR),
        wait_timeout_seconds=settings.WAITFORCERT,
        dns_alt_names=parse_dns_alt_names(settings.DNS_ALT_NAMES),
        ca_port=settings.CA_PORT,
    )


def log_config(config: EnrollmentConfig) -> None:
    """Print the resolved configuration for troubleshooting."""
    logger.info("Using configuration values:")
    logger.info("* CERTNAME: '%s' (%s)", config.cert_name, config.subject)
    logger.info("* DNS_ALT_NAMES: '%s'", format_dns_alt_names(config.dns_alt_names) or "")
    logger.info("* CA: '%s'", config.ca_url)
    logger.info("* SSLDIR: '%s'", config.ssl_root)
    logger.info("* WAITFORCERT: '%s' seconds", config.wait_timeout_seconds)
