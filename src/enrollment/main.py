"""Command-line entry point: get a signed certificate for this host.

Writes the same files, in the same layout, that a puppet agent run would put
under its SSL directory, without running the agent.
"""

import argparse
import logging
import sys
from collections.abc import Sequence

from opentelemetry import trace
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from enrollment.ca.client import CAClient
from enrollment.domain.errors import EnrollmentError
from enrollment.services.configuration import load_settings, log_config, resolve_config
from enrollment.services.enrollment_service import EnrollmentService
from shared.config import Settings
from shared.logging import logger, setup_logging
from shared.metrics import setup_metrics


def setup_tracing(app_name: str, console_export: bool = False) -> None:
    resource = Resource.create({"service.name": app_name})
    provider = TracerProvider(resource=resource)

    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)


def setup_observability(settings: Settings) -> None:
    setup_logging(settings.LOG_LEVEL, settings.OTEL_CONSOLE_EXPORT)
    setup_tracing(settings.APP_NAME, settings.OTEL_CONSOLE_EXPORT)
    setup_metrics(settings.APP_NAME, settings.OTEL_CONSOLE_EXPORT)

    LoggingInstrumentor().instrument(set_logging_format=False)
    HTTPXClientInstrumentor().instrument()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="certbootstrap",
        description=(
            "Generate a key and CSR for this host, submit it to the Puppet Server CA "
            "and wait for the signed certificate."
        ),
    )
    parser.add_argument(
        "certname",
        nargs="?",
        default=None,
        help="Certificate name. Overrides CERTNAME; defaults to the host name.",
    )
    return parser


def run(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings()
    except EnrollmentError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error("Error: %s", e)
        return 1

    setup_observability(settings)

    try:
        config = resolve_config(settings, args.certname)
        log_config(config)
        with CAClient.for_config(
            config,
            retries=settings.HTTP_RETRIES,
            retry_delay=settings.HTTP_RETRY_DELAY,
            timeout=settings.HTTP_TIMEOUT,
        ) as client:
            service = EnrollmentService(config, client, poll_interval=settings.POLL_INTERVAL)
            service.enroll()
    except EnrollmentError as e:
        logger.error("Error: %s", e)
        return 1
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
