import logging
import sys

from opentelemetry._logs import set_logger_provider
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor, ConsoleLogRecordExporter


def setup_logging(level: str = "INFO", console_export: bool = False) -> None:
    """Configure OpenTelemetry logging plus a human-readable stderr handler."""

    # 1. Setup OpenTelemetry Logger Provider
    logger_provider = LoggerProvider()

    # Console export writes JSON records to stdout, so it is opt-in for a CLI
    if console_export:
        console_exporter = ConsoleLogRecordExporter()
        logger_provider.add_log_record_processor(BatchLogRecordProcessor(console_exporter))

    set_logger_provider(logger_provider)

    # 2. Attach OTel LoggingHandler to Python's root logger
    handler = LoggingHandler(level=getattr(logging, level.upper()), logger_provider=logger_provider)

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level.upper())

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root.addHandler(stream_handler)

    # Silence noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


logger = logging.getLogger("certbootstrap")
