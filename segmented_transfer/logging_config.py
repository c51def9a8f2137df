import contextlib
import contextvars
import logging
import os
import sys
import uuid
from typing import Iterator
from typing import Optional
from typing import Protocol

from loki_logger_handler.loki_logger_handler import LokiLoggerHandler


transfer_id_context: contextvars.ContextVar[str] = contextvars.ContextVar("transfer_id", default="no-transfer-id")


class LoggingConfig(Protocol):
    log_level: str
    loki_enabled: bool
    loki_url: str
    environment: str


def generate_transfer_id() -> str:
    """Generate a 16-character hex transfer ID (first 64 bits of a UUID4)."""
    return uuid.uuid4().hex[:16]


@contextlib.contextmanager
def transfer_scope(transfer_id: Optional[str] = None) -> Iterator[str]:
    """Tag every record logged inside the block with one transfer ID."""
    tid = transfer_id or generate_transfer_id()
    token = transfer_id_context.set(tid)
    try:
        yield tid
    finally:
        transfer_id_context.reset(token)


class TransferIDFilter(logging.Filter):
    """Logging filter that ensures transfer_id is always present in log records.

    Reads transfer_id from the contextvar if not already in the record, so the
    log format string never fails outside a transfer.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "transfer_id"):
            record.transfer_id = transfer_id_context.get()
        return True


def setup_loki_logging(config: LoggingConfig, service_name: str) -> logging.Logger:
    """
    Configure stdout logging, plus a Loki handler when enabled.

    Every handler carries a TransferIDFilter so records logged inside
    ``transfer_scope`` share one ID.

    Args:
        config: Transfer configuration
        service_name: Name of the service (e.g., "segmented-transfer")

    Returns:
        Configured logger instance
    """
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if config.loki_enabled and config.loki_url:
        handlers.append(
            LokiLoggerHandler(
                url=config.loki_url,
                labels={
                    "service": service_name,
                    "environment": config.environment,
                    "host": os.getenv("HOSTNAME", "unknown"),
                },
                timeout=10,
                compressed=True,
            )
        )

    transfer_id_filter = TransferIDFilter()
    for handler in handlers:
        handler.addFilter(transfer_id_filter)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - [%(transfer_id)s] - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

    return logging.getLogger(service_name)
