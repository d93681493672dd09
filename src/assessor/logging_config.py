"""structlog setup shared by the API process and the background worker.

Modules log through the standard library (``logging.getLogger(__name__)``);
the ProcessorFormatter below renders those records together with any
structlog context bound for the current request or job.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

SERVICE_NAME = "assessor"

# Third-party loggers that are too chatty at INFO.
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "anthropic")


def _add_service_name(logger, method_name, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _pre_chain() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_service_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]


def configure_logging(log_level: str = "info", json_output: bool = False) -> None:
    """Route stdlib and structlog output through one stdout handler.

    Args:
        log_level: Level name such as ``debug`` or ``warning``.
        json_output: One JSON object per line when True; coloured console output otherwise.
    """
    pre_chain = _pre_chain()
    if json_output:
        final = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        final = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final],
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_request_context(trace_id: str) -> None:
    structlog.contextvars.bind_contextvars(trace_id=trace_id)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def job_log_context(job_id: str, stage: str) -> Iterator[None]:
    """Tag every record emitted while a stage runs with the job id and stage."""
    tokens = structlog.contextvars.bind_contextvars(job_id=job_id, stage=stage)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
