"""structlog logging setup for the admission service."""

import logging
import sys

import structlog

# Logger that emits request bodies before/after sanitization at debug level
PAYLOAD_LOGGER = "gatekeeper.middleware.request_sanitizer"

_QUIET_LOGGERS = ("uvicorn.access",)


def _add_component(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Replace 'logger' with a short 'component' (module path without the package prefix)."""
    name = event_dict.pop("logger", None)
    if name:
        event_dict["component"] = name.removeprefix("gatekeeper.")
    return event_dict


def setup_logging(log_level: str = "info", json_format: bool = True, payload_logging: bool = False) -> None:
    """Configure structlog over stdlib logging, writing to stdout.

    With ``payload_logging`` the sanitizer logger runs at debug level even
    when the root level is higher.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_component,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    logging.getLogger(PAYLOAD_LOGGER).setLevel(logging.DEBUG if payload_logging else logging.NOTSET)

    # uvicorn's access log duplicates the per-request admission events
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
