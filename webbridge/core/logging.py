"""Debug routing for the transport libraries' own loggers.

webbridge never installs handlers on its own loggers; the host decides where
``webbridge.*`` records go. The HTTP and WebSocket libraries are quieter by
default, so this module offers a switch that turns them up to DEBUG and
attaches one shared handler, and a matching switch to undo it on shutdown.
"""

from __future__ import annotations

import logging

TRANSPORT_LOGGERS = ("httpx", "httpcore", "websockets")

_handler: logging.Handler | None = None


def configure_transport_logging(handler: logging.Handler | None = None) -> None:
    """Route httpx/httpcore/websockets debug output to ``handler``.

    Call once at startup. Repeated calls are no-ops until
    ``unconfigure_transport_logging`` runs.

    Args:
        handler: Destination handler. Defaults to a stderr StreamHandler.
    """
    global _handler

    if _handler is not None:
        return

    _handler = handler or logging.StreamHandler()
    _handler.setLevel(logging.DEBUG)
    if _handler.formatter is None:
        _handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    # Attach to parent loggers only to avoid duplication from child propagation
    for logger_name in TRANSPORT_LOGGERS:
        logger = logging.getLogger(logger_name)
        logger.addHandler(_handler)
        logger.setLevel(logging.DEBUG)


def unconfigure_transport_logging() -> None:
    """Remove the transport logging handler."""
    global _handler

    if _handler is None:
        return

    for logger_name in TRANSPORT_LOGGERS:
        logger = logging.getLogger(logger_name)
        logger.removeHandler(_handler)
        logger.setLevel(logging.NOTSET)

    _handler = None
