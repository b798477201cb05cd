"""Structured JSON logging carrying order and webhook delivery correlation."""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from foodpay.common.config import settings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
delivery_id_ctx: ContextVar[str] = ContextVar("delivery_id", default="")
order_id_ctx: ContextVar[str] = ContextVar("order_id", default="")

_BINDABLE = {
    "trace_id": trace_id_ctx,
    "delivery_id": delivery_id_ctx,
    "order_id": order_id_ctx,
}


class ContextFilter(logging.Filter):
    """Stamp every record with the service, trace, delivery and order ids."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.trace_id = trace_id_ctx.get()
        record.delivery_id = delivery_id_ctx.get()
        record.order_id = order_id_ctx.get()
        return True


@contextmanager
def log_context(**fields: str | None):
    """Bind correlation ids for one unit of work and restore them on exit.

    Empty values are skipped so a webhook without a delivery id keeps
    whatever the caller already bound.
    """

    tokens = []
    for name, value in fields.items():
        if value:
            var = _BINDABLE[name]
            tokens.append((var, var.set(value)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def configure_logging() -> None:
    """Configure root logger once per service process."""

    handler = logging.StreamHandler(sys.stdout)
    context_filter = ContextFilter()
    handler.addFilter(context_filter)
    formatter = JsonFormatter(
        "%(asctime)s %(levelname)s %(service_name)s %(trace_id)s %(delivery_id)s %(order_id)s %(message)s"
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)
    root.addFilter(context_filter)


logger = logging.getLogger("foodpay")
