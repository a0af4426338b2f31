# core/domain/dispatcher.py
"""
Side effects of committed business operations.

Services never send mail or create notifications themselves: they emit an
event describing what happened (OrderConfirmed, InvoiceIssued, ...) and the
handlers registered in each app's handlers.py react to it once the
transaction has committed.

    @register_handler(OrderConfirmed)
    def email_customer_on_confirmation(event: OrderConfirmed) -> None:
        ...

    emit_on_commit(OrderConfirmed(order_id=order.pk, number=order.number))
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, DefaultDict, List, Type, TypeVar

from django.db import transaction

from .events import DomainEvent

logger = logging.getLogger(__name__)

EventT = TypeVar("EventT", bound=DomainEvent)
Handler = Callable[[EventT], None]


class DomainEventDispatcher:
    def __init__(self) -> None:
        self._handlers: DefaultDict[Type[DomainEvent], List[Handler]] = defaultdict(list)

    def register_handler(self, event_type: Type[EventT]):
        """Subscribe the decorated function to one event class. Re-registering is a no-op."""

        def decorator(func: Handler) -> Handler:
            subscribers = self._handlers[event_type]
            if func not in subscribers:
                subscribers.append(func)
                logger.debug("%s subscribed to %s", func.__name__, event_type.__name__)
            return func

        return decorator

    def emit(self, event: DomainEvent) -> None:
        """
        Run every handler of the event now, in registration order.

        A failing handler is logged and skipped: a customer email that
        cannot be sent must not hide the staff notification after it.
        """
        name = type(event).__name__
        subscribers = list(self._handlers.get(type(event), ()))
        if not subscribers:
            logger.debug("%s emitted with no subscribers", name)
            return

        for handler in subscribers:
            try:
                handler(event)  # type: ignore[arg-type]
            except Exception:
                logger.exception("Handler %s failed on %s %s", handler.__name__, name, event)

    def emit_on_commit(self, event: DomainEvent) -> None:
        """
        Defer emit() until the surrounding transaction commits.
        A rolled-back operation emits nothing; outside a transaction the event is emitted at once.
        """
        transaction.on_commit(lambda: self.emit(event))


# One dispatcher per process; handlers.py modules register on it from AppConfig.ready().
dispatcher = DomainEventDispatcher()

register_handler = dispatcher.register_handler
emit_on_commit = dispatcher.emit_on_commit
