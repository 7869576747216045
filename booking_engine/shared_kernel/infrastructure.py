"""
Общая инфраструктура: логгер на базе стандартного logging и шина событий в памяти.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Type

from . import interfaces as ports
from .domain import DomainEvent

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Настраивает корневой логгер приложения."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


class StdLibLogger(ports.ILogger):
    """
    Реализация ILogger поверх стандартного модуля logging.

    Именованные аргументы выводятся как JSON-контекст после сообщения.
    """

    def __init__(self, name: str = "booking_engine"):
        self._logger = logging.getLogger(name)

    @staticmethod
    def _render(message: str, context: Dict[str, Any]) -> str:
        if not context:
            return message
        return f"{message} | context={json.dumps(context, default=str, ensure_ascii=False)}"

    def info(self, message: str, **kwargs: Any) -> None:
        self._logger.info(self._render(message, kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        self._logger.error(self._render(message, kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.warning(self._render(message, kwargs))

    def debug(self, message: str, **kwargs: Any) -> None:
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(self._render(message, kwargs))


class InMemoryEventBus(ports.IEventBus):
    """Реализация шины событий в памяти."""

    def __init__(self, logger: Optional[ports.ILogger] = None):
        self._subscribers: Dict[Type[DomainEvent], List[Callable]] = {}
        self._logger = logger or StdLibLogger(__name__)

    def publish(self, event: DomainEvent) -> None:
        """Публикует событие."""
        event_type = type(event)
        if event_type not in self._subscribers:
            self._logger.debug(f"No subscribers for event type {event.event_type}")
            return

        self._logger.info(
            f"Publishing event: {event.event_type}", event=event.model_dump(mode="json")
        )

        for handler in self._subscribers[event_type]:
            try:
                handler(event)
            except Exception as e:
                # Данные уже зафиксированы, сбой подписчика не отменяет операцию
                self._logger.error(
                    f"Error in event handler for {event.event_type}",
                    error=str(e),
                    event=event.model_dump(mode="json"),
                )

    def subscribe(self, event_type: Type[DomainEvent], handler: Callable) -> None:
        """Подписывает обработчик на события указанного типа."""
        self._subscribers.setdefault(event_type, []).append(handler)
        self._logger.debug(f"Subscribed handler to {event_type.__name__} events")
