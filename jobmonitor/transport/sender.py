"""Outbound message senders delivering notifications to the orchestrator."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass

from compoconf import ConfigInterface, RegistrableConfigInterface, register, register_interface

from jobmonitor.transport.messages import Message

LOGGER = logging.getLogger(__name__)


@register_interface
class MessageSenderInterface(RegistrableConfigInterface):
    """Interface for channels delivering messages to the orchestrator."""


class BaseMessageSender(MessageSenderInterface):
    config: ConfigInterface

    def __init__(self, config: ConfigInterface) -> None:
        self.config = config

    def send(self, message: Message) -> None:  # pragma: no cover - interface
        raise NotImplementedError


@dataclass(kw_only=True)
class InMemoryMessageSenderConfig(ConfigInterface):
    class_name: str = "InMemoryMessageSender"


@register
class InMemoryMessageSender(BaseMessageSender):
    """Collect sent messages in memory.

    Setting ``fail_with`` makes every subsequent ``send`` raise that
    exception, which simulates an unavailable channel.
    """

    config: InMemoryMessageSenderConfig

    def __init__(self, config: InMemoryMessageSenderConfig | None = None) -> None:
        super().__init__(config or InMemoryMessageSenderConfig())
        self._lock = threading.Lock()
        self.messages: list[Message] = []
        self.fail_with: Exception | None = None

    def send(self, message: Message) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            self.messages.append(message)


@dataclass(kw_only=True)
class LoggingMessageSenderConfig(ConfigInterface):
    class_name: str = "LoggingMessageSender"
    level: str = "INFO"


@register
class LoggingMessageSender(BaseMessageSender):
    """Write messages as JSON to the log instead of a transport."""

    config: LoggingMessageSenderConfig

    def send(self, message: Message) -> None:
        level = logging.getLevelName(self.config.level.upper())
        if not isinstance(level, int):
            level = logging.INFO
        LOGGER.log(level, f"orchestrator message: {json.dumps(message.to_dict(), sort_keys=True)}")


__all__ = [
    "BaseMessageSender",
    "InMemoryMessageSender",
    "InMemoryMessageSenderConfig",
    "LoggingMessageSender",
    "LoggingMessageSenderConfig",
    "MessageSenderInterface",
]
