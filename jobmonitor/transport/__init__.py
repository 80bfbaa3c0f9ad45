"""Message transport towards the orchestrator."""

from .messages import LostJob, Message, MessageHeader, OrchestratorMessage, StuckRun, WorkerError
from .sender import (
    BaseMessageSender,
    InMemoryMessageSender,
    InMemoryMessageSenderConfig,
    LoggingMessageSender,
    LoggingMessageSenderConfig,
    MessageSenderInterface,
)

__all__ = [
    "BaseMessageSender",
    "InMemoryMessageSender",
    "InMemoryMessageSenderConfig",
    "LoggingMessageSender",
    "LoggingMessageSenderConfig",
    "LostJob",
    "Message",
    "MessageHeader",
    "MessageSenderInterface",
    "OrchestratorMessage",
    "StuckRun",
    "WorkerError",
]
