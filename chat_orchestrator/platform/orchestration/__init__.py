"""Agent construction, the orchestration loop and response streaming."""

from chat_orchestrator.platform.orchestration.compaction import Compactor
from chat_orchestrator.platform.orchestration.confirmation import ConfirmationBroker, PendingConfirmation
from chat_orchestrator.platform.orchestration.factory import Agent, AgentFactory, fingerprint
from chat_orchestrator.platform.orchestration.loop import Orchestrator, RetryPolicy
from chat_orchestrator.platform.orchestration.streaming import StreamingAdapter, stream_failure, to_sse

__all__ = [
    "Agent",
    "AgentFactory",
    "Compactor",
    "ConfirmationBroker",
    "Orchestrator",
    "PendingConfirmation",
    "RetryPolicy",
    "StreamingAdapter",
    "fingerprint",
    "stream_failure",
    "to_sse",
]
