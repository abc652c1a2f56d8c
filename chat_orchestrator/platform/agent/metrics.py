"""Prometheus metrics for agent runs, provider tokens, tool calls and the agent cache."""

from time import monotonic
from typing import NamedTuple

import prometheus_client

from chat_orchestrator.platform.observability.metrics import BUCKETS


class AgentMetricsLabels(NamedTuple):
    agent: str


class ToolMetricsLabels(NamedTuple):
    agent: str
    tool_name: str
    proxy_tool_name: str = ""


agent_run_histogram = prometheus_client.Histogram(
    name="agent_run_duration_seconds",
    documentation="Agent run duration (seconds)",
    labelnames=("agent", "status"),
    buckets=BUCKETS,
)

agent_run_outcomes = prometheus_client.Counter(
    name="agent_run_outcomes_total",
    documentation="Agent runs by terminal state",
    labelnames=("agent", "state"),
)

agent_tokens = prometheus_client.Counter(
    name="agent_tokens_total",
    documentation="Tokens consumed by agents",
    labelnames=("agent", "model", "direction"),
)

tool_call_histogram = prometheus_client.Histogram(
    name="agent_tool_call_duration_seconds",
    documentation="Tool call duration (seconds)",
    labelnames=("agent", "tool_name", "proxy_tool_name", "status"),
    buckets=BUCKETS,
)

agent_cache_events = prometheus_client.Counter(
    name="agent_cache_events_total",
    documentation="Agent cache hits, misses and evictions",
    labelnames=("event",),
)


def record_agent_tokens(agent: str, model: str, input_tokens: int, output_tokens: int) -> None:
    """Record token usage for a provider call; zero counts are skipped."""
    if input_tokens > 0:
        agent_tokens.labels(agent, model, "input").inc(input_tokens)
    if output_tokens > 0:
        agent_tokens.labels(agent, model, "output").inc(output_tokens)


def record_tool_call(labels: ToolMetricsLabels, duration: float, error: bool = False) -> None:
    """Record the duration and outcome of a tool call."""
    status = "error" if error else "success"
    tool_call_histogram.labels(*labels, status).observe(duration)


def record_run_outcome(labels: AgentMetricsLabels, state: str) -> None:
    agent_run_outcomes.labels(labels.agent, state).inc()


def record_cache_event(event: str) -> None:
    agent_cache_events.labels(event).inc()


class collect_agent_metrics:
    """Async context manager timing an agent run.

    Usage:
        async with collect_agent_metrics(AgentMetricsLabels("mock/echo")):
            ...
    """

    def __init__(self, labels: AgentMetricsLabels) -> None:
        self.labels = labels
        self._start = 0.0

    async def __aenter__(self) -> "collect_agent_metrics":
        self._start = monotonic()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        status = "error" if exc_type is not None else "success"
        agent_run_histogram.labels(self.labels.agent, status).observe(monotonic() - self._start)


class collect_tool_metrics:
    """Async context manager timing a tool call."""

    def __init__(self, labels: ToolMetricsLabels) -> None:
        self.labels = labels
        self._start = 0.0

    async def __aenter__(self) -> "collect_tool_metrics":
        self._start = monotonic()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        record_tool_call(self.labels, monotonic() - self._start, error=exc_type is not None)
