"""Suspended tool confirmations.

When an agent requires confirmation, the orchestration loop parks the tool
calls of a turn in a PendingConfirmation and waits for a decision. The
ConfirmationBroker makes pending confirmations reachable by run id, e.g.
from an HTTP endpoint while the run's stream is still open.
"""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass

from chat_orchestrator.platform.agent.errors import ConfigurationError, ConfirmationNotPending
from chat_orchestrator.platform.agent.messages import ToolCallRequest


@dataclass(frozen=True)
class ConfirmationDecision:
    """Outcome of a confirmation.

    Attributes:
        approved: Call ids allowed to run; every other pending call is rejected
        reason: Reason given for rejected calls
    """

    approved: frozenset[str]
    reason: str = "Rejected by user"


CONFIRMATION_TIMED_OUT = "Confirmation timed out"


class PendingConfirmation:
    """Tool calls awaiting an approve/reject decision.

    A decision can be made exactly once; later calls raise ConfirmationNotPending.
    """

    def __init__(self, run_id: str, requests: Iterable[ToolCallRequest]) -> None:
        self.run_id = run_id
        self.requests = tuple(requests)
        self._future: asyncio.Future[ConfirmationDecision] = asyncio.get_running_loop().create_future()

    @property
    def call_ids(self) -> frozenset[str]:
        return frozenset(request.id for request in self.requests)

    @property
    def resolved(self) -> bool:
        return self._future.done()

    def approve(self, call_ids: Iterable[str] | None = None) -> None:
        """Approve all pending calls, or only the given call ids."""
        approved = self.call_ids if call_ids is None else self.call_ids & frozenset(call_ids)
        self._resolve(ConfirmationDecision(approved=approved))

    def reject(self, reason: str = "Rejected by user") -> None:
        self._resolve(ConfirmationDecision(approved=frozenset(), reason=reason))

    def _resolve(self, decision: ConfirmationDecision) -> None:
        if self._future.done():
            raise ConfirmationNotPending(self.run_id)
        self._future.set_result(decision)

    async def wait(self) -> ConfirmationDecision:
        # shield so a cancelled waiter does not cancel the shared future
        return await asyncio.shield(self._future)


class ConfirmationBroker:
    """Registry of pending confirmations keyed by run id.

    At most one unresolved confirmation exists per run id; a second run
    reusing the id while the first is still waiting is refused.
    """

    def __init__(self) -> None:
        self._pending: dict[str, PendingConfirmation] = {}

    def open(self, run_id: str, requests: Iterable[ToolCallRequest]) -> PendingConfirmation:
        """Park tool calls for a run.

        Raises:
            ConfigurationError: If the run id already has an undecided confirmation
        """
        current = self._pending.get(run_id)
        if current is not None and not current.resolved:
            raise ConfigurationError(f"Run '{run_id}' is already waiting for a tool confirmation")
        pending = PendingConfirmation(run_id, requests)
        self._pending[run_id] = pending
        return pending

    def close(self, run_id: str, pending: PendingConfirmation | None = None) -> None:
        """Forget the run's confirmation; with ``pending``, only if it is still the registered one."""
        if pending is None or self._pending.get(run_id) is pending:
            self._pending.pop(run_id, None)

    def get(self, run_id: str) -> PendingConfirmation:
        pending = self._pending.get(run_id)
        if pending is None or pending.resolved:
            raise ConfirmationNotPending(run_id)
        return pending

    def approve(self, run_id: str, call_ids: Iterable[str] | None = None) -> PendingConfirmation:
        pending = self.get(run_id)
        pending.approve(call_ids)
        return pending

    def reject(self, run_id: str, reason: str = "Rejected by user") -> PendingConfirmation:
        pending = self.get(run_id)
        pending.reject(reason)
        return pending

    def pending_runs(self) -> list[str]:
        return sorted(run_id for run_id, pending in self._pending.items() if not pending.resolved)
