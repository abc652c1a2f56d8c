"""Conversation compaction.

When a conversation approaches the provider's context window, older turns
are replaced by one system message holding an extractive summary. The most
recent turns are kept verbatim, and a tool result is never separated from
the assistant message that requested it.
"""

import json
from collections.abc import Sequence

from chat_orchestrator.platform.agent.messages import Conversation, Message, Role

PREVIEW_LENGTH = 100
SUMMARY_HEADER = "Previous conversation history has been compacted. Summary of {count} earlier messages:"


def estimate_tokens(messages: Sequence[Message]) -> int:
    """Rough token estimate (about 4 characters per token)."""
    total = 0
    for message in messages:
        chars = len(message.content) + len(message.reasoning or "")
        for call in message.tool_calls:
            chars += len(call.name) + len(json.dumps(call.arguments, default=str))
        total += (chars + 3) // 4
    return total


def _preview(text: str, limit: int = PREVIEW_LENGTH) -> str:
    text = " ".join(text.split())
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


class Compactor:
    """Extractive summarizer for old conversation turns.

    Args:
        keep_recent: Number of most recent messages kept verbatim
        max_summary_length: Upper bound for the summary text in characters
    """

    def __init__(self, keep_recent: int = 6, max_summary_length: int = 2000) -> None:
        self.keep_recent = keep_recent
        self.max_summary_length = max_summary_length

    def needs_compaction(self, messages: Sequence[Message], context_window: int, threshold: float) -> bool:
        return estimate_tokens(messages) > threshold * context_window

    def compact(self, conversation: Conversation) -> Conversation | None:
        """Summarize everything but the recent tail.

        Returns:
            A new Conversation, or None if there is nothing old enough to summarize
        """
        messages = conversation.messages
        split = len(messages) - self.keep_recent
        # A tool message must stay with the assistant message that requested it
        while split > 0 and messages[split].role is Role.TOOL:
            split -= 1
        if split <= 0:
            return None
        summary = self.summarize(messages[:split])
        return Conversation([Message.system(summary), *messages[split:]])

    def summarize(self, messages: Sequence[Message]) -> str:
        lines = [SUMMARY_HEADER.format(count=len(messages))]
        for message in messages:
            text = message.content
            if not text and message.tool_calls:
                text = "requested " + ", ".join(call.name for call in message.tool_calls)
            lines.append(f"{message.role.value.title()}: {_preview(text)}")
        summary = "\n".join(lines)
        if len(summary) > self.max_summary_length:
            summary = summary[: self.max_summary_length - 3] + "..."
        return summary
