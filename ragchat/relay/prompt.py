"""Prompt construction for baseline and retrieval-augmented turns."""

from collections.abc import Sequence

from ragchat.models.schemas import ChatMessage, Role, VectorMatch


def join_context(matches: Sequence[VectorMatch]) -> str:
    """Concatenate stored chunk text in rank order, one match per line."""
    return "\n".join(match.text for match in matches)


def build_baseline_prompt(system_prompt: str, conversation: Sequence[ChatMessage]) -> list[ChatMessage]:
    return [ChatMessage(role=Role.SYSTEM, content=system_prompt), *conversation]


def build_augmented_prompt(system_prompt: str, context: str, question: str) -> list[ChatMessage]:
    """Replace the history with a single turn carrying context and question."""
    return [
        ChatMessage(role=Role.SYSTEM, content=system_prompt),
        ChatMessage(role=Role.USER, content=f"{context}\n\nQ: {question}\nA:"),
    ]
