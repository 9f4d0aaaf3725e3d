"""User interaction tool handlers."""

from __future__ import annotations
from typing import TYPE_CHECKING

from orgchart.event_bus import QUESTION

if TYPE_CHECKING:
    from orgchart.event_bus import EventBus
    from orgchart.worker import Worker


def handle_ask_question(tool_args: dict, worker: "Worker", events: "EventBus") -> str:
    question = tool_args.get("question", "")
    if not question:
        raise ValueError("Missing required parameter: question")
    reasoning = tool_args.get("reasoning", "")

    events.emit(
        QUESTION,
        agent=worker.name,
        agent_id=worker.instance_id,
        title="Question from Agent",
        content=[c for c in (reasoning, question) if c],
        data={"question": question, "reasoning": reasoning},
    )
    # The answer is delivered through the worker's mailbox by send_input()
    # and folded in as a new message on a later tick.
    return (
        "The question has been shown to the user. Their answer will arrive "
        "as a new message; continue with any work that does not depend on it."
    )
