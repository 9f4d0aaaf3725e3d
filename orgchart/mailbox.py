"""Parent/child message slots.

A Mailbox is created with each child worker and is the only state two
workers share. Each direction is a single slot: posting overwrites whatever
is there, so a second message posted before the first is taken replaces it.
Callers must not rely on queuing.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Optional
from uuid import uuid4

logger = logging.getLogger("orgchart")


class Participant(str, Enum):
    """Which end of the mailbox wrote a message."""
    PARENT = "parent"
    CHILD = "child"


class Mailbox:
    """Two single-message slots plus the tool-call id the parent is waiting on.

    The lock only guards against the API thread posting user input while the
    ticking thread reads; it does not change the overwrite semantics.
    """

    def __init__(self, pending_tool_call_id: Optional[str] = None):
        self.id = uuid4().hex
        self.pending_tool_call_id = pending_tool_call_id
        self._slots: dict[Participant, Optional[str]] = {
            Participant.PARENT: None,
            Participant.CHILD: None,
        }
        self._lock = threading.Lock()

    # -- generic slot API --------------------------------------------------

    def post(self, sender: Participant, message: str) -> None:
        """Put *message* in *sender*'s slot, replacing any unread message."""
        with self._lock:
            if self._slots[sender] is not None:
                logger.debug(
                    f"Mailbox {self.id[:8]}: unread {sender.value} message overwritten"
                )
            self._slots[sender] = message

    def peek(self, sender: Participant) -> Optional[str]:
        with self._lock:
            return self._slots[sender]

    def take(self, sender: Participant) -> Optional[str]:
        """Remove and return the message in *sender*'s slot (None if empty)."""
        with self._lock:
            message = self._slots[sender]
            self._slots[sender] = None
            return message

    def has(self, sender: Participant) -> bool:
        with self._lock:
            return self._slots[sender] is not None

    # -- direction helpers -------------------------------------------------

    def post_from_parent(self, message: str) -> None:
        self.post(Participant.PARENT, message)

    def post_from_child(self, message: str) -> None:
        self.post(Participant.CHILD, message)

    def take_from_parent(self) -> Optional[str]:
        return self.take(Participant.PARENT)

    def take_from_child(self) -> Optional[str]:
        return self.take(Participant.CHILD)

    def has_from_parent(self) -> bool:
        return self.has(Participant.PARENT)

    def has_from_child(self) -> bool:
        return self.has(Participant.CHILD)

    def __repr__(self) -> str:
        return (
            f"Mailbox(id={self.id[:8]}, pending_tool_call_id={self.pending_tool_call_id!r}, "
            f"from_parent={self.has_from_parent()}, from_child={self.has_from_child()})"
        )
