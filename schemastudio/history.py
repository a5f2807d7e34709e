"""
Undo/redo history for the schema designer.

Snapshots hold the canonical JSON text of a schema, so a snapshot can never
be changed after it is taken. Both stacks are bounded ring buffers; when a
stack is full the oldest entry is dropped.
"""

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Dict, Any, List, Optional

from .schema_loader import export_schema_text

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_CAPACITY = 50


@dataclass(frozen=True)
class HistorySnapshot:
    """
    Immutable capture of a schema value.

    Attributes:
        payload: Canonical JSON text of the schema
        label: Name of the operation that replaced this schema
        taken_at: ISO timestamp of the capture
    """
    payload: str
    label: str = ""
    taken_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @classmethod
    def capture(cls, schema: Dict[str, Any], label: str = "") -> "HistorySnapshot":
        return cls(payload=export_schema_text(schema), label=label)

    def restore(self) -> Dict[str, Any]:
        """Return a fresh schema dictionary equal to the captured one."""
        return json.loads(self.payload)

    def to_dict(self) -> Dict[str, Any]:
        return {'schema': self.restore(), 'label': self.label, 'takenAt': self.taken_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistorySnapshot":
        return cls(
            payload=export_schema_text(data['schema']),
            label=data.get('label', ''),
            taken_at=data.get('takenAt') or datetime.now().isoformat(),
        )


class HistoryState:
    """
    Linear undo/redo stacks around a present schema.

    past is ordered oldest to newest; future is ordered nearest to farthest.
    """

    def __init__(self, capacity: int = DEFAULT_HISTORY_CAPACITY):
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self.capacity = capacity
        self.past: Deque[HistorySnapshot] = deque(maxlen=capacity)
        self.future: Deque[HistorySnapshot] = deque(maxlen=capacity)

    @property
    def can_undo(self) -> bool:
        return bool(self.past)

    @property
    def can_redo(self) -> bool:
        return bool(self.future)

    def record(self, previous: Dict[str, Any], label: str = "") -> None:
        """
        Record that previous was replaced by a new mutation.

        Clears the redo stack; branching history is not kept.
        """
        if len(self.past) == self.capacity:
            logger.debug(f"History full ({self.capacity}), evicting oldest snapshot")
        self.past.append(HistorySnapshot.capture(previous, label))
        self.future.clear()

    def undo(self, present: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Step back one entry.

        Args:
            present: Current schema, pushed onto the redo stack

        Returns:
            The schema to make present, or None if there is nothing to undo
        """
        if not self.past:
            return None
        snapshot = self.past.pop()
        # appendleft on a full deque drops the farthest redo entry
        self.future.appendleft(HistorySnapshot.capture(present, snapshot.label))
        return snapshot.restore()

    def redo(self, present: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Step forward one entry.

        Args:
            present: Current schema, pushed onto the undo stack

        Returns:
            The schema to make present, or None if there is nothing to redo
        """
        if not self.future:
            return None
        snapshot = self.future.popleft()
        self.past.append(HistorySnapshot.capture(present, snapshot.label))
        return snapshot.restore()

    def clear(self) -> None:
        self.past.clear()
        self.future.clear()

    def labels(self) -> Dict[str, List[str]]:
        """Operation labels on each stack, for toolbars and tooltips."""
        return {
            'past': [snapshot.label for snapshot in self.past],
            'future': [snapshot.label for snapshot in self.future],
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'past': [snapshot.to_dict() for snapshot in self.past],
            'future': [snapshot.to_dict() for snapshot in self.future],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], capacity: int = DEFAULT_HISTORY_CAPACITY) -> "HistoryState":
        history = cls(capacity)
        for entry in data.get('past', []):
            history.past.append(HistorySnapshot.from_dict(entry))
        for entry in data.get('future', []):
            history.future.append(HistorySnapshot.from_dict(entry))
        return history
