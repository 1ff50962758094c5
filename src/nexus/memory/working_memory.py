"""
Ephemeral scratch state shared by the steps of a single run.

The orchestrator writes here while the API reads snapshots for display, so every accessor holds
the lock and :meth:`WorkingMemory.get_snapshot` hands out a deep copy, never the live state.
"""

import copy
import threading
import uuid
from collections import deque
from typing import (
    Any,
    Deque,
    Dict,
    List,
)

from pydantic import (
    BaseModel,
    Field,
    field_validator,
)

MAX_RECENT_THOUGHTS = 10


class Hypothesis(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    content: str
    confidence: float

    @field_validator("confidence")
    @classmethod
    def _check_confidence(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {value}")
        return value


class WorkingMemorySnapshot(BaseModel):
    """Point-in-time copy of :class:`WorkingMemory`."""

    scratchpad: Dict[str, Any] = Field(default_factory=dict)
    focus_stack: List[str] = Field(default_factory=list)
    recent_thoughts: List[str] = Field(default_factory=list)
    hypotheses: List[Hypothesis] = Field(default_factory=list)


class WorkingMemory:
    """Scratchpad, bounded thought log and hypotheses for the active run."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._scratchpad: Dict[str, Any] = {}
        self._focus_stack: List[str] = []
        self._thoughts: Deque[str] = deque(maxlen=MAX_RECENT_THOUGHTS)
        self._hypotheses: List[Hypothesis] = []

    def update_scratchpad(self, key: str, value: Any) -> None:
        with self._lock:
            self._scratchpad[key] = copy.deepcopy(value)

    def push_thought(self, text: str) -> None:
        """Append a thought; the oldest is evicted beyond the last ten."""
        with self._lock:
            self._thoughts.append(text)

    def add_hypothesis(self, content: str, confidence: float) -> Hypothesis:
        hypothesis = Hypothesis(content=content, confidence=confidence)
        with self._lock:
            self._hypotheses.append(hypothesis)
        return hypothesis

    def get_snapshot(self) -> WorkingMemorySnapshot:
        with self._lock:
            return WorkingMemorySnapshot(
                scratchpad=copy.deepcopy(self._scratchpad),
                focus_stack=list(self._focus_stack),
                recent_thoughts=list(self._thoughts),
                hypotheses=[h.model_copy() for h in self._hypotheses],
            )

    def clear(self) -> None:
        with self._lock:
            self._scratchpad = {}
            self._focus_stack = []
            self._thoughts.clear()
            self._hypotheses = []
