"""Label triggers and the label changes they cause on a pull request."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from functools import total_ordering


@total_ordering
class LabelTrigger(enum.Enum):
    """An event that may trigger modifications of labels on a pull request.

    Members are ordered in declaration order.
    """

    APPROVED = "approved"
    UNAPPROVED = "unapproved"
    TRY_BUILD_STARTED = "try_build_started"
    TRY_BUILD_SUCCEEDED = "try_build_succeeded"
    TRY_BUILD_FAILED = "try_build_failed"

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, LabelTrigger):
            return NotImplemented
        members = list(LabelTrigger)
        return members.index(self) < members.index(other)

    def __hash__(self) -> int:
        return hash(self.value)


class LabelAction(enum.Enum):
    """Whether a label is added or removed."""

    ADD = "+"
    REMOVE = "-"


@dataclass(frozen=True)
class LabelModification:
    """A single label to add to or remove from a pull request."""

    action: LabelAction
    label: str

    @classmethod
    def add(cls, label: str) -> LabelModification:
        return cls(LabelAction.ADD, label)

    @classmethod
    def remove(cls, label: str) -> LabelModification:
        return cls(LabelAction.REMOVE, label)

    def inverted(self) -> LabelModification:
        """Return the modification that undoes this one."""
        if self.action is LabelAction.ADD:
            return LabelModification.remove(self.label)
        return LabelModification.add(self.label)

    def __str__(self) -> str:
        return f"{self.action.value}{self.label}"