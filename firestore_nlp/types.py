"""Domain types shared by the trigger gate, the task dispatcher and the mirror."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypedDict


class ChangeType(Enum):
    CREATE = "CREATE"
    DELETE = "DELETE"
    UPDATE = "UPDATE"


class Task(str, Enum):
    SENTIMENT = "SENTIMENT"
    CLASSIFICATION = "CLASSIFICATION"
    ENTITY = "ENTITY"


def parse_tasks(names: Iterable[str]) -> tuple[tuple[Task, ...], list[str]]:
    """Split configured task names into known tasks (ordered, unique) and unknown names."""
    known: list[Task] = []
    unknown: list[str] = []
    for name in names:
        try:
            task = Task(name.strip().upper())
        except ValueError:
            unknown.append(name)
            continue
        if task not in known:
            known.append(task)
    return tuple(known), unknown


# -- Task outputs ---------------------------------------------------------------


class SentimentOutput(TypedDict):
    score: float
    magnitude: float


ClassificationOutput = list[str]  # category paths, e.g. "/Travel/Tourist Destinations"
EntityOutput = dict[str, list[str]]  # entity type -> entity names

TaskOutput = SentimentOutput | ClassificationOutput | EntityOutput

# Task.value -> output, successful tasks only
AnnotationResult = dict[str, Any]


@dataclass(frozen=True)
class TaskSuccess:
    task: Task
    output: TaskOutput


@dataclass(frozen=True)
class TaskFailure:
    task: Task
    error: BaseException


TaskOutcome = TaskSuccess | TaskFailure


# -- Firestore snapshots --------------------------------------------------------


@dataclass(frozen=True)
class DocumentSnapshot:
    """Read-only view of one side of a document write."""

    path: str  # e.g. "trips/id1"
    exists: bool
    data: Mapping[str, Any] = field(default_factory=dict)

    def _lookup(self, field_path: str) -> tuple[bool, Any]:
        node: Any = self.data
        for segment in field_path.split("."):
            if not isinstance(node, Mapping) or segment not in node:
                return False, None
            node = node[segment]
        return True, node

    def contains(self, field_path: str) -> bool:
        if not self.exists:
            return False
        return self._lookup(field_path)[0]

    def get(self, field_path: str, default: Any = None) -> Any:
        if not self.exists:
            return default
        found, value = self._lookup(field_path)
        return value if found else default

    @property
    def collection_path(self) -> str:
        return self.path.rpartition("/")[0]

    @property
    def doc_id(self) -> str:
        return self.path.rpartition("/")[2]


@dataclass(frozen=True)
class ChangeEvent:
    before: DocumentSnapshot
    after: DocumentSnapshot

    @property
    def path(self) -> str:
        return self.after.path or self.before.path
