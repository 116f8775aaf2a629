"""
Progress Store

MasteryRecord and the stores that persist it by (user_id, module_id).

Stores have upsert semantics and return None for records that were never
created, so callers can tell "no record" apart from an all-zero record.
Reads hand out copies; only the progression engine writes records back.
"""

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple, runtime_checkable
from urllib.parse import quote

logger = logging.getLogger(__name__)


class SkillLevel(str, Enum):
    """Ordered mastery tiers. Comparisons follow tier order, not the string value."""
    NOVICE = "NOVICE"
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"

    @property
    def rank(self) -> int:
        return list(SkillLevel).index(self)

    @property
    def next_level(self) -> Optional["SkillLevel"]:
        levels = list(SkillLevel)
        return levels[self.rank + 1] if self.rank + 1 < len(levels) else None

    def __lt__(self, other):
        if isinstance(other, SkillLevel):
            return self.rank < other.rank
        return NotImplemented

    def __le__(self, other):
        if isinstance(other, SkillLevel):
            return self.rank <= other.rank
        return NotImplemented

    def __gt__(self, other):
        if isinstance(other, SkillLevel):
            return self.rank > other.rank
        return NotImplemented

    def __ge__(self, other):
        if isinstance(other, SkillLevel):
            return self.rank >= other.rank
        return NotImplemented


class OrderedValueSet:
    """Deduplicated, append-only collection that keeps insertion order."""

    def __init__(self, values: Iterable[str] = ()):
        self._values: Dict[str, None] = dict.fromkeys(values)

    def add(self, value: str) -> bool:
        """Add `value`; returns False if it was already present."""
        if value in self._values:
            return False
        self._values[value] = None
        return True

    def __contains__(self, value: object) -> bool:
        return value in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other):
        if isinstance(other, OrderedValueSet):
            return list(self) == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"OrderedValueSet({list(self._values)!r})"

    def to_list(self) -> List[str]:
        return list(self._values)


@dataclass
class MasteryRecord:
    """Learning state for one user on one module."""
    user_id: str
    module_id: str
    skill_level: SkillLevel = SkillLevel.NOVICE
    concepts_explored: OrderedValueSet = field(default_factory=OrderedValueSet)
    insights_unlocked: OrderedValueSet = field(default_factory=OrderedValueSet)
    exercises_completed: OrderedValueSet = field(default_factory=OrderedValueSet)
    questions_asked: int = 0
    last_quiz_score: Optional[int] = None
    last_quiz_at: Optional[datetime] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.user_id, self.module_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "moduleId": self.module_id,
            "skillLevel": self.skill_level.value,
            "conceptsExplored": self.concepts_explored.to_list(),
            "insightsUnlocked": self.insights_unlocked.to_list(),
            "exercisesCompleted": self.exercises_completed.to_list(),
            "questionsAsked": self.questions_asked,
            "lastQuizScore": self.last_quiz_score,
            "lastQuizAt": self.last_quiz_at.isoformat() if self.last_quiz_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MasteryRecord":
        last_quiz_at = data.get("lastQuizAt")
        return cls(
            user_id=data["userId"],
            module_id=data["moduleId"],
            skill_level=SkillLevel(data.get("skillLevel", SkillLevel.NOVICE.value)),
            concepts_explored=OrderedValueSet(data.get("conceptsExplored", [])),
            insights_unlocked=OrderedValueSet(data.get("insightsUnlocked", [])),
            exercises_completed=OrderedValueSet(data.get("exercisesCompleted", [])),
            questions_asked=int(data.get("questionsAsked", 0)),
            last_quiz_score=data.get("lastQuizScore"),
            last_quiz_at=datetime.fromisoformat(last_quiz_at) if last_quiz_at else None,
        )

    def copy(self) -> "MasteryRecord":
        return MasteryRecord.from_dict(self.to_dict())


# =============================================================================
# Store Protocol
# =============================================================================

@runtime_checkable
class ProgressStore(Protocol):
    """Persistence collaborator for mastery records."""

    def get(self, user_id: str, module_id: str) -> Optional[MasteryRecord]:
        ...

    def upsert(self, record: MasteryRecord) -> None:
        ...

    def list_for_user(self, user_id: str) -> List[MasteryRecord]:
        ...


class InMemoryProgressStore:
    """Process-local store. Each call is atomic; read-modify-write cycles are not."""

    def __init__(self):
        self._records: Dict[Tuple[str, str], MasteryRecord] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str, module_id: str) -> Optional[MasteryRecord]:
        with self._lock:
            record = self._records.get((user_id, module_id))
            return record.copy() if record else None

    def upsert(self, record: MasteryRecord) -> None:
        with self._lock:
            self._records[record.key] = record.copy()

    def list_for_user(self, user_id: str) -> List[MasteryRecord]:
        with self._lock:
            return [r.copy() for (uid, _), r in self._records.items() if uid == user_id]


class JsonProgressStore:
    """
    File-backed store: one JSON file per user under `directory`.

    Usage:
        store = JsonProgressStore("data/progress")
        store.upsert(record)
        store.get("user-1", "rfdiffusion")
    """

    def __init__(self, directory: str):
        """
        Args:
            directory: Folder holding <user_id>.json files (created if missing)
        """
        self.directory = directory
        self._lock = threading.Lock()
        os.makedirs(self.directory, exist_ok=True)

    def _user_path(self, user_id: str) -> str:
        # Percent-encoding is one-to-one, so distinct users never share a file
        safe = quote(user_id, safe="") or "%"
        return os.path.join(self.directory, f"{safe}.json")

    def _load_user(self, user_id: str) -> Dict[str, Dict[str, Any]]:
        path = self._user_path(user_id)
        if not os.path.exists(path):
            return {}
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Unreadable progress file {path}, treating as empty: {e}")
            return {}
        if not isinstance(data, dict):
            return {}
        return {
            module_id: entry for module_id, entry in data.items()
            if isinstance(entry, dict) and entry.get("userId") == user_id
        }

    def _save_user(self, user_id: str, data: Dict[str, Dict[str, Any]]) -> None:
        path = self._user_path(user_id)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, path)

    def get(self, user_id: str, module_id: str) -> Optional[MasteryRecord]:
        with self._lock:
            entry = self._load_user(user_id).get(module_id)
        return MasteryRecord.from_dict(entry) if entry else None

    def upsert(self, record: MasteryRecord) -> None:
        with self._lock:
            data = self._load_user(record.user_id)
            data[record.module_id] = record.to_dict()
            self._save_user(record.user_id, data)

    def list_for_user(self, user_id: str) -> List[MasteryRecord]:
        with self._lock:
            data = self._load_user(user_id)
        return [MasteryRecord.from_dict(entry) for entry in data.values()]


def create_progress_store(directory: Optional[str] = None) -> ProgressStore:
    """JSON store when a directory is given, in-memory otherwise."""
    if directory:
        logger.info(f"Using JSON progress store at {directory}")
        return JsonProgressStore(directory)
    return InMemoryProgressStore()
