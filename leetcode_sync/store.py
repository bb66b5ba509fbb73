"""
Persistent state for the sync: the processed submissions document
and the high-water-mark timestamp file.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

from rich.console import Console

from .leetcode_api import QuestionData, Submission

console = Console()


class StoreError(Exception):
    """Raised when the processed submissions document is malformed."""


@dataclass
class ProblemRecord:
    """Cached metadata plus the latest accepted submission per language."""

    question_data: QuestionData
    submissions: dict[str, Submission] = field(default_factory=dict)

    @property
    def title_slug(self) -> str:
        return self.question_data.title_slug

    @property
    def latest_timestamp(self) -> Optional[int]:
        if not self.submissions:
            return None
        return max(s.timestamp for s in self.submissions.values())

    def to_dict(self) -> dict:
        return {
            "questionData": self.question_data.to_dict(),
            "submissions": {
                lang: submission.to_dict()
                for lang, submission in self.submissions.items()
            },
        }

    @classmethod
    def from_dict(cls, slug: str, data: dict) -> "ProblemRecord":
        """
        Create from the persisted shape.

        Raises:
            StoreError: If the entry is missing fields or mistyped.
        """
        if not isinstance(data, dict):
            raise StoreError(f"{slug}: expected an object, got {type(data).__name__}")

        question_data = data.get("questionData")
        if not isinstance(question_data, dict):
            raise StoreError(f"{slug}: missing questionData")

        submissions = data.get("submissions", {})
        if not isinstance(submissions, dict):
            raise StoreError(f"{slug}: submissions must be an object keyed by language")

        try:
            record = cls(question_data=QuestionData.from_dict(question_data))
            for lang, submission in submissions.items():
                record.submissions[lang] = Submission.from_dict(submission)
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"{slug}: invalid entry ({e})") from e

        return record


@dataclass
class ProcessedSubmissions:
    """All problem records, keyed by title slug in insertion order."""

    problems: dict[str, ProblemRecord] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.problems)

    def __contains__(self, slug: str) -> bool:
        return slug in self.problems

    def __iter__(self) -> Iterator[ProblemRecord]:
        return iter(self.problems.values())

    def get(self, slug: str) -> Optional[ProblemRecord]:
        return self.problems.get(slug)

    def frontend_ids_by_question_id(self) -> dict[str, str]:
        """Map backend questionId -> frontend id for records that know both."""
        return {
            record.question_data.question_id: record.question_data.frontend_id
            for record in self.problems.values()
            if record.question_data.question_id
        }

    def to_dict(self) -> dict:
        return {slug: record.to_dict() for slug, record in self.problems.items()}

    @classmethod
    def from_dict(cls, data: dict) -> "ProcessedSubmissions":
        if not isinstance(data, dict):
            raise StoreError("processed submissions must be a JSON object keyed by slug")
        return cls(problems={
            slug: ProblemRecord.from_dict(slug, record)
            for slug, record in data.items()
        })


class SubmissionStore:
    """Reads and writes processed-submissions.json."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> ProcessedSubmissions:
        """
        Load the document.

        A missing file is an empty store; an unparsable or invalid one
        raises, since overwriting it would drop cached history.

        Raises:
            StoreError: If the file exists but cannot be used.
        """
        if not self.path.exists():
            console.log(f"[dim]No {self.path.name} yet, starting with an empty store[/dim]")
            return ProcessedSubmissions()

        console.log(f"Reading from {self.path.name}...")
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Could not read {self.path}: {e}") from e

        return ProcessedSubmissions.from_dict(data)

    def save(self, store: ProcessedSubmissions) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(store.to_dict(), f, indent=2, ensure_ascii=False)


class TimestampStore:
    """Reads and writes the high-water mark (ms since epoch)."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> int:
        """Return the stored timestamp, or 0 when there is no usable one."""
        try:
            with open(self.path, encoding="utf-8") as f:
                timestamp = json.load(f)["lastTimestamp"]
            timestamp = int(timestamp)
        except FileNotFoundError:
            console.log("No previous timestamp found, starting from 0")
            return 0
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            console.log(f"[yellow]Warning: Could not load timestamp file ({e}), starting from 0[/yellow]")
            return 0

        console.log(f"Retrieved last timestamp: {timestamp}")
        return timestamp

    def save(self, timestamp: int) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"lastTimestamp": timestamp}, f, indent=2)
        console.log(f"Updated last timestamp to: {timestamp}")
