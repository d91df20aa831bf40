from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Mapping

DEFAULT_STUDY_NAME = "New study"

CONTEXT_FIELDS = ("study_name", "aircraft", "date", "global_synthesis")


def _today() -> str:
    return date.today().isoformat()


@dataclass
class StudyContext:
    study_name: str = DEFAULT_STUDY_NAME
    aircraft: str = ""
    date: str = field(default_factory=_today)
    global_synthesis: str = ""

    @classmethod
    def empty(cls) -> StudyContext:
        return cls(study_name="", aircraft="", date="", global_synthesis="")

    def edit(self, **changes: str) -> None:
        """Set context fields by name; a non-blank date must be YYYY-MM-DD."""
        unknown = sorted(set(changes) - set(CONTEXT_FIELDS))
        if unknown:
            raise TypeError(f"Unknown study field(s): {', '.join(unknown)}")
        if changes.get("date"):
            date.fromisoformat(changes["date"])
        for name, value in changes.items():
            setattr(self, name, str(value))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "studyName": self.study_name,
            "aircraft": self.aircraft,
            "date": self.date,
            "globalSynthesis": self.global_synthesis,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StudyContext:
        return cls(
            study_name=str(data.get("studyName", "") or ""),
            aircraft=str(data.get("aircraft", "") or ""),
            date=str(data.get("date", "") or ""),
            global_synthesis=str(data.get("globalSynthesis", "") or ""),
        )
