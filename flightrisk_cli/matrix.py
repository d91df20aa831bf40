from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any, Dict, Iterable, Iterator, Tuple

from flightrisk_cli.exceptions import InvalidRatingError


class _Scale:
    """Parsing and labels shared by the closed rating scales."""

    @classmethod
    def parse(cls: Any, value: Any) -> Any:
        """Return the member for *value*, failing on anything off the scale.

        Accepts a member, its raw value (``4``, ``"4"``, ``"B"``), or its
        name, case-insensitively. Booleans are rejected even though they
        compare equal to ``0`` and ``1``.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip().upper().replace(" ", "_")
            for member in cls:
                if text == member.name or text == str(member.value).upper():
                    return member
        elif not isinstance(value, bool):
            try:
                return cls(value)
            except (ValueError, TypeError):
                pass
        expected = ", ".join(str(member.value) for member in cls)
        raise InvalidRatingError(
            f"Invalid {cls.__name__.lower()} {value!r}; expected one of {expected}."
        )

    @property
    def rank(self) -> int:
        return list(type(self)).index(self) + 1  # type: ignore[arg-type]

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").capitalize()  # type: ignore[attr-defined]


class _Ordered:
    """Ordering by declaration rank for scales encoded as strings."""

    def __lt__(self, other: Any) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.rank < other.rank  # type: ignore[attr-defined]

    def __le__(self, other: Any) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.rank <= other.rank  # type: ignore[attr-defined]

    def __gt__(self, other: Any) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.rank > other.rank  # type: ignore[attr-defined]

    def __ge__(self, other: Any) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.rank >= other.rank  # type: ignore[attr-defined]


class Severity(_Scale, IntEnum):
    NEGLIGIBLE = 1
    MODERATE = 2
    CRITICAL = 3
    CATASTROPHIC = 4


class Likelihood(_Scale, _Ordered, str, Enum):
    VERY_IMPROBABLE = "A"
    RARE = "B"
    OCCASIONAL = "C"
    FREQUENT = "D"


class RiskLevel(_Scale, _Ordered, str, Enum):
    USUAL = "Usual"
    LOW = "Low"
    HIGH = "High"
    UNACCEPTABLE = "Unacceptable"

    @property
    def color(self) -> str:
        return _LEVEL_COLORS[self]


class Exposure(_Scale, IntEnum):
    LOW = 1
    MEDIUM = 2
    SIGNIFICANT = 3
    STRONG = 4


class Detectability(_Scale, IntEnum):
    TOTAL = 1
    EXPLOITABLE = 2
    LOW = 3
    UNDETECTABLE = 4


_LEVEL_COLORS: Dict[RiskLevel, str] = {
    RiskLevel.USUAL: "#22c55e",
    RiskLevel.LOW: "#fde047",
    RiskLevel.HIGH: "#f97316",
    RiskLevel.UNACCEPTABLE: "#dc2626",
}

# Rows top to bottom, columns left to right.
SEVERITY_ROWS: Tuple[Severity, ...] = (
    Severity.CATASTROPHIC,
    Severity.CRITICAL,
    Severity.MODERATE,
    Severity.NEGLIGIBLE,
)
LIKELIHOOD_COLUMNS: Tuple[Likelihood, ...] = (
    Likelihood.VERY_IMPROBABLE,
    Likelihood.RARE,
    Likelihood.OCCASIONAL,
    Likelihood.FREQUENT,
)

# Not a formula: Moderate/Rare is Low while Negligible/Rare is Usual.
_RISK_TABLE: Dict[Severity, Dict[Likelihood, RiskLevel]] = {
    Severity.CATASTROPHIC: {
        Likelihood.FREQUENT: RiskLevel.UNACCEPTABLE,
        Likelihood.OCCASIONAL: RiskLevel.UNACCEPTABLE,
        Likelihood.RARE: RiskLevel.HIGH,
        Likelihood.VERY_IMPROBABLE: RiskLevel.LOW,
    },
    Severity.CRITICAL: {
        Likelihood.FREQUENT: RiskLevel.UNACCEPTABLE,
        Likelihood.OCCASIONAL: RiskLevel.HIGH,
        Likelihood.RARE: RiskLevel.LOW,
        Likelihood.VERY_IMPROBABLE: RiskLevel.LOW,
    },
    Severity.MODERATE: {
        Likelihood.FREQUENT: RiskLevel.HIGH,
        Likelihood.OCCASIONAL: RiskLevel.LOW,
        Likelihood.RARE: RiskLevel.LOW,
        Likelihood.VERY_IMPROBABLE: RiskLevel.USUAL,
    },
    Severity.NEGLIGIBLE: {
        Likelihood.FREQUENT: RiskLevel.LOW,
        Likelihood.OCCASIONAL: RiskLevel.LOW,
        Likelihood.RARE: RiskLevel.USUAL,
        Likelihood.VERY_IMPROBABLE: RiskLevel.USUAL,
    },
}


def classify(severity: Any, likelihood: Any) -> RiskLevel:
    """Return the risk level of a severity/likelihood pair."""
    return _RISK_TABLE[Severity.parse(severity)][Likelihood.parse(likelihood)]


def grid_position(severity: Any, likelihood: Any) -> Tuple[int, int]:
    """Return the ``(row, col)`` of a cell, Catastrophic row and Very improbable column at 0."""
    return (
        SEVERITY_ROWS.index(Severity.parse(severity)),
        LIKELIHOOD_COLUMNS.index(Likelihood.parse(likelihood)),
    )


def cell_at(row: int, col: int) -> Tuple[Severity, Likelihood]:
    if not (0 <= row < len(SEVERITY_ROWS)) or not (0 <= col < len(LIKELIHOOD_COLUMNS)):
        raise InvalidRatingError(f"Grid position ({row}, {col}) is outside the 4x4 matrix.")
    return SEVERITY_ROWS[row], LIKELIHOOD_COLUMNS[col]


def matrix_rows() -> Iterator[Tuple[Severity, Tuple[Tuple[Likelihood, RiskLevel], ...]]]:
    for severity in SEVERITY_ROWS:
        yield severity, tuple(
            (likelihood, _RISK_TABLE[severity][likelihood])
            for likelihood in LIKELIHOOD_COLUMNS
        )


def level_counts(assessments: Iterable[Any]) -> Dict[RiskLevel, int]:
    counts = {level: 0 for level in RiskLevel}
    for assessment in assessments:
        counts[assessment.computed_level] += 1
    return counts
