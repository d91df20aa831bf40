from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from flightrisk_cli.geometry import DEFAULT_LAYOUT, GridLayout, PathDescription, evolution_path
from flightrisk_cli.matrix import (
    Detectability,
    Exposure,
    Likelihood,
    RiskLevel,
    Severity,
    classify,
)

IMPROVED = "improved"
UNCHANGED = "unchanged"
REGRESSED = "regressed"

PHASES = ("initial", "residual")

TEXT_FIELDS = (
    "study_number",
    "experimentation",
    "activity_title",
    "aircraft",
    "dreaded_event",
    "mitigation_measures",
    "synthesis",
)

_RATING_PARSERS: Dict[str, Callable[[Any], Any]] = {
    "severity": Severity.parse,
    "likelihood": Likelihood.parse,
    "exposure": Exposure.parse,
    "detectability": Detectability.parse,
}
RATING_FIELDS = tuple(_RATING_PARSERS)

# Keys written by earlier releases of the local store.
_LEGACY_KEYS: Dict[str, str] = {
    "severity": "gravity",
    "likelihood": "occurrence",
    "exposure": "exposition",
}


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Assessment:
    """One rating of a hazard.

    Every assignment to a rating field is validated against its scale, and
    ``computed_level`` is derived on each read, so the level can never drift
    from the severity and likelihood it describes.
    """

    severity: Severity = Severity.CATASTROPHIC
    likelihood: Likelihood = Likelihood.FREQUENT
    exposure: Exposure = Exposure.STRONG
    detectability: Detectability = Detectability.UNDETECTABLE

    def __setattr__(self, name: str, value: Any) -> None:
        parse = _RATING_PARSERS.get(name)
        super().__setattr__(name, parse(value) if parse else value)

    @property
    def computed_level(self) -> RiskLevel:
        return classify(self.severity, self.likelihood)

    @property
    def cell(self) -> Tuple[Severity, Likelihood]:
        return self.severity, self.likelihood

    @property
    def code(self) -> str:
        """Short cell reference such as ``S4/LB``."""
        return f"S{self.severity.value}/L{self.likelihood.value}"

    def update(self, **changes: Any) -> None:
        unknown = sorted(set(changes) - set(_RATING_PARSERS))
        if unknown:
            raise TypeError(f"Unknown assessment field(s): {', '.join(unknown)}")
        parsed = {name: _RATING_PARSERS[name](value) for name, value in changes.items()}
        for name, value in parsed.items():
            setattr(self, name, value)

    def copy(self) -> Assessment:
        return Assessment(
            severity=self.severity,
            likelihood=self.likelihood,
            exposure=self.exposure,
            detectability=self.detectability,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "likelihood": self.likelihood.value,
            "exposure": self.exposure.value,
            "detectability": self.detectability.value,
            "computedLevel": self.computed_level.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Assessment:
        # computedLevel is recomputed, never read back.
        values: Dict[str, Any] = {}
        for name in _RATING_PARSERS:
            if name in data:
                values[name] = data[name]
            elif _LEGACY_KEYS.get(name) in data:
                values[name] = data[_LEGACY_KEYS[name]]
        return cls(**values)


@dataclass
class RiskEntry:
    id: str = field(default_factory=new_id)
    study_number: str = ""
    experimentation: str = ""
    activity_title: str = ""
    aircraft: str = ""
    dreaded_event: str = ""
    mitigation_measures: str = ""
    synthesis: str = ""
    initial_risk: Assessment = field(default_factory=Assessment)
    residual_risk: Assessment = field(default_factory=Assessment)
    updated_at: int = field(default_factory=now_ms)

    @property
    def trend(self) -> str:
        before = self.initial_risk.computed_level
        after = self.residual_risk.computed_level
        if after < before:
            return IMPROVED
        if after > before:
            return REGRESSED
        return UNCHANGED

    def assessment(self, phase: str) -> Assessment:
        if phase == "initial":
            return self.initial_risk
        if phase == "residual":
            return self.residual_risk
        raise ValueError(f"Unknown assessment phase '{phase}'. Use 'initial' or 'residual'.")

    def rate(self, phase: str, **changes: Any) -> None:
        self.assessment(phase).update(**changes)
        self.touch()

    def edit(self, **changes: str) -> None:
        unknown = sorted(set(changes) - set(TEXT_FIELDS))
        if unknown:
            raise TypeError(f"Unknown risk field(s): {', '.join(unknown)}")
        for name, value in changes.items():
            setattr(self, name, str(value))
        self.touch()

    def evolution(self, layout: GridLayout = DEFAULT_LAYOUT) -> Optional[PathDescription]:
        return evolution_path(self.initial_risk, self.residual_risk, layout)

    def touch(self) -> None:
        self.updated_at = now_ms()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "studyNumber": self.study_number,
            "experimentation": self.experimentation,
            "activityTitle": self.activity_title,
            "aircraft": self.aircraft,
            "dreadedEvent": self.dreaded_event,
            "mitigationMeasures": self.mitigation_measures,
            "synthesis": self.synthesis,
            "initialRisk": self.initial_risk.to_dict(),
            "residualRisk": self.residual_risk.to_dict(),
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RiskEntry:
        initial = data.get("initialRisk")
        residual = data.get("residualRisk")
        return cls(
            id=str(data.get("id") or new_id()),
            study_number=str(data.get("studyNumber", "") or ""),
            experimentation=str(data.get("experimentation", "") or ""),
            activity_title=str(data.get("activityTitle", "") or ""),
            aircraft=str(data.get("aircraft", "") or ""),
            dreaded_event=str(data.get("dreadedEvent", "") or ""),
            mitigation_measures=str(data.get("mitigationMeasures", "") or ""),
            synthesis=str(data.get("synthesis", "") or ""),
            initial_risk=Assessment.from_dict(initial) if isinstance(initial, Mapping) else Assessment(),
            residual_risk=Assessment.from_dict(residual) if isinstance(residual, Mapping) else Assessment(),
            updated_at=_as_int(data.get("updatedAt")) or now_ms(),
        )


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return 0
