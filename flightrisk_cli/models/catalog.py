from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

from flightrisk_cli.matrix import (
    Detectability,
    Exposure,
    Likelihood,
    RiskLevel,
    Severity,
    classify,
)
from flightrisk_cli.models.risks import Assessment, RiskEntry
from flightrisk_cli.models.study import StudyContext

NEW_EXPERIMENTATION = "New experimentation"


@dataclass
class CatalogEntry:
    id: str
    title: str
    category: str
    dreaded_event: str
    mitigation_measures: str
    default_severity: Severity
    default_likelihood: Likelihood

    def __post_init__(self) -> None:
        self.default_severity = Severity.parse(self.default_severity)
        self.default_likelihood = Likelihood.parse(self.default_likelihood)

    @property
    def default_level(self) -> RiskLevel:
        return classify(self.default_severity, self.default_likelihood)

    def matches(self, query: str) -> bool:
        needle = query.strip().lower()
        if not needle:
            return True
        return any(
            needle in text.lower()
            for text in (self.title, self.category, self.dreaded_event)
        )

    def default_assessment(self) -> Assessment:
        return Assessment(
            severity=self.default_severity,
            likelihood=self.default_likelihood,
            exposure=Exposure.SIGNIFICANT,
            detectability=Detectability.EXPLOITABLE,
        )

    def to_risk(self, context: StudyContext) -> RiskEntry:
        """New risk prefilled from this entry; residual starts equal to initial."""
        return RiskEntry(
            study_number=context.study_name,
            experimentation=NEW_EXPERIMENTATION,
            activity_title=self.title,
            aircraft=context.aircraft,
            dreaded_event=self.dreaded_event,
            mitigation_measures=self.mitigation_measures,
            initial_risk=self.default_assessment(),
            residual_risk=self.default_assessment(),
        )

    def apply_to(self, risk: RiskEntry) -> None:
        """Copy the template onto *risk*, leaving its residual assessment alone."""
        risk.activity_title = self.title
        risk.dreaded_event = self.dreaded_event
        risk.mitigation_measures = self.mitigation_measures
        risk.initial_risk.update(
            severity=self.default_severity,
            likelihood=self.default_likelihood,
        )
        risk.touch()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "dreadedEvent": self.dreaded_event,
            "mitigationMeasures": self.mitigation_measures,
            "defaultSeverity": self.default_severity.value,
            "defaultLikelihood": self.default_likelihood.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CatalogEntry:
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "") or ""),
            category=str(data.get("category", "") or ""),
            dreaded_event=str(data.get("dreadedEvent", "") or ""),
            mitigation_measures=str(data.get("mitigationMeasures", "") or ""),
            default_severity=data.get("defaultSeverity", data.get("defaultGravity")),
            default_likelihood=data.get("defaultLikelihood", data.get("defaultOccurrence")),
        )
