from __future__ import annotations

import csv
import io
import json
import uuid
from typing import Any, Callable, List

import yaml

from flightrisk_cli.exceptions import FlightRiskError, ImportFormatError
from flightrisk_cli.matrix import Detectability, Exposure, Likelihood, Severity
from flightrisk_cli.models.catalog import CatalogEntry
from flightrisk_cli.models.risks import Assessment, RiskEntry, new_id, now_ms

CSV_HEADERS = (
    "ID", "Study", "Experimentation", "Activity_Title", "Aircraft",
    "Dreaded_Event", "Mitigation_Measures", "Synthesis",
    "Init_Severity", "Init_Likelihood", "Init_Exposure", "Init_Detectability",
    "Res_Severity", "Res_Likelihood", "Res_Exposure", "Res_Detectability",
    "Updated_At",
)

_MIN_CSV_COLUMNS = 12


def risks_to_json(risks: List[RiskEntry]) -> str:
    return json.dumps([risk.to_dict() for risk in risks], indent=2, ensure_ascii=False)


def risks_from_json(content: str) -> List[RiskEntry]:
    try:
        payload = json.loads(content)
    except ValueError as exc:
        raise ImportFormatError(f"Invalid JSON file: {exc}") from exc
    if not isinstance(payload, list):
        raise ImportFormatError("Invalid JSON format: expected a list of risks.")

    risks: List[RiskEntry] = []
    for index, item in enumerate(payload, start=1):
        if not isinstance(item, dict):
            raise ImportFormatError(f"Invalid JSON format: item {index} is not an object.")
        try:
            risks.append(RiskEntry.from_dict(item))
        except FlightRiskError as exc:
            raise ImportFormatError(f"Invalid risk at item {index}: {exc}") from exc
    return risks


def risks_to_csv(risks: List[RiskEntry]) -> str:
    if not risks:
        return ""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for risk in risks:
        initial = risk.initial_risk
        residual = risk.residual_risk
        writer.writerow([
            risk.id, risk.study_number, risk.experimentation, risk.activity_title,
            risk.aircraft, risk.dreaded_event, risk.mitigation_measures, risk.synthesis,
            initial.severity.value, initial.likelihood.value,
            initial.exposure.value, initial.detectability.value,
            residual.severity.value, residual.likelihood.value,
            residual.exposure.value, residual.detectability.value,
            risk.updated_at,
        ])
    return buffer.getvalue()


def risks_from_csv(content: str) -> List[RiskEntry]:
    """Parse a CSV export back into risks.

    Short rows are skipped. Missing or unreadable ratings fall back to the
    bottom of their scale; levels are always recomputed from the ratings.
    """
    rows = list(csv.reader(io.StringIO(content.lstrip("\ufeff").strip())))
    if len(rows) < 2:
        raise ImportFormatError("CSV file is empty or has no header.")

    risks: List[RiskEntry] = []
    for values in rows[1:]:
        if len(values) < _MIN_CSV_COLUMNS:
            continue
        values = values + [""] * (len(CSV_HEADERS) - len(values))
        risks.append(RiskEntry(
            id=values[0] or new_id(),
            study_number=values[1],
            experimentation=values[2],
            activity_title=values[3],
            aircraft=values[4],
            dreaded_event=values[5],
            mitigation_measures=values[6],
            synthesis=values[7],
            initial_risk=_assessment_from(values[8:12]),
            residual_risk=_assessment_from(values[12:16]),
            updated_at=_int_or(values[16], now_ms),
        ))
    return risks


def catalog_from_yaml(content: str) -> List[CatalogEntry]:
    """Catalog entries from a YAML mapping or list of mappings.

    Keys follow the stored catalog format (`title`, `category`,
    `dreadedEvent`, `mitigationMeasures`, `defaultSeverity`,
    `defaultLikelihood`). Entries without an `id` get a fresh one.
    """
    try:
        payload = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ImportFormatError(f"Invalid YAML file: {exc}") from exc
    if payload is None:
        return []
    items = payload if isinstance(payload, list) else [payload]

    entries: List[CatalogEntry] = []
    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise ImportFormatError(f"Invalid catalog format: item {index} is not a mapping.")
        if not item.get("id"):
            item = dict(item, id=f"cat-{uuid.uuid4().hex[:8]}")
        try:
            entries.append(CatalogEntry.from_dict(item))
        except FlightRiskError as exc:
            raise ImportFormatError(f"Invalid catalog entry at item {index}: {exc}") from exc
    return entries


def _assessment_from(values: List[str]) -> Assessment:
    severity, likelihood, exposure, detectability = values
    return Assessment(
        severity=_rating_or(Severity.parse, severity, Severity.NEGLIGIBLE),
        likelihood=_rating_or(Likelihood.parse, likelihood, Likelihood.VERY_IMPROBABLE),
        exposure=_rating_or(Exposure.parse, exposure, Exposure.LOW),
        detectability=_rating_or(Detectability.parse, detectability, Detectability.TOTAL),
    )


def _rating_or(parse: Callable[[Any], Any], value: str, fallback: Any) -> Any:
    if not value.strip():
        return fallback
    try:
        return parse(value)
    except ValueError:
        return fallback


def _int_or(value: str, fallback: Callable[[], int]) -> int:
    try:
        return int(value)
    except ValueError:
        return fallback()
