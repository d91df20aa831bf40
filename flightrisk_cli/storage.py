from __future__ import annotations

import json
import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, TypeVar

from flightrisk_cli.catalog import DEFAULT_CATALOG, find_entry
from flightrisk_cli.exceptions import StorageError
from flightrisk_cli.formatters.json_formatter import JsonFormatter
from flightrisk_cli.matrix import Detectability, Exposure, Likelihood, Severity
from flightrisk_cli.models.catalog import CatalogEntry
from flightrisk_cli.models.risks import Assessment, RiskEntry, now_ms
from flightrisk_cli.models.study import StudyContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

RISKS_KEY = "risks"
CATALOG_KEY = "catalog"
CONTEXT_KEY = "context"

_SEED_SYNTHESIS = "Risk under control. Strict application of test cards and briefing."

_SEED_SCENARIOS: List[Dict[str, Any]] = [
    {
        "catalog_id": "cat-2",
        "activity": "Sliding on deck",
        "experimentation": "SHOL qualification day/night",
        "aircraft": "NH90 Caiman",
        "study": "PHEL-182",
        "initial": (Severity.CATASTROPHIC, Likelihood.OCCASIONAL),
        "residual": (Severity.CRITICAL, Likelihood.RARE),
    },
    {
        "catalog_id": "cat-5",
        "activity": "Fly-by-wire disturbance",
        "experimentation": "SHOL qualification day/night",
        "aircraft": "NH90 Caiman",
        "study": "PHEL-182",
        "initial": (Severity.MODERATE, Likelihood.OCCASIONAL),
        "residual": (Severity.MODERATE, Likelihood.VERY_IMPROBABLE),
    },
    {
        "catalog_id": "cat-3",
        "activity": "Spatial disorientation",
        "experimentation": "Tactical NVG flight (level 5)",
        "aircraft": "Panther Std 2",
        "study": "EXP-NVG-24",
        "initial": (Severity.CRITICAL, Likelihood.OCCASIONAL),
        "residual": (Severity.CRITICAL, Likelihood.RARE),
    },
    {
        "catalog_id": "cat-7",
        "activity": "Bird strike",
        "experimentation": "Tactical NVG flight (level 5)",
        "aircraft": "Panther Std 2",
        "study": "EXP-NVG-24",
        "initial": (Severity.MODERATE, Likelihood.OCCASIONAL),
        "residual": (Severity.MODERATE, Likelihood.RARE),
    },
    {
        "catalog_id": "cat-6",
        "activity": "Vibratory phenomenon (flutter)",
        "experimentation": "Speed envelope expansion",
        "aircraft": "H160 Guepard",
        "study": "AERO-DYN-05",
        "initial": (Severity.CATASTROPHIC, Likelihood.RARE),
        "residual": (Severity.MODERATE, Likelihood.RARE),
    },
]

_DAY_MS = int(timedelta(days=1).total_seconds() * 1000)


def seed_risks() -> List[RiskEntry]:
    """Demonstration risks for a first run, one day apart."""
    now = now_ms()
    risks: List[RiskEntry] = []
    for index, scenario in enumerate(_SEED_SCENARIOS):
        template = find_entry(DEFAULT_CATALOG, scenario["catalog_id"]) or DEFAULT_CATALOG[0]
        init_severity, init_likelihood = scenario["initial"]
        res_severity, res_likelihood = scenario["residual"]
        risks.append(RiskEntry(
            study_number=scenario["study"],
            experimentation=scenario["experimentation"],
            activity_title=scenario["activity"],
            aircraft=scenario["aircraft"],
            dreaded_event=template.dreaded_event,
            mitigation_measures=template.mitigation_measures,
            synthesis=_SEED_SYNTHESIS,
            initial_risk=Assessment(
                severity=init_severity,
                likelihood=init_likelihood,
                exposure=Exposure.STRONG,
                detectability=Detectability.LOW,
            ),
            residual_risk=Assessment(
                severity=res_severity,
                likelihood=res_likelihood,
                exposure=Exposure.MEDIUM,
                detectability=Detectability.TOTAL,
            ),
            updated_at=now - index * _DAY_MS,
        ))
    return risks


class StudyStore:
    """Local key-value store, one JSON file per key under *data_dir*."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir
        self._json_formatter = JsonFormatter()

    # --- Study context ---

    def load_context(self) -> StudyContext:
        try:
            data = self._read(CONTEXT_KEY)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to load study context: %s", exc)
            return StudyContext.empty()
        if isinstance(data, dict):
            return StudyContext.from_dict(data)
        if data is not None:
            logger.warning("Ignoring malformed study context in %s", self._path(CONTEXT_KEY))
        return StudyContext()

    def save_context(self, context: StudyContext) -> None:
        self._write(CONTEXT_KEY, context.to_dict())

    def start_new_study(self) -> StudyContext:
        self._remove(RISKS_KEY)
        context = StudyContext()
        self.save_context(context)
        return context

    # --- Risk entries ---

    def load_risks(self) -> List[RiskEntry]:
        """All stored risks; unreadable entries are logged and left out."""
        try:
            return self._load_risks(strict=False)
        except StorageError as exc:
            logger.error("Failed to load risks: %s", exc)
            return []

    def has_risks(self) -> bool:
        return self._has(RISKS_KEY)

    def _load_risks(self, strict: bool) -> List[RiskEntry]:
        path = self._path(RISKS_KEY)
        try:
            data = self._read(RISKS_KEY)
        except (OSError, ValueError) as exc:
            raise StorageError(f"Cannot read {path}: {exc}") from exc

        if data is None:
            # Neither risks nor a context: first run.
            if self._has(CONTEXT_KEY):
                return []
            seeded = seed_risks()
            self.replace_risks(seeded)
            logger.info("Seeded %d demonstration risks in %s", len(seeded), self.data_dir)
            return seeded
        return self._parse_items(RISKS_KEY, data, RiskEntry.from_dict, strict)

    def get_risk(self, risk_id: str) -> Optional[RiskEntry]:
        for risk in self.load_risks():
            if risk.id == risk_id:
                return risk
        return None

    def save_risk(self, risk: RiskEntry) -> None:
        risks = self._load_risks(strict=True)
        for index, existing in enumerate(risks):
            if existing.id == risk.id:
                risks[index] = risk
                break
        else:
            risks.append(risk)
        self.replace_risks(risks)

    def delete_risk(self, risk_id: str) -> bool:
        risks = self._load_risks(strict=True)
        remaining = [risk for risk in risks if risk.id != risk_id]
        self.replace_risks(remaining)
        return len(remaining) != len(risks)

    def replace_risks(self, risks: List[RiskEntry]) -> None:
        self._write(RISKS_KEY, [risk.to_dict() for risk in risks])

    def create_empty_risk(self) -> RiskEntry:
        context = self.load_context()
        return RiskEntry(
            study_number=context.study_name,
            aircraft=context.aircraft,
        )

    # --- Catalog entries ---

    def load_catalog(self) -> List[CatalogEntry]:
        """Catalog entries, seeded with the defaults on first use."""
        try:
            return self._load_catalog(strict=False)
        except StorageError as exc:
            logger.error("Failed to load catalog: %s", exc)
            return []

    def _load_catalog(self, strict: bool) -> List[CatalogEntry]:
        path = self._path(CATALOG_KEY)
        try:
            data = self._read(CATALOG_KEY)
        except (OSError, ValueError) as exc:
            raise StorageError(f"Cannot read {path}: {exc}") from exc
        if data is None:
            defaults = [CatalogEntry.from_dict(entry.to_dict()) for entry in DEFAULT_CATALOG]
            self._write_catalog(defaults)
            return defaults
        return self._parse_items(CATALOG_KEY, data, CatalogEntry.from_dict, strict)

    def save_catalog_entry(self, entry: CatalogEntry) -> None:
        entries = self._load_catalog(strict=True)
        for index, existing in enumerate(entries):
            if existing.id == entry.id:
                entries[index] = entry
                break
        else:
            entries.append(entry)
        self._write_catalog(entries)

    def delete_catalog_entry(self, entry_id: str) -> bool:
        entries = self._load_catalog(strict=True)
        remaining = [entry for entry in entries if entry.id != entry_id]
        self._write_catalog(remaining)
        return len(remaining) != len(entries)

    def _write_catalog(self, entries: List[CatalogEntry]) -> None:
        self._write(CATALOG_KEY, [entry.to_dict() for entry in entries])

    # --- Key-value primitives ---

    def _parse_items(
        self,
        key: str,
        data: Any,
        parse: Callable[[Mapping[str, Any]], T],
        strict: bool,
    ) -> List[T]:
        """Parse each stored item; a bad item is skipped, or raised when *strict*."""
        path = self._path(key)
        if not isinstance(data, list):
            raise StorageError(f"Invalid {key} store {path}: expected a list.")

        items: List[T] = []
        for index, item in enumerate(data, start=1):
            try:
                if not isinstance(item, dict):
                    raise ValueError("not an object.")
                items.append(parse(item))
            except (TypeError, ValueError) as exc:
                if strict:
                    raise StorageError(
                        f"Invalid {key} item {index} in {path}: {exc} "
                        "Fix or remove it before changing the study."
                    ) from exc
                logger.error("Skipping invalid %s item %d in %s: %s", key, index, path, exc)
        return items

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def _has(self, key: str) -> bool:
        return self._path(key).is_file()

    def _read(self, key: str) -> Any:
        path = self._path(key)
        if not path.is_file():
            return None
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    def _write(self, key: str, value: Any) -> None:
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self._json_formatter.write(value, self._path(key))
        except OSError as exc:
            raise StorageError(
                f"Cannot write {self._path(key)}. Check that the data directory is writable."
            ) from exc

    def _remove(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise StorageError(f"Cannot remove {self._path(key)}.") from exc
