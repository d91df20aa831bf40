from __future__ import annotations

import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from flightrisk_cli.formatters.base import BaseFormatter
from flightrisk_cli.formatters.json_formatter import JsonFormatter
from flightrisk_cli.formatters.markdown_formatter import MarkdownFormatter
from flightrisk_cli.formatters.svg_formatter import SvgFormatter
from flightrisk_cli.formatters.yaml_formatter import YamlFormatter
from flightrisk_cli.geometry import DEFAULT_LAYOUT, GridLayout
from flightrisk_cli.models.risks import Assessment, RiskEntry
from flightrisk_cli.storage import StudyStore

GENERAL_GROUP = "General risks"


class BaseExporter(ABC):
    def __init__(
        self,
        store: StudyStore,
        output_dir: Path,
        *,
        force: bool = False,
        keep_raw_json: bool = False,
        layout: GridLayout = DEFAULT_LAYOUT,
    ) -> None:
        self.store = store
        self.output_dir = output_dir
        self.force = force
        self.keep_raw_json = keep_raw_json
        self.layout = layout
        self._overwrite_all = False
        self._md_formatter = MarkdownFormatter()
        self._json_formatter = JsonFormatter()
        self._yaml_formatter = YamlFormatter()
        self._svg_formatter = SvgFormatter()

    @abstractmethod
    def export(self) -> None:
        """Read the study from the store and write reports to output_dir."""
        ...

    def _ensure_output_dir(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _log(self, message: str) -> None:
        print(message)

    def _should_write(self, path: Path) -> bool:
        """Check whether *path* should be written, prompting if needed."""
        if not path.exists():
            return True
        if self.force or self._overwrite_all:
            return True
        while True:
            answer = input(
                f"Overwrite existing {path.name}? [Yes/No/All] "
            ).strip().lower()
            if answer in ("y", "yes"):
                return True
            if answer in ("n", "no"):
                return False
            if answer in ("a", "all"):
                self._overwrite_all = True
                return True

    def _write_output(self, formatter: BaseFormatter, stem: str, data: Any) -> None:
        path = self.output_dir / (stem + formatter.file_extension())
        if self._should_write(path):
            formatter.write(data, path)

    def _write_raw_json(self, stem: str, data: Any) -> None:
        if self.keep_raw_json:
            self._write_output(self._json_formatter, stem, data)


def file_stem(risk: RiskEntry) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", risk.activity_title.lower()).strip("-")
    short_id = risk.id.replace("-", "")[:8]
    return f"{slug}-{short_id}" if slug else f"risk-{short_id}"


def group_by_experimentation(risks: List[RiskEntry]) -> Dict[str, List[RiskEntry]]:
    grouped: Dict[str, List[RiskEntry]] = {}
    for risk in risks:
        grouped.setdefault(risk.experimentation.strip() or GENERAL_GROUP, []).append(risk)
    return {name: grouped[name] for name in sorted(grouped)}


def assessment_summary(assessment: Assessment) -> Dict[str, Any]:
    return {
        "severity": assessment.severity.value,
        "likelihood": assessment.likelihood.value,
        "exposure": assessment.exposure.value,
        "detectability": assessment.detectability.value,
        "level": assessment.computed_level.value,
    }


def format_timestamp(epoch_ms: int) -> str:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def generated_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
