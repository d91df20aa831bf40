from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

from flightrisk_cli.exporters.base import (
    BaseExporter,
    assessment_summary,
    file_stem,
    format_timestamp,
    generated_now,
    group_by_experimentation,
)
from flightrisk_cli.formatters.markdown_formatter import MarkdownFormatter
from flightrisk_cli.formatters.svg_formatter import render_matrix_svg
from flightrisk_cli.models.risks import Assessment, RiskEntry

_UNTITLED = "Untitled risk"


class RisksExporter(BaseExporter):
    def export(self) -> None:
        self._ensure_output_dir()
        self._log("Exporting risk reports...")

        risks = self.store.load_risks()
        context = self.store.load_context()

        stems: List[str] = []
        for risk in risks:
            stem = file_stem(risk)
            self._export_risk(stem, risk)
            stems.append(stem)

        self._write_index(risks, context.study_name)

        if stems:
            self._log(f"Exporting risk reports... done ({len(stems)} documents)")
        else:
            self._log("Exporting risk reports... done (0 documents)")

    def _export_risk(self, stem: str, risk: RiskEntry) -> None:
        title = risk.activity_title or _UNTITLED
        svg = render_matrix_svg(
            risk.residual_risk,
            initial=risk.initial_risk,
            layout=self.layout,
            title=title,
        )
        document = {
            "title": title,
            "body": _build_body(risk, stem),
            "frontmatter": _build_frontmatter(risk),
        }

        self._write_output(self._md_formatter, stem, document)
        self._write_output(self._svg_formatter, stem, svg)
        self._write_raw_json(stem, risk.to_dict())

    def _write_index(self, risks: List[RiskEntry], study_name: str) -> None:
        frontmatter: Dict[str, Any] = {
            "study": study_name,
            "generated": generated_now(),
            "document_count": len(risks),
        }
        generated_date = datetime.now(timezone.utc).strftime("%Y-%m-%d")

        body_parts: List[str] = []
        noun = "risk" if len(risks) == 1 else "risks"
        body_parts.append(f"{len(risks)} {noun} exported on {generated_date}.")
        body_parts.append("")
        for experimentation, group in group_by_experimentation(risks).items():
            body_parts.append(f"## {experimentation}")
            body_parts.append("")
            for risk in sorted(group, key=lambda r: r.updated_at, reverse=True):
                stem = file_stem(risk)
                initial = risk.initial_risk
                residual = risk.residual_risk
                body_parts.append(
                    f"- [{risk.activity_title or _UNTITLED}]({stem}.md): "
                    f"{initial.computed_level.value} ({initial.code}) -> "
                    f"{residual.computed_level.value} ({residual.code})"
                )
            body_parts.append("")

        self._write_output(self._md_formatter, "index", {
            "title": f"Risks: {study_name}" if study_name else "Risks",
            "body": "\n".join(body_parts),
            "frontmatter": frontmatter,
        })


def _build_frontmatter(risk: RiskEntry) -> Dict[str, Any]:
    return {
        "id": risk.id,
        "study": risk.study_number,
        "experimentation": risk.experimentation,
        "aircraft": risk.aircraft,
        "initial_risk": assessment_summary(risk.initial_risk),
        "residual_risk": assessment_summary(risk.residual_risk),
        "trend": risk.trend,
        "updated": format_timestamp(risk.updated_at),
    }


def _build_body(risk: RiskEntry, stem: str) -> str:
    lines: List[str] = [f"![Risk matrix]({stem}.svg)", ""]

    lines.extend(MarkdownFormatter.section(
        "## Dreaded Event", risk.dreaded_event, "No dreaded event set",
    ))

    lines.append("## Assessment")
    lines.append("")
    lines.extend(MarkdownFormatter.table(
        ["Phase", "Severity", "Likelihood", "Exposure", "Detectability", "Level"],
        [
            _assessment_row("Initial", risk.initial_risk),
            _assessment_row("Residual", risk.residual_risk),
        ],
    ))
    lines.append("")
    before = risk.initial_risk.computed_level.value
    after = risk.residual_risk.computed_level.value
    lines.append(f"**Evolution:** {risk.trend.capitalize()} ({before} -> {after})")
    lines.append("")

    lines.extend(MarkdownFormatter.section(
        "## Mitigation Measures", risk.mitigation_measures, "No mitigation measures set",
    ))
    lines.extend(MarkdownFormatter.section(
        "## Synthesis", risk.synthesis, "No synthesis set",
    ))
    return "\n".join(lines)


def _assessment_row(phase: str, assessment: Assessment) -> List[str]:
    return [
        phase,
        f"{assessment.severity.label} ({assessment.severity.value})",
        f"{assessment.likelihood.label} ({assessment.likelihood.value})",
        assessment.exposure.label,
        assessment.detectability.label,
        f"**{assessment.computed_level.value}**",
    ]
