from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from flightrisk_cli.exporters.base import (
    BaseExporter,
    generated_now,
    group_by_experimentation,
)
from flightrisk_cli.formatters.markdown_formatter import MarkdownFormatter
from flightrisk_cli.formatters.svg_formatter import render_synthesis_svg
from flightrisk_cli.matrix import RiskLevel, level_counts
from flightrisk_cli.models.risks import RiskEntry
from flightrisk_cli.models.study import StudyContext

SYNTHESIS_STEM = "synthesis"


def sort_by_residual(risks: List[RiskEntry]) -> List[RiskEntry]:
    """Worst residual cell first: severity, then likelihood, both descending."""
    return sorted(
        risks,
        key=lambda r: (r.residual_risk.severity, r.residual_risk.likelihood.rank),
        reverse=True,
    )


def synthesis_text(
    context: StudyContext,
    risks: List[RiskEntry],
    today: Optional[date] = None,
) -> str:
    """Plain-text synthesis for pasting into mail or a test card."""
    today = today or date.today()
    lines = [
        "FLIGHT TEST RISK SYNTHESIS",
        f"STUDY: {context.study_name} ({context.aircraft})",
        f"DATE: {today.isoformat()}",
        "---------------------------",
        f"GLOBAL SYNTHESIS: {context.global_synthesis}",
        "",
        "RESIDUAL RISKS:",
    ]
    for experimentation, group in group_by_experimentation(risks).items():
        lines.append("")
        lines.append(f"EXPERIMENTATION: {experimentation.upper()}")
        for risk in group:
            residual = risk.residual_risk
            lines.append(
                f"- {risk.activity_title}: {residual.computed_level.value.upper()} ({residual.code})"
            )
            lines.append(f"  Measures: {risk.mitigation_measures}")
    return "\n".join(lines) + "\n"


class SynthesisExporter(BaseExporter):
    def export(self) -> None:
        self._ensure_output_dir()
        self._log("Exporting study synthesis...")

        context = self.store.load_context()
        risks = sort_by_residual(self.store.load_risks())
        counts = level_counts(risk.residual_risk for risk in risks)

        svg = render_synthesis_svg(
            (risk.residual_risk for risk in risks),
            layout=self.layout,
            title=f"Residual risks: {context.study_name}",
        )
        document = {
            "title": f"Synthesis: {context.study_name}" if context.study_name else "Synthesis",
            "body": _build_body(context, risks, counts),
            "frontmatter": _build_frontmatter(context, risks, counts),
        }
        summary = _build_summary(context, risks, counts)

        self._write_output(self._md_formatter, SYNTHESIS_STEM, document)
        self._write_output(self._svg_formatter, SYNTHESIS_STEM, svg)
        self._write_output(self._yaml_formatter, SYNTHESIS_STEM, summary)
        self._write_raw_json(SYNTHESIS_STEM, summary)

        self._log(f"Exporting study synthesis... done ({len(risks)} risks)")


def _level_table(counts: Dict[RiskLevel, int]) -> Dict[str, int]:
    return {level.value: counts[level] for level in sorted(counts, reverse=True)}


def _build_frontmatter(
    context: StudyContext,
    risks: List[RiskEntry],
    counts: Dict[RiskLevel, int],
) -> Dict[str, Any]:
    return {
        "study": context.study_name,
        "aircraft": context.aircraft,
        "date": context.date,
        "generated": generated_now(),
        "risk_count": len(risks),
        "residual_levels": _level_table(counts),
    }


def _build_summary(
    context: StudyContext,
    risks: List[RiskEntry],
    counts: Dict[RiskLevel, int],
) -> Dict[str, Any]:
    return {
        "study": context.to_dict(),
        "residual_levels": _level_table(counts),
        "risks": [
            {
                "id": risk.id,
                "title": risk.activity_title,
                "experimentation": risk.experimentation,
                "initial": risk.initial_risk.code,
                "initial_level": risk.initial_risk.computed_level.value,
                "residual": risk.residual_risk.code,
                "residual_level": risk.residual_risk.computed_level.value,
                "trend": risk.trend,
            }
            for risk in risks
        ],
    }


def _build_body(
    context: StudyContext,
    risks: List[RiskEntry],
    counts: Dict[RiskLevel, int],
) -> str:
    lines: List[str] = []
    lines.append(f"- **Aircraft:** {context.aircraft}")
    lines.append(f"- **Date:** {context.date}")
    lines.append("")
    lines.append(f"![Residual risk matrix]({SYNTHESIS_STEM}.svg)")
    lines.append("")

    lines.extend(MarkdownFormatter.section(
        "## Global Synthesis", context.global_synthesis, "No global synthesis set",
    ))

    lines.append("## Residual Risk Levels")
    lines.append("")
    lines.extend(MarkdownFormatter.table(
        ["Level", "Risks"],
        [[level, count] for level, count in _level_table(counts).items()],
    ))
    lines.append("")

    lines.append("## Residual Risks")
    lines.append("")
    if not risks:
        lines.append("[//]: # (No risks recorded)")
        return "\n".join(lines)
    lines.extend(MarkdownFormatter.table(
        ["Risk", "Experimentation", "Initial", "Residual", "Mitigation Measures"],
        [
            [
                risk.activity_title,
                risk.experimentation,
                f"{risk.initial_risk.computed_level.value} ({risk.initial_risk.code})",
                f"{risk.residual_risk.computed_level.value} ({risk.residual_risk.code})",
                risk.mitigation_measures or "-",
            ]
            for risk in risks
        ],
    ))
    return "\n".join(lines)
