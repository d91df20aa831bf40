from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import List, Optional
from unittest.mock import MagicMock, patch

import pytest
import yaml

from flightrisk_cli.exporters.base import (
    GENERAL_GROUP,
    BaseExporter,
    file_stem,
    format_timestamp,
    group_by_experimentation,
)
from flightrisk_cli.exporters.risks import RisksExporter
from flightrisk_cli.exporters.synthesis import (
    SynthesisExporter,
    sort_by_residual,
    synthesis_text,
)
from flightrisk_cli.models.risks import Assessment, RiskEntry
from flightrisk_cli.models.study import StudyContext


def _make_risk(
    risk_id: str = "3a7f9c10-2b4d-4e6f-8a1b-9c0d1e2f3a4b",
    title: str = "Sliding on deck",
    experimentation: str = "SHOL qualification",
    initial: tuple = (4, "C"),
    residual: tuple = (3, "B"),
    updated_at: int = 1709300000000,
) -> RiskEntry:
    return RiskEntry(
        id=risk_id,
        study_number="PHEL-182",
        experimentation=experimentation,
        activity_title=title,
        aircraft="NH90 Caiman",
        dreaded_event="Helicopter sliding on deck.",
        mitigation_measures="- Harpoon engaged\n- Deck crew ready",
        synthesis="Risk under control.",
        initial_risk=Assessment(severity=initial[0], likelihood=initial[1]),
        residual_risk=Assessment(severity=residual[0], likelihood=residual[1]),
        updated_at=updated_at,
    )


def _make_store(
    risks: Optional[List[RiskEntry]] = None,
    context: Optional[StudyContext] = None,
) -> MagicMock:
    store = MagicMock()
    store.load_risks.return_value = list(risks or [])
    store.load_context.return_value = context or StudyContext(
        "PHEL-182", "NH90 Caiman", "2024-03-01", "Acceptable with measures.",
    )
    return store


class _Concrete(BaseExporter):
    def export(self) -> None:
        pass


class TestBaseExporter:
    def test_cannot_instantiate(self) -> None:
        with pytest.raises(TypeError):
            BaseExporter(MagicMock(), Path("/tmp/test"))  # type: ignore[abstract]

    def test_ensure_output_dir_creates_directory(self, tmp_path: Path) -> None:
        exporter = _Concrete(MagicMock(), tmp_path / "nested" / "dir")
        exporter._ensure_output_dir()
        assert (tmp_path / "nested" / "dir").is_dir()

    def test_log_prints_to_stdout(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        _Concrete(MagicMock(), tmp_path)._log("hello world")
        assert "hello world" in capsys.readouterr().out

    def test_raw_json_only_when_requested(self, tmp_path: Path) -> None:
        _Concrete(MagicMock(), tmp_path)._write_raw_json("doc", {"a": 1})
        assert not (tmp_path / "doc.json").exists()

        _Concrete(MagicMock(), tmp_path, keep_raw_json=True)._write_raw_json("doc", {"a": 1})
        assert json.loads((tmp_path / "doc.json").read_text(encoding="utf-8")) == {"a": 1}


class TestBaseExporterOverwrite:
    def test_should_write_returns_true_for_new_file(self, tmp_path: Path) -> None:
        assert _Concrete(MagicMock(), tmp_path)._should_write(tmp_path / "new-file.md") is True

    def test_should_write_returns_true_with_force(self, tmp_path: Path) -> None:
        existing = tmp_path / "existing.md"
        existing.write_text("content")
        assert _Concrete(MagicMock(), tmp_path, force=True)._should_write(existing) is True

    def test_should_write_prompts_and_respects_no(self, tmp_path: Path) -> None:
        existing = tmp_path / "existing.md"
        existing.write_text("content")

        exporter = _Concrete(MagicMock(), tmp_path)
        with patch("builtins.input", return_value="n"):
            assert exporter._should_write(existing) is False

    def test_should_write_reprompts_on_unknown_answer(self, tmp_path: Path) -> None:
        existing = tmp_path / "existing.md"
        existing.write_text("content")

        exporter = _Concrete(MagicMock(), tmp_path)
        with patch("builtins.input", side_effect=["maybe", "yes"]) as mock_input:
            assert exporter._should_write(existing) is True
        assert mock_input.call_count == 2

    def test_should_write_all_sets_overwrite_all(self, tmp_path: Path) -> None:
        f1 = tmp_path / "a.md"
        f2 = tmp_path / "b.md"
        f1.write_text("a")
        f2.write_text("b")

        exporter = _Concrete(MagicMock(), tmp_path)
        with patch("builtins.input", return_value="a") as mock_input:
            assert exporter._should_write(f1) is True
            assert exporter._should_write(f2) is True

        assert mock_input.call_count == 1

    def test_declined_file_is_left_untouched(self, tmp_path: Path) -> None:
        existing = tmp_path / "existing.md"
        existing.write_text("keep me")

        exporter = _Concrete(MagicMock(), tmp_path)
        with patch("builtins.input", return_value="no"):
            exporter._write_output(exporter._md_formatter, "existing", {"title": "Replaced"})
        assert existing.read_text() == "keep me"

    def test_write_output_uses_formatter(self, tmp_path: Path) -> None:
        exporter = _Concrete(MagicMock(), tmp_path)
        exporter._write_output(exporter._yaml_formatter, "summary", {"risks": 2})
        assert yaml.safe_load((tmp_path / "summary.yaml").read_text()) == {"risks": 2}


class TestHelpers:
    def test_file_stem(self) -> None:
        assert file_stem(_make_risk()) == "sliding-on-deck-3a7f9c10"

    def test_file_stem_without_title(self) -> None:
        assert file_stem(_make_risk(title=" ?! ")) == "risk-3a7f9c10"

    def test_group_by_experimentation(self) -> None:
        risks = [
            _make_risk(risk_id="b", experimentation="Speed envelope"),
            _make_risk(risk_id="a", experimentation="  "),
            _make_risk(risk_id="c", experimentation="NVG flight"),
        ]
        grouped = group_by_experimentation(risks)
        assert list(grouped) == [GENERAL_GROUP, "NVG flight", "Speed envelope"]

    def test_format_timestamp(self) -> None:
        assert format_timestamp(0) == "1970-01-01T00:00:00Z"


class TestRisksExporter:
    def test_writes_markdown_svg_and_index(self, tmp_path: Path) -> None:
        store = _make_store([_make_risk()])
        RisksExporter(store, tmp_path).export()

        assert (tmp_path / "sliding-on-deck-3a7f9c10.md").is_file()
        assert (tmp_path / "sliding-on-deck-3a7f9c10.svg").is_file()
        assert (tmp_path / "index.md").is_file()
        assert not (tmp_path / "sliding-on-deck-3a7f9c10.json").exists()

    def test_markdown_content(self, tmp_path: Path) -> None:
        RisksExporter(_make_store([_make_risk()]), tmp_path).export()
        content = (tmp_path / "sliding-on-deck-3a7f9c10.md").read_text(encoding="utf-8")

        frontmatter = yaml.safe_load(content.split("---\n")[1])
        assert frontmatter["id"] == "3a7f9c10-2b4d-4e6f-8a1b-9c0d1e2f3a4b"
        assert frontmatter["initial_risk"]["level"] == "Unacceptable"
        assert frontmatter["residual_risk"] == {
            "severity": 3,
            "likelihood": "B",
            "exposure": 4,
            "detectability": 4,
            "level": "Low",
        }
        assert frontmatter["trend"] == "improved"
        assert frontmatter["updated"] == "2024-03-01T13:33:20Z"

        assert "# Sliding on deck" in content
        assert "![Risk matrix](sliding-on-deck-3a7f9c10.svg)" in content
        assert "| Initial | Catastrophic (4) | Occasional (C) | Strong | Undetectable | **Unacceptable** |" in content
        assert "**Evolution:** Improved (Unacceptable -> Low)" in content
        assert "- Harpoon engaged\n- Deck crew ready" in content

    def test_blank_sections_become_comments(self, tmp_path: Path) -> None:
        risk = _make_risk()
        risk.synthesis = ""
        RisksExporter(_make_store([risk]), tmp_path).export()
        content = (tmp_path / "sliding-on-deck-3a7f9c10.md").read_text(encoding="utf-8")
        assert "[//]: # (No synthesis set)" in content

    def test_svg_contains_evolution_path(self, tmp_path: Path) -> None:
        RisksExporter(_make_store([_make_risk()]), tmp_path).export()
        svg = (tmp_path / "sliding-on-deck-3a7f9c10.svg").read_text(encoding="utf-8")
        assert svg.startswith("<svg")
        assert "<title>Sliding on deck</title>" in svg
        assert 'stroke="#84cc16"' in svg

    def test_keep_raw_json(self, tmp_path: Path) -> None:
        RisksExporter(_make_store([_make_risk()]), tmp_path, keep_raw_json=True).export()
        data = json.loads((tmp_path / "sliding-on-deck-3a7f9c10.json").read_text(encoding="utf-8"))
        assert data["residualRisk"]["computedLevel"] == "Low"

    def test_index_groups_by_experimentation(self, tmp_path: Path) -> None:
        risks = [
            _make_risk(),
            _make_risk(
                risk_id="9f000000-0000-4000-8000-000000000000",
                title="Bird strike",
                experimentation="",
                initial=(2, "C"),
                residual=(2, "B"),
            ),
        ]
        RisksExporter(_make_store(risks), tmp_path).export()
        index = (tmp_path / "index.md").read_text(encoding="utf-8")

        assert "# Risks: PHEL-182" in index
        assert "2 risks exported on" in index
        assert index.index(f"## {GENERAL_GROUP}") < index.index("## SHOL qualification")
        assert (
            "- [Sliding on deck](sliding-on-deck-3a7f9c10.md): "
            "Unacceptable (S4/LC) -> Low (S3/LB)"
        ) in index
        assert "- [Bird strike](bird-strike-9f000000.md): Low (S2/LC) -> Low (S2/LB)" in index

    def test_progress_log_contains_done_count(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        RisksExporter(_make_store([_make_risk()]), tmp_path).export()
        out = capsys.readouterr().out
        assert "Exporting risk reports..." in out
        assert "done (1 documents)" in out

    def test_empty_study(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        RisksExporter(_make_store([]), tmp_path).export()
        assert "0 risks exported on" in (tmp_path / "index.md").read_text(encoding="utf-8")
        assert "done (0 documents)" in capsys.readouterr().out

    def test_existing_report_prompts(self, tmp_path: Path) -> None:
        (tmp_path / "sliding-on-deck-3a7f9c10.md").write_text("old", encoding="utf-8")
        with patch("builtins.input", return_value="n") as mock_input:
            RisksExporter(_make_store([_make_risk()]), tmp_path).export()
        assert mock_input.call_count == 1
        assert (tmp_path / "sliding-on-deck-3a7f9c10.md").read_text(encoding="utf-8") == "old"


class TestSynthesisText:
    def test_sort_by_residual(self) -> None:
        low = _make_risk(risk_id="low", residual=(1, "D"))
        worst = _make_risk(risk_id="worst", residual=(4, "A"))
        mid = _make_risk(risk_id="mid", residual=(3, "C"))
        assert [r.id for r in sort_by_residual([low, worst, mid])] == ["worst", "mid", "low"]

    def test_text(self) -> None:
        context = StudyContext("PHEL-182", "NH90 Caiman", "2024-03-01", "Acceptable.")
        text = synthesis_text(context, [_make_risk()], today=date(2024, 3, 2))
        assert text == (
            "FLIGHT TEST RISK SYNTHESIS\n"
            "STUDY: PHEL-182 (NH90 Caiman)\n"
            "DATE: 2024-03-02\n"
            "---------------------------\n"
            "GLOBAL SYNTHESIS: Acceptable.\n"
            "\n"
            "RESIDUAL RISKS:\n"
            "\n"
            "EXPERIMENTATION: SHOL QUALIFICATION\n"
            "- Sliding on deck: LOW (S3/LB)\n"
            "  Measures: - Harpoon engaged\n"
            "- Deck crew ready\n"
        )


class TestSynthesisExporter:
    def test_writes_all_files(self, tmp_path: Path) -> None:
        SynthesisExporter(_make_store([_make_risk()]), tmp_path).export()
        assert (tmp_path / "synthesis.md").is_file()
        assert (tmp_path / "synthesis.svg").is_file()
        assert (tmp_path / "synthesis.yaml").is_file()
        assert not (tmp_path / "synthesis.json").exists()

    def test_markdown(self, tmp_path: Path) -> None:
        SynthesisExporter(_make_store([_make_risk()]), tmp_path).export()
        content = (tmp_path / "synthesis.md").read_text(encoding="utf-8")

        assert "# Synthesis: PHEL-182" in content
        assert "Acceptable with measures." in content
        assert "| Low | 1 |" in content
        assert "| Unacceptable | 0 |" in content
        assert content.index("| Unacceptable | 0 |") < content.index("| Usual | 0 |")
        assert "| Sliding on deck | SHOL qualification | Unacceptable (S4/LC) | Low (S3/LB) |" in content

    def test_yaml_summary(self, tmp_path: Path) -> None:
        SynthesisExporter(_make_store([_make_risk()]), tmp_path, keep_raw_json=True).export()
        summary = yaml.safe_load((tmp_path / "synthesis.yaml").read_text(encoding="utf-8"))
        assert summary["study"]["studyName"] == "PHEL-182"
        assert summary["residual_levels"]["Low"] == 1
        assert summary["risks"][0]["residual_level"] == "Low"
        assert summary["risks"][0]["trend"] == "improved"
        assert json.loads((tmp_path / "synthesis.json").read_text(encoding="utf-8")) == summary

    def test_empty_study(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        SynthesisExporter(_make_store([]), tmp_path).export()
        content = (tmp_path / "synthesis.md").read_text(encoding="utf-8")
        assert "[//]: # (No risks recorded)" in content
        assert "done (0 risks)" in capsys.readouterr().out

    def test_svg_counts(self, tmp_path: Path) -> None:
        risks = [_make_risk(risk_id="a"), _make_risk(risk_id="b")]
        SynthesisExporter(_make_store(risks), tmp_path).export()
        svg = (tmp_path / "synthesis.svg").read_text(encoding="utf-8")
        assert ">2</text>" in svg
