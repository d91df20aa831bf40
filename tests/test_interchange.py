from __future__ import annotations

import csv
import io
import json

import pytest

from flightrisk_cli.exceptions import ImportFormatError
from flightrisk_cli.interchange import (
    CSV_HEADERS,
    catalog_from_yaml,
    risks_from_csv,
    risks_from_json,
    risks_to_csv,
    risks_to_json,
)
from flightrisk_cli.matrix import Detectability, Exposure, Likelihood, RiskLevel, Severity
from flightrisk_cli.models.risks import Assessment, RiskEntry


def _make_risk(**overrides: object) -> RiskEntry:
    fields = dict(
        id="0b5e5f3c-1111-4000-8000-000000000002",
        study_number="EXP-NVG-24",
        experimentation="Tactical NVG flight",
        activity_title="Spatial disorientation",
        aircraft="Panther Std 2",
        dreaded_event="Loss of horizon references.",
        mitigation_measures="- Scan pattern\n- Height callouts",
        synthesis="Under control, \"strict\" briefing.",
        initial_risk=Assessment(severity=3, likelihood="C", exposure=4, detectability=3),
        residual_risk=Assessment(severity=3, likelihood="B", exposure=2, detectability=1),
        updated_at=1709300000000,
    )
    fields.update(overrides)
    return RiskEntry(**fields)  # type: ignore[arg-type]


class TestJson:
    def test_export_is_list_of_camel_case_objects(self) -> None:
        data = json.loads(risks_to_json([_make_risk()]))
        assert isinstance(data, list)
        assert data[0]["activityTitle"] == "Spatial disorientation"
        assert data[0]["residualRisk"]["computedLevel"] == "Low"

    def test_import_restores_entries(self) -> None:
        risk = _make_risk()
        assert risks_from_json(risks_to_json([risk])) == [risk]

    def test_import_recomputes_levels(self) -> None:
        payload = [{
            "id": "r1",
            "initialRisk": {"severity": 1, "likelihood": "A", "computedLevel": "High"},
        }]
        risks = risks_from_json(json.dumps(payload))
        assert risks[0].initial_risk.computed_level is RiskLevel.USUAL

    def test_invalid_json(self) -> None:
        with pytest.raises(ImportFormatError, match="Invalid JSON file"):
            risks_from_json("{oops")

    def test_not_a_list(self) -> None:
        with pytest.raises(ImportFormatError, match="expected a list"):
            risks_from_json('{"id": "r1"}')

    def test_item_not_an_object(self) -> None:
        with pytest.raises(ImportFormatError, match="item 2"):
            risks_from_json('[{"id": "r1"}, 3]')

    def test_bad_rating(self) -> None:
        with pytest.raises(ImportFormatError, match="item 1"):
            risks_from_json('[{"initialRisk": {"likelihood": "Q"}}]')

    def test_overflowing_timestamp_falls_back_to_now(self) -> None:
        risks = risks_from_json('[{"updatedAt": 1e999}, {"updatedAt": "inf"}]')
        assert len(risks) == 2
        assert all(risk.updated_at > 0 for risk in risks)


class TestCsv:
    def test_empty_export(self) -> None:
        assert risks_to_csv([]) == ""

    def test_export_header_and_values(self) -> None:
        rows = list(csv.reader(io.StringIO(risks_to_csv([_make_risk()]))))
        assert tuple(rows[0]) == CSV_HEADERS
        assert rows[1][3] == "Spatial disorientation"
        assert rows[1][8:16] == ["3", "C", "4", "3", "3", "B", "2", "1"]
        assert rows[1][16] == "1709300000000"

    def test_multiline_and_quotes_survive(self) -> None:
        risk = _make_risk()
        assert risks_from_csv(risks_to_csv([risk])) == [risk]

    def test_byte_order_mark_is_ignored(self) -> None:
        content = "\ufeff" + risks_to_csv([_make_risk()])
        assert risks_from_csv(content)[0].id == "0b5e5f3c-1111-4000-8000-000000000002"

    def test_empty_file(self) -> None:
        with pytest.raises(ImportFormatError):
            risks_from_csv("")

    def test_header_only(self) -> None:
        with pytest.raises(ImportFormatError):
            risks_from_csv(",".join(CSV_HEADERS) + "\n")

    def test_short_rows_are_skipped(self) -> None:
        content = ",".join(CSV_HEADERS) + "\nonly,three,columns\n"
        assert risks_from_csv(content) == []

    def test_partial_row_falls_back(self) -> None:
        content = ",".join(CSV_HEADERS) + "\n,S,E,Title,AC,Event,Measures,Synth,9,x,,\n"
        risks = risks_from_csv(content)
        assert len(risks) == 1
        risk = risks[0]
        assert risk.id
        assert risk.activity_title == "Title"
        assert risk.initial_risk.severity is Severity.NEGLIGIBLE
        assert risk.initial_risk.likelihood is Likelihood.VERY_IMPROBABLE
        assert risk.initial_risk.exposure is Exposure.LOW
        assert risk.residual_risk.detectability is Detectability.TOTAL
        assert risk.residual_risk.computed_level is RiskLevel.USUAL
        assert risk.updated_at > 0


class TestCatalogYaml:
    def test_single_mapping(self) -> None:
        entries = catalog_from_yaml(
            "id: cat-20\ntitle: Ditching\ncategory: Sea\n"
            "defaultSeverity: 4\ndefaultLikelihood: A\n"
        )
        assert [(e.id, e.title, e.default_severity) for e in entries] == [
            ("cat-20", "Ditching", Severity.CATASTROPHIC),
        ]

    def test_missing_ids_are_generated(self) -> None:
        entries = catalog_from_yaml(
            "- {title: One, defaultSeverity: 1, defaultLikelihood: A}\n"
            "- {title: Two, defaultSeverity: 2, defaultLikelihood: B}\n"
        )
        assert all(e.id.startswith("cat-") for e in entries)
        assert entries[0].id != entries[1].id

    def test_empty_document(self) -> None:
        assert catalog_from_yaml("") == []

    def test_invalid_yaml(self) -> None:
        with pytest.raises(ImportFormatError, match="Invalid YAML"):
            catalog_from_yaml("title: [unclosed")

    def test_item_not_a_mapping(self) -> None:
        with pytest.raises(ImportFormatError, match="item 2"):
            catalog_from_yaml("- {title: One, defaultSeverity: 1, defaultLikelihood: A}\n- plain\n")

    def test_missing_rating(self) -> None:
        with pytest.raises(ImportFormatError, match="item 1"):
            catalog_from_yaml("title: One\ndefaultLikelihood: A\n")
