from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List

from flightrisk_cli.catalog import find_entry, search
from flightrisk_cli.config import read_config, resolve_data_dir, write_config
from flightrisk_cli.exceptions import ConfigError, FlightRiskError, ImportFormatError, StorageError
from flightrisk_cli.exporters.base import BaseExporter
from flightrisk_cli.exporters.risks import RisksExporter
from flightrisk_cli.exporters.synthesis import SynthesisExporter, synthesis_text
from flightrisk_cli.geometry import LAYOUTS, GridLayout, get_layout
from flightrisk_cli.interchange import (
    catalog_from_yaml,
    risks_from_csv,
    risks_from_json,
    risks_to_csv,
    risks_to_json,
)
from flightrisk_cli.matrix import LIKELIHOOD_COLUMNS, classify, matrix_rows
from flightrisk_cli.models.catalog import CatalogEntry
from flightrisk_cli.models.config import AppConfig
from flightrisk_cli.models.risks import PHASES, RATING_FIELDS, TEXT_FIELDS, RiskEntry
from flightrisk_cli.models.study import CONTEXT_FIELDS, DEFAULT_STUDY_NAME
from flightrisk_cli.storage import StudyStore

_SUBDIRS = ("reports",)
_LOG_FORMAT = "%(levelname)s %(name)s %(message)s"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flightrisk-cli",
        description="Flight-test risk assessment: rate hazards and export study reports.",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--init",
        metavar="DATA_DIR",
        help="Initialize configuration and a study data directory.",
    )
    group.add_argument(
        "--classify", nargs=2, metavar=("SEVERITY", "LIKELIHOOD"),
        help="Print the risk level of a severity (1-4) and likelihood (A-D).",
    )
    group.add_argument("--show-matrix", action="store_true", help="Print the risk matrix.")
    group.add_argument("--list", action="store_true", help="List the risks of the study.")
    group.add_argument(
        "--catalog", nargs="?", const="", metavar="QUERY",
        help="List catalog entries, optionally filtered by QUERY.",
    )
    group.add_argument(
        "--add-from-catalog", metavar="ENTRY_ID",
        help="Create a risk from a catalog entry.",
    )
    group.add_argument(
        "--rate", nargs=4, metavar=("RISK_ID", "PHASE", "SEVERITY", "LIKELIHOOD"),
        help="Re-rate the initial or residual assessment of a risk.",
    )
    group.add_argument("--new-risk", metavar="TITLE", help="Create an empty risk titled TITLE.")
    group.add_argument(
        "--edit", nargs=3, metavar=("RISK_ID", "FIELD", "VALUE"),
        help="Set a text field (e.g. dreaded-event) or a rating (e.g. residual-exposure) of a risk.",
    )
    group.add_argument(
        "--apply-catalog", nargs=2, metavar=("RISK_ID", "ENTRY_ID"),
        help="Overwrite a risk's title, texts and initial rating from a catalog entry.",
    )
    group.add_argument("--delete", metavar="RISK_ID", help="Delete a risk.")
    group.add_argument(
        "--set-context", nargs=2, metavar=("FIELD", "VALUE"),
        help="Set the study name, aircraft, date or global-synthesis.",
    )
    group.add_argument(
        "--catalog-save", metavar="FILE",
        help="Add or update catalog entries from a YAML file.",
    )
    group.add_argument("--catalog-delete", metavar="ENTRY_ID", help="Delete a catalog entry.")
    group.add_argument("--export-all", action="store_true", help="Export all reports.")
    group.add_argument(
        "--export-reports", "--export-risks", dest="export_reports", action="store_true",
        help="Export one report per risk and an index.",
    )
    group.add_argument("--export-synthesis", action="store_true", help="Export the study synthesis.")
    group.add_argument(
        "--print-synthesis", action="store_true", help="Print a plain-text study synthesis.",
    )
    group.add_argument("--export-csv", metavar="FILE", help="Write all risks to a CSV file.")
    group.add_argument("--export-json", metavar="FILE", help="Write all risks to a JSON file.")
    group.add_argument("--import-csv", metavar="FILE", help="Replace all risks from a CSV file.")
    group.add_argument("--import-json", metavar="FILE", help="Replace all risks from a JSON file.")
    group.add_argument(
        "--new-study", action="store_true", help="Delete all risks and reset the study context.",
    )
    parser.add_argument(
        "--force", action="store_true",
        help="Overwrite files and delete stored data without confirmation.",
    )
    parser.add_argument(
        "--keep-raw-json", action="store_true",
        help="Also write raw JSON files alongside Markdown.",
    )
    parser.add_argument(
        "--size", choices=sorted(LAYOUTS),
        help="Matrix drawing size (defaults to the configured grid size).",
    )
    parser.add_argument("--verbose", action="store_true", help="Show diagnostic messages.")
    return parser


def _confirm(question: str, force: bool) -> bool:
    if force:
        return True
    while True:
        answer = input(f"{question} [Yes/No] ").strip().lower()
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False


def _stored_risks(store: StudyStore) -> List[RiskEntry]:
    # An absent risk file must not trigger first-run seeding here.
    return store.load_risks() if store.has_risks() else []


def _run_init(data_dir: str, force: bool) -> None:
    if not data_dir.strip():
        raise ConfigError("Data directory cannot be empty.")

    config = AppConfig(data_dir=data_dir)
    cwd = Path.cwd()
    store = StudyStore(resolve_data_dir(cwd, config))

    stored = _stored_risks(store)
    keep = bool(stored) and not _confirm(
        f"{config.data_dir}/ already holds {len(stored)} risks. "
        "Delete them and start a new study?",
        force,
    )
    if not keep:
        study_name = input(f"Enter the study name [{DEFAULT_STUDY_NAME}]: ").strip()
        aircraft = input("Enter the aircraft (optional): ").strip()

    write_config(cwd, config)

    if keep:
        context = store.load_context()
    else:
        context = store.start_new_study()
        context.study_name = study_name or DEFAULT_STUDY_NAME
        context.aircraft = aircraft
        store.save_context(context)

    for subdir in _SUBDIRS:
        (cwd / subdir).mkdir(exist_ok=True)

    print("Configuration saved to .flightrisk-cli.ini")
    if keep:
        print(f"Kept existing study '{context.study_name}' in {config.data_dir}/")
    else:
        print(f"Study '{context.study_name}' created in {config.data_dir}/")
    print("Created directories: " + ", ".join(f"{d}/" for d in _SUBDIRS))


def _run_classify(severity: str, likelihood: str) -> None:
    print(classify(severity, likelihood).value)


def _run_show_matrix() -> None:
    columns = [f"{c.label} ({c.value})" for c in LIKELIHOOD_COLUMNS]
    print((" " * 18 + "".join(f"{name:<20}" for name in columns)).rstrip())
    for severity, cells in matrix_rows():
        label = f"{severity.label} ({severity.value})"
        print((f"{label:<18}" + "".join(f"{level.value:<20}" for _, level in cells)).rstrip())


def _open_store() -> StudyStore:
    cwd = Path.cwd()
    config = read_config(cwd)
    return StudyStore(resolve_data_dir(cwd, config))


def _find_risk(risks: List[RiskEntry], risk_id: str) -> RiskEntry:
    matches = [risk for risk in risks if risk.id == risk_id]
    if not matches:
        matches = [risk for risk in risks if risk.id.startswith(risk_id)]
    if not matches:
        raise FlightRiskError(f"No risk matches '{risk_id}'. Run flightrisk-cli --list.")
    if len(matches) > 1:
        raise FlightRiskError(f"Risk id '{risk_id}' is ambiguous; give more characters.")
    return matches[0]


def _run_list(store: StudyStore) -> None:
    risks = store.load_risks()
    if not risks:
        print("No risks recorded.")
        return
    for risk in sorted(risks, key=lambda r: r.updated_at, reverse=True):
        residual = risk.residual_risk
        print(
            f"{risk.id[:8]}  {residual.computed_level.value:<12} {residual.code}  "
            f"{risk.activity_title}"
        )


def _run_catalog(store: StudyStore, query: str) -> None:
    entries = search(store.load_catalog(), query)
    if not entries:
        print("No catalog entry found.")
        return
    for entry in entries:
        print(f"{entry.id:<8} {entry.default_level.value:<12} {entry.title} ({entry.category})")


def _find_catalog_entry(store: StudyStore, entry_id: str) -> CatalogEntry:
    entry = find_entry(store.load_catalog(), entry_id)
    if entry is None:
        raise FlightRiskError(f"No catalog entry '{entry_id}'. Run flightrisk-cli --catalog.")
    return entry


def _run_add_from_catalog(store: StudyStore, entry_id: str) -> None:
    entry = _find_catalog_entry(store, entry_id)
    risk = entry.to_risk(store.load_context())
    store.save_risk(risk)
    print(f"Risk {risk.id[:8]} created: {risk.activity_title} ({risk.initial_risk.computed_level.value})")


def _run_rate(store: StudyStore, risk_id: str, phase: str, severity: str, likelihood: str) -> None:
    phase = phase.lower()
    if phase not in PHASES:
        raise FlightRiskError(f"Unknown phase '{phase}'. Use one of: {', '.join(PHASES)}.")
    risk = _find_risk(store.load_risks(), risk_id)
    risk.rate(phase, severity=severity, likelihood=likelihood)
    store.save_risk(risk)
    assessment = risk.assessment(phase)
    print(f"{risk.activity_title}: {phase} {assessment.code} -> {assessment.computed_level.value}")


def _run_new_risk(store: StudyStore, title: str) -> None:
    risk = store.create_empty_risk()
    risk.edit(activity_title=title.strip())
    store.save_risk(risk)
    print(f"Risk {risk.id[:8]} created: {risk.activity_title} ({risk.initial_risk.computed_level.value})")


def _editable_fields() -> List[str]:
    names = list(TEXT_FIELDS)
    names.extend(f"{phase}_{rating}" for phase in PHASES for rating in RATING_FIELDS)
    return [name.replace("_", "-") for name in names]


def _run_edit(store: StudyStore, risk_id: str, field_name: str, value: str) -> None:
    name = field_name.lower().replace("-", "_")
    phase, _, rating = name.partition("_")
    if name not in TEXT_FIELDS and (phase not in PHASES or rating not in RATING_FIELDS):
        raise FlightRiskError(
            f"Unknown field '{field_name}'. Use one of: {', '.join(_editable_fields())}."
        )

    risk = _find_risk(store.load_risks(), risk_id)
    if name in TEXT_FIELDS:
        risk.edit(**{name: value})
        store.save_risk(risk)
        print(f"Risk {risk.id[:8]} updated: {name.replace('_', '-')}")
        return

    risk.rate(phase, **{rating: value})
    store.save_risk(risk)
    assessment = risk.assessment(phase)
    print(f"{risk.activity_title}: {phase} {assessment.code} -> {assessment.computed_level.value}")


def _run_apply_catalog(store: StudyStore, risk_id: str, entry_id: str) -> None:
    entry = _find_catalog_entry(store, entry_id)
    risk = _find_risk(store.load_risks(), risk_id)
    entry.apply_to(risk)
    store.save_risk(risk)
    print(f"Risk {risk.id[:8]} now follows '{entry.title}' (initial {risk.initial_risk.code})")


def _run_delete(store: StudyStore, risk_id: str, force: bool) -> None:
    risk = _find_risk(store.load_risks(), risk_id)
    label = risk.activity_title or risk.id[:8]
    if not _confirm(f"Delete risk '{label}'?", force):
        print("Aborted.")
        return
    store.delete_risk(risk.id)
    print(f"Risk {risk.id[:8]} deleted.")


def _run_set_context(store: StudyStore, field_name: str, value: str) -> None:
    name = field_name.lower().replace("-", "_")
    if name not in CONTEXT_FIELDS:
        names = ", ".join(n.replace("_", "-") for n in CONTEXT_FIELDS)
        raise FlightRiskError(f"Unknown study field '{field_name}'. Use one of: {names}.")
    context = store.load_context()
    try:
        context.edit(**{name: value.strip()})
    except ValueError as exc:
        raise FlightRiskError(f"Invalid date '{value}'; use YYYY-MM-DD.") from exc
    store.save_context(context)
    print(f"Study {name.replace('_', ' ')} set.")


def _run_catalog_save(store: StudyStore, path: str) -> None:
    entries = catalog_from_yaml(_read_file(path))
    if not entries:
        print(f"No catalog entry found in {path}.")
        return
    for entry in entries:
        store.save_catalog_entry(entry)
        print(f"Catalog entry {entry.id} saved: {entry.title}")


def _run_catalog_delete(store: StudyStore, entry_id: str, force: bool) -> None:
    entry = _find_catalog_entry(store, entry_id)
    if not _confirm(f"Delete catalog entry '{entry.title}'?", force):
        print("Aborted.")
        return
    store.delete_catalog_entry(entry.id)
    print(f"Catalog entry {entry.id} deleted.")


def _run_new_study(store: StudyStore, force: bool) -> None:
    if not _confirm("Delete all risks and start a new study?", force):
        print("Aborted.")
        return
    context = store.start_new_study()
    print(f"Started '{context.study_name}'. All risks were removed.")


def _run_export(args: argparse.Namespace, store: StudyStore, layout: GridLayout) -> None:
    output_dir = Path.cwd() / "reports"
    export_kwargs = {
        "force": args.force,
        "keep_raw_json": args.keep_raw_json,
        "layout": layout,
    }

    exporters: List[BaseExporter] = []
    if args.export_all or args.export_reports:
        exporters.append(RisksExporter(store, output_dir / "risks", **export_kwargs))
    if args.export_all or args.export_synthesis:
        exporters.append(SynthesisExporter(store, output_dir, **export_kwargs))

    for exporter in exporters:
        exporter.export()


def _write_file(path: str, content: str, encoding: str) -> None:
    try:
        with open(path, "w", encoding=encoding) as f:
            f.write(content)
    except OSError as exc:
        raise StorageError(f"Cannot write {path}.") from exc


def _read_file(path: str) -> str:
    try:
        with open(path, encoding="utf-8-sig") as f:
            return f.read()
    except OSError as exc:
        raise ImportFormatError(f"Cannot read {path}.") from exc


def _run_interchange(args: argparse.Namespace, store: StudyStore) -> None:
    if args.export_csv:
        risks = store.load_risks()
        _write_file(args.export_csv, risks_to_csv(risks), "utf-8-sig")
        print(f"Exported {len(risks)} risks to {args.export_csv}")
    elif args.export_json:
        risks = store.load_risks()
        _write_file(args.export_json, risks_to_json(risks), "utf-8")
        print(f"Exported {len(risks)} risks to {args.export_json}")
    else:
        path = args.import_csv or args.import_json
        content = _read_file(path)
        risks = risks_from_csv(content) if args.import_csv else risks_from_json(content)
        stored = _stored_risks(store)
        if stored and not _confirm(
            f"Replace the {len(stored)} stored risks with {len(risks)} imported risks?",
            args.force,
        ):
            print("Import cancelled.")
            return
        store.replace_risks(risks)
        print(f"Imported {len(risks)} risks from {path}")


def _configured_layout(args: argparse.Namespace) -> GridLayout:
    if args.size:
        return get_layout(args.size)
    return read_config(Path.cwd()).layout


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format=_LOG_FORMAT,
    )

    if args.init:
        _run_init(args.init, args.force)
    elif args.classify:
        _run_classify(*args.classify)
    elif args.show_matrix:
        _run_show_matrix()
    elif args.list:
        _run_list(_open_store())
    elif args.catalog is not None:
        _run_catalog(_open_store(), args.catalog)
    elif args.add_from_catalog:
        _run_add_from_catalog(_open_store(), args.add_from_catalog)
    elif args.rate:
        _run_rate(_open_store(), *args.rate)
    elif args.new_risk is not None:
        _run_new_risk(_open_store(), args.new_risk)
    elif args.edit:
        _run_edit(_open_store(), *args.edit)
    elif args.apply_catalog:
        _run_apply_catalog(_open_store(), *args.apply_catalog)
    elif args.delete:
        _run_delete(_open_store(), args.delete, args.force)
    elif args.set_context:
        _run_set_context(_open_store(), *args.set_context)
    elif args.catalog_save:
        _run_catalog_save(_open_store(), args.catalog_save)
    elif args.catalog_delete:
        _run_catalog_delete(_open_store(), args.catalog_delete, args.force)
    elif args.export_all or args.export_reports or args.export_synthesis:
        store = _open_store()
        _run_export(args, store, _configured_layout(args))
    elif args.print_synthesis:
        store = _open_store()
        print(synthesis_text(store.load_context(), store.load_risks()), end="")
    elif args.export_csv or args.export_json or args.import_csv or args.import_json:
        _run_interchange(args, _open_store())
    elif args.new_study:
        _run_new_study(_open_store(), args.force)
    else:
        parser.print_help()
