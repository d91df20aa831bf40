from __future__ import annotations

from typing import List, Optional

from flightrisk_cli.matrix import Likelihood, Severity
from flightrisk_cli.models.catalog import CatalogEntry

DEFAULT_CATALOG: List[CatalogEntry] = [
    CatalogEntry(
        id="cat-1",
        title="Engine failure at take-off (OEI)",
        category="Technical / Propulsion",
        dreaded_event=(
            "Loss of one engine (OEI) during the transition phase when leaving the ship "
            "(CDP point). Critical altitude loss and surface impact."
        ),
        mitigation_measures=(
            "- Rigorous pre-flight performance computation (mass/temperature/wind)\n"
            "- \"Clear deck\" or \"lateral\" take-off profile\n"
            "- Crew OEI training up to date\n"
            "- Fuel jettison available"
        ),
        default_severity=Severity.CATASTROPHIC,
        default_likelihood=Likelihood.RARE,
    ),
    CatalogEntry(
        id="cat-2",
        title="Deck landing in rough sea (SHOL)",
        category="Environment / Piloting",
        dreaded_event=(
            "Helicopter sliding on deck or violent gear/fuselage impact caused by "
            "excessive ship pitch and roll (motions outside limits)."
        ),
        mitigation_measures=(
            "- Strict compliance with SHOL envelopes (Ship Helicopter Operating Limits)\n"
            "- Immediate harpoon engagement on touchdown\n"
            "- Deck crew ready for quick lashing\n"
            "- Qualified LSO (Landing Signal Officer) in position"
        ),
        default_severity=Severity.CATASTROPHIC,
        default_likelihood=Likelihood.OCCASIONAL,
    ),
    CatalogEntry(
        id="cat-3",
        title="Spatial disorientation under NVG",
        category="Human factors",
        dreaded_event=(
            "Loss of horizon references on a pitch-dark night (level 5) over water. "
            "Unintended spiral entry or surface impact."
        ),
        mitigation_measures=(
            "- Rigorous scan pattern (instruments/outside)\n"
            "- Height callouts by the PNF (radar altimeter)\n"
            "- Immediate switch to IFR on loss of references\n"
            "- Limited flight time under NVG"
        ),
        default_severity=Severity.CRITICAL,
        default_likelihood=Likelihood.OCCASIONAL,
    ),
    CatalogEntry(
        id="cat-4",
        title="Hoist cable failure",
        category="Operational / Equipment",
        dreaded_event=(
            "Cable shear or rupture during a hoisting operation (diver/stretcher). "
            "Personnel fall or cable whipping into the tail rotor."
        ),
        mitigation_measures=(
            "- Pre-flight check of the cable and cable cutter\n"
            "- Backup pneumatic cutter serviceable\n"
            "- Degraded hoist procedure training\n"
            "- Secured harness worn"
        ),
        default_severity=Severity.CRITICAL,
        default_likelihood=Likelihood.RARE,
    ),
    CatalogEntry(
        id="cat-5",
        title="Electromagnetic interference (EMC)",
        category="Environment / Ship",
        dreaded_event=(
            "Disturbance of fly-by-wire controls or displays (MFD) during the ship "
            "radar approach (strong fields)."
        ),
        mitigation_measures=(
            "- Map of ship emitters and exclusion zones (HIRTA)\n"
            "- Real-time telemetry monitoring of EMC parameters\n"
            "- Defined immediate escape procedure"
        ),
        default_severity=Severity.MODERATE,
        default_likelihood=Likelihood.OCCASIONAL,
    ),
    CatalogEntry(
        id="cat-6",
        title="Excessive vibration (envelope expansion)",
        category="Flight test",
        dreaded_event=(
            "Undamped vibratory phenomena (flutter) when reaching Vne + 10 kt. "
            "Structural damage."
        ),
        mitigation_measures=(
            "- Incremental speed build-up\n"
            "- Real-time strain gauge monitoring by the flight test engineer\n"
            "- Test stopped immediately when thresholds are exceeded"
        ),
        default_severity=Severity.CRITICAL,
        default_likelihood=Likelihood.VERY_IMPROBABLE,
    ),
    CatalogEntry(
        id="cat-7",
        title="Low-altitude bird strike",
        category="Environment",
        dreaded_event=(
            "Bird impact in tactical low-level flight breaking the canopy and "
            "injuring the pilot, or engine ingestion."
        ),
        mitigation_measures=(
            "- Avoid known migration areas (NOTAM)\n"
            "- Helmet visor down in low-level flight\n"
            "- \"Bird\" flight profile (reflex climb)"
        ),
        default_severity=Severity.MODERATE,
        default_likelihood=Likelihood.OCCASIONAL,
    ),
]


def find_entry(entries: List[CatalogEntry], entry_id: str) -> Optional[CatalogEntry]:
    for entry in entries:
        if entry.id == entry_id:
            return entry
    return None


def search(entries: List[CatalogEntry], query: str) -> List[CatalogEntry]:
    return [entry for entry in entries if entry.matches(query)]
