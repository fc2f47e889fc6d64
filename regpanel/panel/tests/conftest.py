"""
Pytest fixtures for panel tests.

Rows use the column names declared by the packaged config.yaml.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from regpanel.panel.builder import PanelBuilder
from regpanel.panel.config import PanelConfig
from regpanel.panel.defaults import get_default_policy
from regpanel.panel.identity import IdentityReconciler
from regpanel.panel.model import RunReport
from regpanel.panel.spell_repair import SpellRepairer
from regpanel.record_store import RecordStore


@pytest.fixture
def status_row():
    """Create one status register row."""
    def _create_row(person_id: Any, year: int, cohort: Optional[int] = 1970,
                    status: Any = "single", sex: Optional[str] = "F") -> Dict[str, Any]:
        return {"ID": person_id, "Year": year, "Cohort": cohort, "Status": status, "Gender": sex}

    return _create_row


@pytest.fixture
def status_years(status_row):
    """Create status rows for one person over a list of years."""
    def _create_rows(person_id: Any, years, cohort: Optional[int] = 1970,
                     status: Any = "single", sex: Optional[str] = "F") -> List[Dict[str, Any]]:
        return [status_row(person_id, year, cohort, status, sex) for year in years]

    return _create_rows


@pytest.fixture
def birth_row():
    """Create one birth register row."""
    def _create_row(event_id: Any, year: int, mother: Any = None, father: Any = None) -> Dict[str, Any]:
        return {"EventID": event_id, "Year": year, "MotherID": mother, "FatherID": father}

    return _create_row


@pytest.fixture
def default_config():
    """Default panel configuration."""
    return PanelConfig()


@pytest.fixture
def make_store(default_config):
    """Load status and birth rows into a RecordStore."""
    def _create_store(status: List[Dict[str, Any]], births: Optional[List[Dict[str, Any]]] = None,
                      config: Optional[PanelConfig] = None) -> RecordStore:
        config = config or default_config
        return RecordStore.from_rows(config.sources, {"status": status, "births": births or []})

    return _create_store


@pytest.fixture
def report():
    return RunReport()


@pytest.fixture
def build_panel():
    """Run the whole pipeline on rows with config overrides."""
    def _build(status: List[Dict[str, Any]], births: Optional[List[Dict[str, Any]]] = None, **overrides):
        builder = PanelBuilder(config_dict=overrides or None)
        return builder.build_from_rows({"status": status, "births": births or []})

    return _build


@pytest.fixture
def sample_rows(status_years, birth_row):
    """
    Three women and one man.

    P1: cohort 1970, observed 1990-1995 except 1992 (single, then married from 1994)
    P2: cohort 1975, observed 1990-1999
    P3: cohort 1960, observed 1990-1991 and 1996 (long gap)
    M1: cohort 1968, observed 1990-1999
    """
    status = (status_years("P1", [1990, 1991], 1970, "single")
              + status_years("P1", [1993], 1970, "single")
              + status_years("P1", [1994, 1995], 1970, "married")
              + status_years("P2", range(1990, 2000), 1975, "single")
              + status_years("P3", [1990, 1991, 1996], 1960, "married")
              + status_years("M1", range(1990, 2000), 1968, "married", sex="M"))
    births = [
        birth_row("E1", 1991, mother="P1", father="M1"),
        birth_row("E2", 1992, mother="P1", father="M1"),
        birth_row("E3", 1995, mother="P2"),
        birth_row("E4", 1998, mother="P2", father="M1"),
        birth_row("E5", 1993, mother="P3"),
    ]
    return status, births


@pytest.fixture
def link(make_store):
    """
    Load rows, reconcile identities and repair spells.

    Returns:
        (store, identity, histories, report)
    """
    def _link(status: List[Dict[str, Any]], births: Optional[List[Dict[str, Any]]] = None, **overrides):
        config = PanelConfig.from_dict(overrides) if overrides else PanelConfig()
        store = make_store(status, births, config)
        report = RunReport()
        reconciler = IdentityReconciler(
            normalization=config.identifier_normalization,
            max_unresolved_fraction=config.max_unresolved_fraction,
            suggest_near_matches=config.suggest_near_matches,
            near_match_threshold=config.near_match_threshold,
        )
        identity = reconciler.reconcile(store.status_rows, store.events, report)
        histories = SpellRepairer(get_default_policy(config)).repair(identity, store.status_rows, report)
        return store, identity, histories, report

    return _link
