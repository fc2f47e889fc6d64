"""
Tests for panel configuration.
"""
from __future__ import annotations

import pytest

from regpanel.errors import ConfigurationError
from regpanel.panel.config import PanelConfig
from regpanel.record_store import SourceSpec


class TestPanelConfig:
    """Tests for PanelConfig loading and validation."""

    def test_defaults_from_packaged_yaml(self, default_config):
        """Test that the packaged config.yaml provides every default."""
        assert default_config.min_age == 15
        assert default_config.max_age == 50
        assert default_config.year_start is None
        assert default_config.year_end is None
        assert default_config.gap_fill_policy == "forward-fill"
        assert default_config.max_fill_gap == 2
        assert default_config.unknown_status_is_coverage is True
        assert default_config.max_unresolved_fraction == 0.05
        assert default_config.workers == 1
        assert default_config.identifier_normalization == {
            "strip_whitespace": True, "casefold": False, "strip_leading_zeros": False}

    def test_default_sources(self, default_config):
        assert [s.name for s in default_config.sources] == ["status", "births"]
        assert all(isinstance(s, SourceSpec) for s in default_config.sources)
        assert default_config.roles == ["mother", "father"]

    def test_from_dict_overrides_and_keeps_defaults(self):
        config = PanelConfig.from_dict({"min_age": 20, "gap_fill_policy": "leave-gap"})
        assert config.min_age == 20
        assert config.max_age == 50
        assert config.gap_fill_policy == "leave-gap"

    def test_partial_normalization_override(self):
        """Test that overriding one switch keeps the other defaults."""
        config = PanelConfig.from_dict({"identifier_normalization": {"casefold": True}})
        assert config.identifier_normalization == {
            "strip_whitespace": True, "casefold": True, "strip_leading_zeros": False}

    def test_round_trip_through_dict(self, default_config):
        assert PanelConfig.from_dict(default_config.to_dict()) == default_config

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "panel.yaml"
        path.write_text("min_age: 18\nmax_age: 45\nyear_start: 1990\nyear_end: 2000\n", encoding="utf-8")
        config = PanelConfig.from_yaml(path)
        assert (config.min_age, config.max_age) == (18, 45)
        assert (config.year_start, config.year_end) == (1990, 2000)
        assert config.gap_fill_policy == "forward-fill"

    def test_from_yaml_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            PanelConfig.from_yaml(tmp_path / "missing.yaml")

    def test_check_toggles(self):
        config = PanelConfig.from_dict({"checks_enabled": {"spells_contiguous": False}})
        assert config.check_enabled("spells_contiguous") is False
        assert config.check_enabled("panel_row_count") is True

    @pytest.mark.parametrize("overrides", [
        {"min_age": 51},
        {"year_start": 2000, "year_end": 1990},
        {"gap_fill_policy": "interpolate"},
        {"max_fill_gap": -1},
        {"max_unresolved_fraction": 1.5},
        {"max_cross_role_conflict_fraction": -0.1},
        {"near_match_threshold": 101},
        {"workers": 0},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ConfigurationError):
            PanelConfig.from_dict(overrides)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            PanelConfig.from_dict({"min_age": 60})

    def test_requires_status_source(self):
        sources = [{"name": "births", "kind": "event",
                    "columns": {"event_id": "EventID", "year": "Year"},
                    "roles": {"mother": "MotherID"}}]
        with pytest.raises(ConfigurationError):
            PanelConfig.from_dict({"sources": sources})

    def test_role_declared_twice(self):
        sources = [
            {"name": "status", "kind": "status", "columns": {"person_id": "ID", "year": "Year"}},
            {"name": "births", "kind": "event", "columns": {"event_id": "EventID", "year": "Year"},
             "roles": {"mother": "MotherID"}},
            {"name": "adoptions", "kind": "event", "columns": {"event_id": "AdoptionID", "year": "Year"},
             "roles": {"mother": "AdoptiveMotherID"}, "event_type": "adoption"},
        ]
        with pytest.raises(ConfigurationError):
            PanelConfig.from_dict({"sources": sources})

    def test_several_event_sources(self):
        sources = [
            {"name": "status", "kind": "status", "columns": {"person_id": "ID", "year": "Year"}},
            {"name": "births", "kind": "event", "columns": {"event_id": "EventID", "year": "Year"},
             "roles": {"mother": "MotherID"}},
            {"name": "marriages", "kind": "event", "columns": {"event_id": "MarriageID", "year": "Year"},
             "roles": {"bride": "BrideID", "groom": "GroomID"}, "event_type": "marriage"},
        ]
        config = PanelConfig.from_dict({"sources": sources})
        assert config.roles == ["mother", "bride", "groom"]
        assert config.sources[2].event_type == "marriage"
