from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from regpanel.errors import ConfigurationError
from regpanel.record_store import EVENT_KIND, STATUS_KIND, SourceSpec

from .gap_policies import get_policy_registry

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


def _load_yaml(yaml_path: Path) -> Dict[str, Any]:
    if not yaml_path or not Path(yaml_path).exists():
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")
    try:
        with open(yaml_path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing {yaml_path}: {e}")


@dataclass
class PanelConfig:
    """
    Configuration for panel construction.

    Defaults are loaded from config.yaml in the panel directory; from_dict and
    from_yaml override individual keys and fall back to those defaults.
    """
    # Risk population
    min_age: int = field(init=False)
    max_age: int = field(init=False)
    year_start: Optional[int] = field(init=False)
    year_end: Optional[int] = field(init=False)

    # Spell repair
    gap_fill_policy: str = field(init=False)
    max_fill_gap: int = field(init=False)
    unknown_status_is_coverage: bool = field(init=False)

    # Data quality thresholds
    max_unresolved_fraction: float = field(init=False)
    max_cross_role_conflict_fraction: float = field(init=False)

    # Identity reconciliation
    identifier_normalization: Dict[str, bool] = field(init=False)
    suggest_near_matches: bool = field(init=False)
    near_match_threshold: int = field(init=False)

    workers: int = field(init=False)

    # Invariant check toggles
    checks_enabled: Dict[str, bool] = field(init=False)

    # Declared datasets
    sources: List[SourceSpec] = field(init=False)

    def __post_init__(self):
        """Load configuration from the packaged config.yaml."""
        self._apply(_load_yaml(DEFAULT_CONFIG_PATH), {})

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> PanelConfig:
        """
        Load configuration from a specific YAML file.

        Args:
            yaml_path: Path to YAML config file.

        Returns:
            PanelConfig: Configuration instance loaded from YAML.
        """
        return cls.from_dict(_load_yaml(yaml_path))

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> PanelConfig:
        """
        Create configuration from a dictionary; keys not given come from config.yaml.

        Args:
            config_dict (Dict[str, Any]): Dictionary with configuration values.

        Returns:
            PanelConfig: Configuration instance.
        """
        instance = object.__new__(cls)
        instance._apply(config_dict, _load_yaml(DEFAULT_CONFIG_PATH))
        return instance

    def _apply(self, config_dict: Dict[str, Any], defaults: Dict[str, Any]) -> None:
        for key in self.__dataclass_fields__.keys():
            if key in config_dict:
                value = config_dict[key]
            elif key in defaults:
                value = defaults[key]
            else:
                raise ValueError(f"Required configuration field '{key}' not found")
            setattr(self, key, value)
        # partial overrides of nested switches keep the remaining defaults
        normalization = dict(defaults.get('identifier_normalization') or {})
        normalization.update(self.identifier_normalization or {})
        self.identifier_normalization = normalization
        self.checks_enabled = dict(self.checks_enabled or {})
        self.sources = [s if isinstance(s, SourceSpec) else SourceSpec.from_dict(s) for s in self.sources or []]
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError if settings are inconsistent."""
        if self.min_age is None or self.max_age is None or self.min_age > self.max_age:
            raise ConfigurationError(f"Invalid age band [{self.min_age}, {self.max_age}]")
        if self.year_start is not None and self.year_end is not None and self.year_start > self.year_end:
            raise ConfigurationError(f"Invalid year range [{self.year_start}, {self.year_end}]")
        policies = get_policy_registry()
        if self.gap_fill_policy not in policies:
            raise ConfigurationError(f"Unknown gap fill policy '{self.gap_fill_policy}', expected one of {sorted(policies)}")
        if self.max_fill_gap is None or self.max_fill_gap < 0:
            raise ConfigurationError(f"max_fill_gap must be >= 0, got {self.max_fill_gap}")
        for name in ('max_unresolved_fraction', 'max_cross_role_conflict_fraction'):
            value = getattr(self, name)
            if value is None or not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be within [0, 1], got {value}")
        if not 0 <= self.near_match_threshold <= 100:
            raise ConfigurationError(f"near_match_threshold must be within [0, 100], got {self.near_match_threshold}")
        if self.workers is None or self.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {self.workers}")
        if not any(s.kind == STATUS_KIND for s in self.sources):
            raise ConfigurationError("At least one status source must be declared")
        seen: Dict[str, str] = {}
        for spec in self.sources:
            if spec.kind != EVENT_KIND:
                continue
            for role in spec.roles:
                if role in seen:
                    raise ConfigurationError(f"Role '{role}' declared by both '{seen[role]}' and '{spec.name}'")
                seen[role] = spec.name

    def check_enabled(self, check_id: str) -> bool:
        # default: enabled unless explicitly false
        return self.checks_enabled.get(check_id, True)

    @property
    def roles(self) -> List[str]:
        """Roles across event sources in declaration order (panel column order)."""
        return [role for spec in self.sources if spec.kind == EVENT_KIND for role in spec.roles]

    def to_dict(self) -> Dict[str, Any]:
        data = {key: getattr(self, key) for key in self.__dataclass_fields__.keys()}
        data['sources'] = [
            {'name': s.name, 'kind': s.kind, 'columns': dict(s.columns),
             'roles': dict(s.roles), 'event_type': s.event_type}
            for s in self.sources
        ]
        return data
