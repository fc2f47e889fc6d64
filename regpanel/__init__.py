"""regpanel package: Exposes core classes for building person-time panels from register extracts."""

from regpanel.errors import (ConfigurationError, DataQualityExceeded, InvariantViolation,
                             OverlappingSpell, PanelError, PipelineStopped, SchemaError)
from regpanel.identifiers import normalize_identifier
from regpanel.person import Person
from regpanel.record_store import RecordStore, SourceSpec, StatusRow
from regpanel.register_event import RegisterEvent
from regpanel.spell import Gap, Spell, SpellHistory
from regpanel.panel import PanelBuilder, PanelConfig, PanelPipeline

__all__ = [
    "ConfigurationError",
    "DataQualityExceeded",
    "Gap",
    "InvariantViolation",
    "OverlappingSpell",
    "PanelBuilder",
    "PanelConfig",
    "PanelError",
    "PanelPipeline",
    "Person",
    "PipelineStopped",
    "RecordStore",
    "RegisterEvent",
    "SchemaError",
    "SourceSpec",
    "Spell",
    "SpellHistory",
    "StatusRow",
    "normalize_identifier",
]
