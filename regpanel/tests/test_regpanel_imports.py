import pytest


@pytest.mark.parametrize(
    "symbol_name",
    [
        "Person",
        "Spell",
        "Gap",
        "SpellHistory",
        "RegisterEvent",
        "RecordStore",
        "SourceSpec",
        "PanelBuilder",
        "PanelConfig",
        "PanelPipeline",
        "DataQualityExceeded",
        "InvariantViolation",
        "OverlappingSpell",
        "normalize_identifier",
    ],
)
def test_import_symbol(symbol_name):
    """Test that each key symbol can be imported from regpanel."""
    module = __import__("regpanel", fromlist=[symbol_name])
    symbol = getattr(module, symbol_name, None)
    assert symbol is not None, f"{symbol_name} could not be imported"


def test_import_failure():
    """Test that importing a non-existent symbol raises ImportError or AttributeError."""
    with pytest.raises((ImportError, AttributeError)):
        from regpanel import NotARealClass  # noqa: F401
