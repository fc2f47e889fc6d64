"""
Default pipeline components built from configuration.
"""
from __future__ import annotations

from typing import List

from .checks import InvariantCheck, get_check_registry
from .config import PanelConfig
from .gap_policies import GapPolicy, get_policy


def get_default_checks(config: PanelConfig) -> List[InvariantCheck]:
    """
    Create the enabled invariant checks from the check registry.

    Args:
        config: PanelConfig with the checks_enabled toggles.

    Returns:
        List[InvariantCheck]: One instance per enabled registered check.
    """
    return [check_cls() for check_id, check_cls in get_check_registry().items()
            if config.check_enabled(check_id)]


def get_default_policy(config: PanelConfig) -> GapPolicy:
    """Create the configured gap fill policy."""
    return get_policy(config.gap_fill_policy, max_fill_gap=config.max_fill_gap)
