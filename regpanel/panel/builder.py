from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

import pandas as pd

from regpanel.app_hooks import AppHooks
from regpanel.record_store import RecordStore
from .config import PanelConfig
from .pipeline import PanelPipeline, PanelResult


class PanelBuilder:
    def __init__(
        self,
        config_dict: Optional[Dict[str, Any]] = None,
        config_yaml: Optional[Path] = None,
        app_hooks: Optional['AppHooks'] = None
    ) -> None:
        """
        Initialize panel construction with optional configuration.

        Args:
            config_dict: Dictionary to override config values
            config_yaml: Path to YAML config file. If None, uses the packaged config.yaml
            app_hooks: Optional application hooks for progress reporting and stop requests
        """
        # Load from YAML first (or use defaults), then apply any dict overrides
        if config_yaml:
            self.config = PanelConfig.from_yaml(Path(config_yaml))
        else:
            self.config = PanelConfig()
        if config_dict:
            self.config = PanelConfig.from_dict({**self.config.to_dict(), **config_dict})

        self.pipeline = PanelPipeline(config=self.config, app_hooks=app_hooks)
        self.result: Optional[PanelResult] = None

    def build(self, store: RecordStore) -> PanelResult:
        """
        Build the panel from an already loaded record store.

        Returns:
            PanelResult: Panel, run report and intermediate stage outputs.
        """
        self.result = self.pipeline.run(store)
        return self.result

    def build_from_rows(self, datasets: Mapping[str, Iterable[Mapping[str, Any]]]) -> PanelResult:
        """Load declared datasets from row mappings and build the panel."""
        return self.build(RecordStore.from_rows(self.config.sources, datasets))

    def build_from_dataframes(self, frames: Mapping[str, pd.DataFrame]) -> PanelResult:
        """Load declared datasets from pandas DataFrames and build the panel."""
        return self.build(RecordStore.from_dataframes(self.config.sources, frames))
