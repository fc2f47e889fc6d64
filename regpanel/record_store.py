"""
record_store.py - Typed, immutable ingestion of register extracts.

The Record Store turns raw tabular rows (as produced by the external file
readers) into normalized in-memory tables. Datasets are declared up front
(name, kind, column mapping); the store iterates the declarations and looks up
each dataset by its declared name. It performs no linkage.

Module: regpanel.record_store
"""

__all__ = ['SourceSpec', 'StatusRow', 'RecordStore', 'STATUS_KIND', 'EVENT_KIND']

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from .errors import ConfigurationError, SchemaError
from .identifiers import is_absent
from .register_event import RegisterEvent

logger = logging.getLogger(__name__)

STATUS_KIND = 'status'
EVENT_KIND = 'event'

STATUS_REQUIRED = ('person_id', 'year')
STATUS_OPTIONAL = ('cohort', 'status', 'sex')
EVENT_REQUIRED = ('event_id', 'year')


@dataclass(frozen=True)
class SourceSpec:
    """
    Declaration of one input dataset.

    Attributes:
        name (str): Dataset name used to supply rows.
        kind (str): 'status' (population/status register) or 'event' (event register).
        columns (Dict[str, str]): Logical field -> column name in the rows.
        roles (Dict[str, str]): Event sources only; role -> identifier column.
        event_type (str): Event sources only; kind of event recorded.
    """
    name: str
    kind: str
    columns: Dict[str, str] = field(default_factory=dict)
    roles: Dict[str, str] = field(default_factory=dict)
    event_type: str = 'birth'

    def __post_init__(self):
        if self.kind not in (STATUS_KIND, EVENT_KIND):
            raise ConfigurationError(f"Source '{self.name}' has unknown kind '{self.kind}'")
        required = STATUS_REQUIRED if self.kind == STATUS_KIND else EVENT_REQUIRED
        missing = [f for f in required if f not in self.columns]
        if missing:
            raise ConfigurationError(f"Source '{self.name}' does not declare columns for {missing}")
        if self.kind == EVENT_KIND and not self.roles:
            raise ConfigurationError(f"Event source '{self.name}' declares no roles")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'SourceSpec':
        try:
            return cls(
                name=data['name'],
                kind=data['kind'],
                columns=dict(data.get('columns') or {}),
                roles=dict(data.get('roles') or {}),
                event_type=data.get('event_type') or 'birth',
            )
        except KeyError as e:
            raise ConfigurationError(f"Source declaration is missing {e}") from e


@dataclass(frozen=True)
class StatusRow:
    """One raw row of the status register."""
    raw_id: Any
    year: int
    cohort: Optional[int] = None
    status: Any = None
    sex: Optional[str] = None
    source: Optional[str] = None
    row_number: Optional[int] = None


def _is_missing(value: Any) -> bool:
    if is_absent(value):
        return True
    return pd.api.types.is_scalar(value) and bool(pd.isna(value))


def _to_int(value: Any, what: str) -> Optional[int]:
    """Convert a cell to int, returning None if blank; non-integral values are schema errors."""
    if _is_missing(value):
        return None
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError) as e:
        raise SchemaError(f"{what}: {value!r} is not a number") from e
    if not number.is_integer():
        raise SchemaError(f"{what}: {value!r} is not a whole year")
    return int(number)


def _to_value(value: Any) -> Any:
    if _is_missing(value):
        return None
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _cell(row: Mapping[str, Any], column: str, source: str, row_number: int) -> Any:
    try:
        return row[column]
    except KeyError as e:
        raise SchemaError(f"Dataset '{source}' row {row_number} has no column '{column}'") from e


class RecordStore:
    """
    Holds the typed tables of every declared dataset.

    Attributes:
        sources (Tuple[SourceSpec, ...]): Dataset declarations, in declaration order.
    """

    def __init__(self, sources: Sequence[SourceSpec]):
        names = [s.name for s in sources]
        if len(names) != len(set(names)):
            raise ConfigurationError(f"Duplicate dataset names in {names}")
        self.sources: Tuple[SourceSpec, ...] = tuple(sources)
        self.__tables: Dict[str, Tuple[Union[StatusRow, RegisterEvent], ...]] = {}

    def __repr__(self) -> str:
        sizes = ', '.join(f"{name}={len(rows)}" for name, rows in self.__tables.items())
        return f"RecordStore({sizes})"

    @classmethod
    def from_rows(cls, sources: Sequence[SourceSpec], datasets: Mapping[str, Iterable[Mapping[str, Any]]]) -> 'RecordStore':
        """
        Build a store from row mappings keyed by declared dataset name.

        Args:
            sources: Dataset declarations.
            datasets: dataset name -> iterable of rows (column -> cell value).

        Returns:
            RecordStore: Store with one typed table per declared dataset.

        Raises:
            SchemaError: If a declared dataset is not supplied or a row lacks a declared column.
        """
        store = cls(sources)
        for spec in store.sources:
            if spec.name not in datasets:
                raise SchemaError(f"Declared dataset '{spec.name}' was not supplied")
            store._load(spec, datasets[spec.name])
        undeclared = sorted(set(datasets) - {s.name for s in store.sources})
        if undeclared:
            logger.warning(f"Ignoring undeclared datasets: {undeclared}")
        return store

    @classmethod
    def from_dataframes(cls, sources: Sequence[SourceSpec], frames: Mapping[str, pd.DataFrame]) -> 'RecordStore':
        """Build a store from pandas DataFrames keyed by declared dataset name."""
        datasets = {name: df.to_dict(orient='records') for name, df in frames.items()}
        return cls.from_rows(sources, datasets)

    def _load(self, spec: SourceSpec, rows: Iterable[Mapping[str, Any]]) -> None:
        if spec.kind == STATUS_KIND:
            table = tuple(self._status_row(spec, row, n) for n, row in enumerate(rows))
        else:
            table = tuple(self._event_row(spec, row, n) for n, row in enumerate(rows))
        self.__tables[spec.name] = table
        logger.info(f"Loaded {len(table)} {spec.kind} rows from '{spec.name}'")

    @staticmethod
    def _status_row(spec: SourceSpec, row: Mapping[str, Any], n: int) -> StatusRow:
        cols = spec.columns
        raw_id = _to_value(_cell(row, cols['person_id'], spec.name, n))
        if raw_id is None:
            raise SchemaError(f"Dataset '{spec.name}' row {n} has no person identifier")
        year = _to_int(_cell(row, cols['year'], spec.name, n), f"{spec.name} row {n} year")
        if year is None:
            raise SchemaError(f"Dataset '{spec.name}' row {n} has no year")
        optional = {f: _cell(row, cols[f], spec.name, n) if f in cols else None for f in STATUS_OPTIONAL}
        return StatusRow(
            raw_id=raw_id,
            year=year,
            cohort=_to_int(optional['cohort'], f"{spec.name} row {n} cohort"),
            status=_to_value(optional['status']),
            sex=_to_value(optional['sex']),
            source=spec.name,
            row_number=n,
        )

    @staticmethod
    def _event_row(spec: SourceSpec, row: Mapping[str, Any], n: int) -> RegisterEvent:
        cols = spec.columns
        event_id = _to_value(_cell(row, cols['event_id'], spec.name, n))
        if event_id is None:
            raise SchemaError(f"Dataset '{spec.name}' row {n} has no event identifier")
        year = _to_int(_cell(row, cols['year'], spec.name, n), f"{spec.name} row {n} year")
        if year is None:
            raise SchemaError(f"Dataset '{spec.name}' row {n} has no year")
        identifiers = {role: _to_value(_cell(row, column, spec.name, n)) for role, column in spec.roles.items()}
        return RegisterEvent(
            event_id=event_id,
            event_year=year,
            role_identifiers=identifiers,
            event_type=spec.event_type,
            source=spec.name,
            row_number=n,
        )

    @property
    def dataset_names(self) -> List[str]:
        return [s.name for s in self.sources]

    def table(self, name: str) -> Tuple[Union[StatusRow, RegisterEvent], ...]:
        """Typed rows of one dataset, in extract order."""
        if name not in self.__tables:
            raise KeyError(f"No dataset named '{name}'")
        return self.__tables[name]

    @property
    def status_rows(self) -> Tuple[StatusRow, ...]:
        rows: List[StatusRow] = []
        for spec in self.sources:
            if spec.kind == STATUS_KIND:
                rows.extend(self.__tables.get(spec.name, ()))
        return tuple(rows)

    @property
    def events(self) -> Tuple[RegisterEvent, ...]:
        rows: List[RegisterEvent] = []
        for spec in self.sources:
            if spec.kind == EVENT_KIND:
                rows.extend(self.__tables.get(spec.name, ()))
        return tuple(rows)

    @property
    def roles(self) -> List[str]:
        """Roles declared across event sources, in declaration order."""
        roles: List[str] = []
        for spec in self.sources:
            if spec.kind == EVENT_KIND:
                roles.extend(r for r in spec.roles if r not in roles)
        return roles
