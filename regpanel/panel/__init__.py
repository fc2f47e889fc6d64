"""Panel module: register linkage and person-time panel construction.

Builds a person-year panel for event-history analysis from a status register
and one or more event registers by:
    - Reconciling identifiers across files into canonical person keys
    - Repairing coverage gaps in each person's status spells
    - Deriving the population at risk from an age band and coverage
    - Attaching events (e.g. births) to persons and their covering spell
    - Assembling one panel row per person-year at risk
    - Auditing event counts between raw rows, attachments and the panel

Core classes:
    - PanelBuilder: High-level interface for building a panel
    - PanelPipeline: Orchestrates the stages and invariant checks
    - PanelConfig: Configuration for pipeline behavior
    - PanelResult: Panel, run report and intermediate stage outputs

Data models:
    - Attachment: Event linked to a person under a role, with its covering spell
    - RiskSetEntry: One person-year at risk
    - Panel / PanelRow: Output panel
    - Finding: Structured diagnostic (type, event, person, role, year, detail)
    - RunReport: Findings plus summary values from every stage

Customization:
    Gap fill policies and invariant checks are registries; subclass GapPolicy
    or InvariantCheck and decorate with @register_policy / @register_check.

Example:
    >>> from regpanel.panel import PanelBuilder
    >>> builder = PanelBuilder(config_dict={'min_age': 15, 'max_age': 50})
    >>> result = builder.build_from_rows({'status': status_rows, 'births': birth_rows})
    >>> df = result.panel.to_dataframe()
    >>> for finding in result.discrepancies:
    ...     print(finding.finding_type, finding.detail)
"""

from .model import Attachment
from .model import RiskSetEntry
from .model import Panel
from .model import PanelRow
from .model import Finding
from .model import RunReport
from .model import Summary
from .config import PanelConfig
from .identity import IdentityMap
from .identity import IdentityReconciler
from .spell_repair import SpellRepairer
from .gap_policies import GapPolicy
from .gap_policies import register_policy
from .gap_policies import get_policy_registry
from .risk_set import RiskSetFilter
from .attach import EventAttacher
from .assemble import PanelAssembler
from .audit import ReconciliationAuditor
from .checks import InvariantCheck
from .checks import register_check
from .pipeline import PanelPipeline
from .pipeline import PanelResult
from .defaults import get_default_checks
from .defaults import get_default_policy
from .builder import PanelBuilder

__all__ = [
    'Attachment',
    'RiskSetEntry',
    'Panel',
    'PanelRow',
    'Finding',
    'RunReport',
    'Summary',
    'PanelConfig',
    'IdentityMap',
    'IdentityReconciler',
    'SpellRepairer',
    'GapPolicy',
    'register_policy',
    'get_policy_registry',
    'RiskSetFilter',
    'EventAttacher',
    'PanelAssembler',
    'ReconciliationAuditor',
    'InvariantCheck',
    'register_check',
    'PanelPipeline',
    'PanelResult',
    'get_default_checks',
    'get_default_policy',
    'PanelBuilder',
]
