from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from regpanel.app_hooks import AppHooks
from regpanel.errors import PipelineStopped
from regpanel.record_store import RecordStore
from regpanel.spell import SpellHistory

from .assemble import PanelAssembler
from .attach import EventAttacher
from .audit import ReconciliationAuditor
from .checks import STAGE_ATTACHMENTS, STAGE_PANEL, STAGE_SPELLS, CheckContext, InvariantCheck
from .config import PanelConfig
from .defaults import get_default_checks, get_default_policy
from .identity import IdentityMap, IdentityReconciler
from .model import Attachment, Finding, Panel, RiskSetEntry, RunReport
from .risk_set import RiskSetFilter
from .spell_repair import SpellRepairer

logger = logging.getLogger(__name__)

STAGES = ('reconcile identities', 'repair spells', 'derive risk set',
          'attach events', 'assemble panel', 'audit')


@dataclass
class PanelResult:
    panel: Panel
    report: RunReport
    identity: IdentityMap
    histories: Dict[str, SpellHistory] = field(default_factory=dict)
    risk_set: Tuple[RiskSetEntry, ...] = ()
    attachments: Tuple[Attachment, ...] = ()
    discrepancies: Tuple[Finding, ...] = ()


class PanelPipeline:
    """
    Runs the stages in order and verifies the invariants after each one.

    Identity reconciliation is a barrier: every later stage reads the same
    immutable identity map. Quality-threshold breaches and invariant violations
    propagate as exceptions and no panel is returned; everything else ends up
    in the run report.
    """

    def __init__(self, config: PanelConfig, app_hooks: Optional['AppHooks'] = None,
                 checks: Optional[Sequence[InvariantCheck]] = None) -> None:
        self.config = config
        self.app_hooks = app_hooks
        self.checks: List[InvariantCheck] = list(checks) if checks is not None else get_default_checks(config)

    def run(self, store: RecordStore) -> PanelResult:
        config = self.config
        report = RunReport()
        self._report_step(info="Building panel", target=len(STAGES), reset_counter=True, plus_step=0)
        status_rows = store.status_rows
        events = store.events

        self._begin(STAGES[0])
        reconciler = IdentityReconciler(
            normalization=config.identifier_normalization,
            max_unresolved_fraction=config.max_unresolved_fraction,
            suggest_near_matches=config.suggest_near_matches,
            near_match_threshold=config.near_match_threshold,
        )
        identity = reconciler.reconcile(status_rows, events, report)

        self._begin(STAGES[1])
        repairer = SpellRepairer(get_default_policy(config), workers=config.workers)
        histories = repairer.repair(identity, status_rows, report)
        context = CheckContext(histories=histories, gap_fill_policy=config.gap_fill_policy)
        self._run_checks(STAGE_SPELLS, context)

        self._begin(STAGES[2])
        risk_filter = RiskSetFilter(config.min_age, config.max_age, config.year_start, config.year_end,
                                    config.unknown_status_is_coverage)
        risk_set = risk_filter.build(identity, histories, report)

        self._begin(STAGES[3])
        attacher = EventAttacher(config.max_cross_role_conflict_fraction)
        attachments = attacher.attach(identity, histories, events, report)
        context.attachments = attachments
        self._run_checks(STAGE_ATTACHMENTS, context)

        self._begin(STAGES[4])
        panel = PanelAssembler(store.roles).assemble(risk_set, attachments, report)
        context.risk_set = risk_set
        context.panel = panel
        self._run_checks(STAGE_PANEL, context)

        self._begin(STAGES[5])
        year_start, year_end = risk_filter.target_range(histories)
        discrepancies = ReconciliationAuditor(year_start, year_end).audit(identity, events, attachments, panel, report)

        logger.info(f"Panel built: {len(panel)} rows, {len(report.findings)} findings {report.counts_by_type()}")
        self._update_key_value("panel_rows", len(panel))
        self._update_key_value("findings", len(report.findings))
        return PanelResult(
            panel=panel,
            report=report,
            identity=identity,
            histories=histories,
            risk_set=risk_set,
            attachments=attachments,
            discrepancies=discrepancies,
        )

    def _begin(self, stage: str) -> None:
        if self._stop_requested(f"Panel build stopped by user before '{stage}'"):
            raise PipelineStopped(f"Stopped before '{stage}'")
        self._report_step(info=f"Panel: {stage}", plus_step=1)

    def _run_checks(self, stage: str, context: CheckContext) -> None:
        for check in self.checks:
            if check.stage != stage:
                continue
            if not self.config.check_enabled(check.check_id):
                logger.debug(f"Skipping disabled check: {check.check_id}")
                continue
            logger.debug(f"Running check: {check.check_id}")
            check.run(context)

    def _report_step(self, info: str = "", target: Optional[int] = None, reset_counter: bool = False, plus_step: int = 0) -> None:
        """
        Report a step via app hooks if available. (Private method)

        Args:
            info (str): Information message.
            target (int): Target count for progress.
            reset_counter (bool): Whether to reset the counter.
            plus_step (int): Incremental step count.
        """
        if self.app_hooks and callable(getattr(self.app_hooks, "report_step", None)):
            self.app_hooks.report_step(info=info, target=target, reset_counter=reset_counter, plus_step=plus_step)
        else:
            logger.debug(info)

    def _update_key_value(self, key: str, value) -> None:
        if self.app_hooks and callable(getattr(self.app_hooks, "update_key_value", None)):
            self.app_hooks.update_key_value(key, value)

    def _stop_requested(self, logger_stop_message: str = "Stop requested by user") -> bool:
        """
        Check if stop has been requested via app hooks. (Private method)

        Returns:
            bool: True if stop requested, False otherwise.
        """
        if self.app_hooks and callable(getattr(self.app_hooks, "stop_requested", None)):
            if self.app_hooks.stop_requested():
                if logger_stop_message:
                    logger.info(logger_stop_message)
                return True
        return False
