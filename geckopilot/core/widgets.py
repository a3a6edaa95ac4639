from __future__ import annotations

import logging
from dataclasses import dataclass

from geckopilot.core import selectors
from geckopilot.core.confirmation import ConfirmationGate
from geckopilot.core.contracts import ActionOutcome, OutcomeKind, SelectorCandidates
from geckopilot.core.driver import ActionDriver
from geckopilot.core.errors import UserAbort
from geckopilot.core.selector_resolver import SelectorResolver

logger = logging.getLogger("geckopilot.widgets")


@dataclass(frozen=True)
class WidgetSpec:
    service_name: str = "zendesk3"
    source_label: str = "Zendesk Support"
    metric_label: str = "First reply time"
    period_label: str | None = "Today"
    filter_label: str | None = "Solved"


class WidgetConfigurator:
    """Adds the widget to the active dashboard and walks its configuration panel."""

    def __init__(
        self,
        driver: ActionDriver,
        resolver: SelectorResolver,
        gate: ConfirmationGate,
        spec: WidgetSpec | None = None,
        action_budget_ms: int = 10_000,
        probe_budget_ms: int = 3_000,
        settle_timeout_ms: int = 5_000,
    ) -> None:
        self._driver = driver
        self._resolver = resolver
        self._gate = gate
        self._spec = spec or WidgetSpec()
        self._budget_ms = action_budget_ms
        self._probe_ms = probe_budget_ms
        self._settle_ms = settle_timeout_ms
        self.last_failure: ActionOutcome | None = None

    @property
    def spec(self) -> WidgetSpec:
        return self._spec

    async def _click(self, candidates: SelectorCandidates, transition: str, budget_ms: int | None = None) -> bool:
        outcome = await self._resolver.click(candidates, budget_ms or self._budget_ms)
        if outcome.ok:
            await self._driver.settle(self._settle_ms)
            return True
        if await self._gate.escalate(transition, outcome):
            return True
        self.last_failure = outcome
        return False

    async def add_widget(self) -> bool:
        if not await self._click(selectors.ADD_WIDGET, "open the Add widget panel"):
            return False
        source = selectors.widget_source(self._spec.service_name, self._spec.source_label)
        if not await self._click(source, f"pick the {self._spec.source_label} integration"):
            return False
        logger.info("[Widgets] ✓ %s widget added", self._spec.source_label)
        return True

    async def _choose_optional(self, candidates: SelectorCandidates, transition: str) -> None:
        outcome = await self._resolver.click(candidates, self._probe_ms)
        if outcome.ok:
            await self._driver.settle(self._settle_ms)
            return
        if outcome.kind == OutcomeKind.CANCELLED:
            raise UserAbort(f"Run cancelled while trying to {transition}")
        if not await self._gate.escalate(transition, outcome):
            logger.warning("[Widgets] Skipped: %s", transition)

    async def configure_widget(self) -> bool:
        spec = self._spec
        if not await self._click(selectors.widget_metric(spec.metric_label), f'choose the "{spec.metric_label}" metric'):
            return False

        if spec.period_label:
            await self._choose_optional(selectors.option(spec.period_label), f'set the time period to "{spec.period_label}"')

        if spec.filter_label:
            await self._choose_optional(selectors.ADD_FILTER, "open the filter options")
            await self._choose_optional(selectors.option(spec.filter_label), f'filter on "{spec.filter_label}" tickets')

        configured = await self._gate.confirm(
            f'Is the {spec.source_label} widget now showing "{spec.metric_label}" as configured?'
        )
        if not configured:
            feedback = await self._gate.describe("What do you see instead?")
            logger.warning("[Widgets] Widget configuration rejected: %s", feedback)
            return False
        logger.info("[Widgets] ✓ Widget configured (%s)", spec.metric_label)
        return True
