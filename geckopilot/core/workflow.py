from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from geckopilot.core import selectors
from geckopilot.core.artifacts import ArtifactManager
from geckopilot.core.config import PilotConfig
from geckopilot.core.confirmation import ConfirmationGate
from geckopilot.core.contracts import ActionOutcome, DashboardRecord, SelectorCandidates
from geckopilot.core.dashboard_lifecycle import DashboardLifecycleManager
from geckopilot.core.driver import ActionDriver
from geckopilot.core.errors import GeckopilotError, SelectorExhausted
from geckopilot.core.selector_resolver import SelectorResolver
from geckopilot.core.session_tracker import SessionTracker
from geckopilot.core.widgets import WidgetConfigurator

logger = logging.getLogger("geckopilot.workflow")

STEP_FAILED = "STEP_FAILED"
UNEXPECTED_ERROR = "UNEXPECTED_ERROR"
EDIT_PAGE_MARKER = "/edit/dashboards/"


class StepName(str, Enum):
    LOGIN = "login"
    CLEANUP = "cleanup"
    CREATE = "create"
    RENAME = "rename"
    ADD_WIDGET = "add_widget"
    CONFIGURE_WIDGET = "configure_widget"
    FINALIZE = "finalize"


@dataclass
class StepResult:
    step: StepName
    success: bool
    failure_code: str | None = None
    detail: str = ""
    elapsed_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step.value,
            "success": self.success,
            "failure_code": self.failure_code,
            "detail": self.detail,
            "elapsed_ms": self.elapsed_ms,
        }


@dataclass
class WorkflowReport:
    session_id: str
    dashboard_name: str | None = None
    url: str = ""
    steps: list[StepResult] = field(default_factory=list)
    aborted_at: StepName | None = None
    failure_code: str | None = None

    @property
    def success(self) -> bool:
        return self.aborted_at is None and all(step.success for step in self.steps)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "dashboard_name": self.dashboard_name,
            "url": self.url,
            "success": self.success,
            "aborted_at": self.aborted_at.value if self.aborted_at else None,
            "failure_code": self.failure_code,
            "steps": [step.to_dict() for step in self.steps],
        }


class WorkflowOrchestrator:
    """Runs login -> cleanup -> create -> rename -> add widget -> configure widget -> finalize.

    The first failing step aborts the remaining ones; finalize always runs.
    The orchestrator is the only component that navigates the page.
    """

    def __init__(
        self,
        config: PilotConfig,
        driver: ActionDriver,
        resolver: SelectorResolver,
        gate: ConfirmationGate,
        tracker: SessionTracker,
        lifecycle: DashboardLifecycleManager,
        widgets: WidgetConfigurator,
        artifacts: ArtifactManager,
    ) -> None:
        self._config = config
        self._driver = driver
        self._resolver = resolver
        self._gate = gate
        self._tracker = tracker
        self._lifecycle = lifecycle
        self._widgets = widgets
        self._artifacts = artifacts
        self._dashboard: Optional[DashboardRecord] = None
        self._last_failure: ActionOutcome | None = None

    @classmethod
    def build(
        cls,
        config: PilotConfig,
        driver: ActionDriver,
        gate: ConfirmationGate,
        tracker: SessionTracker | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> "WorkflowOrchestrator":
        tracker = tracker or SessionTracker(
            name_prefix=config.name_prefix,
            name_suffix=config.name_suffix,
            legacy_patterns=config.legacy_name_patterns,
        )
        resolver = SelectorResolver(
            driver,
            default_budget_ms=config.action_budget_ms,
            retry=config.interaction_retry,
            cancel_event=cancel_event,
        )
        probe_ms = max(1, config.action_budget_ms // 3)
        lifecycle = DashboardLifecycleManager(
            driver,
            resolver,
            gate,
            tracker,
            action_budget_ms=config.action_budget_ms,
            probe_budget_ms=probe_ms,
            settle_timeout_ms=config.settle_timeout_ms,
            confirm_deletes=config.confirm_deletes,
        )
        widgets = WidgetConfigurator(
            driver,
            resolver,
            gate,
            action_budget_ms=config.action_budget_ms,
            probe_budget_ms=probe_ms,
            settle_timeout_ms=config.settle_timeout_ms,
        )
        artifacts = ArtifactManager(config.output_dir, tracker.session_id)
        return cls(config, driver, resolver, gate, tracker, lifecycle, widgets, artifacts)

    @property
    def lifecycle(self) -> DashboardLifecycleManager:
        return self._lifecycle

    @property
    def tracker(self) -> SessionTracker:
        return self._tracker

    @property
    def dashboard(self) -> Optional[DashboardRecord]:
        return self._dashboard

    # ------------------------------------------------------------------
    # Step plumbing
    # ------------------------------------------------------------------

    def _declined_failure(self) -> SelectorExhausted | None:
        for failure in (self._last_failure, self._lifecycle.last_failure, self._widgets.last_failure):
            if failure is not None:
                return SelectorExhausted(failure.label, failure.tried)
        return None

    async def _run_step(self, step: StepName, handler: Callable[[], Awaitable[bool]]) -> StepResult:
        logger.info("[Workflow] ▶ %s", step.value)
        self._last_failure = None
        self._lifecycle.last_failure = None
        self._widgets.last_failure = None
        started = time.perf_counter()
        code: str | None = None
        detail = ""
        try:
            ok = await handler()
            if not ok:
                exhausted = self._declined_failure()
                code = exhausted.code if exhausted else STEP_FAILED
                detail = str(exhausted) if exhausted else ""
        except GeckopilotError as exc:
            ok = False
            code = exc.code
            detail = str(exc)
            logger.error("[Workflow] %s raised %s: %s", step.value, exc.code, exc)
        except Exception as exc:
            ok = False
            code = UNEXPECTED_ERROR
            detail = f"{type(exc).__name__}: {exc}"
            logger.exception("[Workflow] %s failed unexpectedly", step.value)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        if ok:
            logger.info("[Workflow] ✓ %s (%sms)", step.value, elapsed_ms)
        else:
            logger.error("[Workflow] ✗ %s failed (%s)", step.value, code)
            await self._artifacts.screenshot(self._driver, f"{step.value}-error")
        return StepResult(step=step, success=ok, failure_code=code, detail=detail, elapsed_ms=elapsed_ms)

    async def _fill_or_escalate(self, candidates: SelectorCandidates, value: str) -> bool:
        outcome = await self._resolver.fill(candidates, value)
        if outcome.ok:
            return True
        if await self._gate.escalate(f"fill the {candidates.label}", outcome):
            return True
        self._last_failure = outcome
        return False

    async def _click_or_escalate(self, candidates: SelectorCandidates, transition: str) -> bool:
        outcome = await self._resolver.click(candidates)
        if outcome.ok:
            return True
        if await self._gate.escalate(transition, outcome):
            return True
        self._last_failure = outcome
        return False

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def login(self) -> bool:
        await self._driver.navigate(self._config.login_url)
        await self._artifacts.screenshot(self._driver, "login-page")
        if not await self._fill_or_escalate(selectors.LOGIN_EMAIL, self._config.email):
            return False
        if not await self._fill_or_escalate(selectors.LOGIN_PASSWORD, self._config.password):
            return False
        if not await self._click_or_escalate(selectors.LOGIN_SUBMIT, "press the login button"):
            return False
        await self._driver.settle(self._config.settle_timeout_ms)
        await self._artifacts.screenshot(self._driver, "after-login")

        if await self._resolver.is_present(selectors.DASHBOARD_NAMES):
            logger.info("[Workflow] Dashboard sidebar visible, login detected")
            return True
        if await self._gate.confirm("Did the login work? Are you now on the main dashboard page?"):
            return True
        feedback = await self._gate.describe("What do you see? Describe what happened")
        logger.warning("[Workflow] Login not confirmed; operator reports: %s", feedback)
        return False

    async def cleanup(self) -> bool:
        await self._driver.navigate(self._config.app_url)
        await self._driver.settle(self._config.settle_timeout_ms)
        await self._artifacts.screenshot(self._driver, "dashboard-list-for-cleanup")
        result = await self._lifecycle.cleanup()
        if result.candidates:
            await self._artifacts.screenshot(self._driver, "after-cleanup")
        return result.success

    async def create(self) -> bool:
        await self._lifecycle.list()
        self._dashboard = await self._lifecycle.create()
        await self._artifacts.screenshot(self._driver, "after-new-dashboard")
        return self._dashboard is not None

    async def rename(self) -> bool:
        record = self._dashboard
        if record is None:
            return False
        target = self._tracker.new_name()
        await self._lifecycle.list()
        if await self._lifecycle.rename(record, target):
            await self._artifacts.screenshot(self._driver, "dashboard-renamed")
            return True
        return await self._gate.confirm("Rename failed. Continue without renaming?")

    async def add_widget(self) -> bool:
        record = self._dashboard
        url = await self._driver.current_url()
        if record is not None and EDIT_PAGE_MARKER not in url:
            if not await self._click_or_escalate(
                selectors.dashboard_link(record.name), f"open dashboard {record.name!r} for editing"
            ):
                return False
            await self._driver.settle(self._config.settle_timeout_ms)
        ok = await self._widgets.add_widget()
        await self._artifacts.screenshot(self._driver, "widget-added")
        return ok

    async def configure_widget(self) -> bool:
        ok = await self._widgets.configure_widget()
        await self._artifacts.screenshot(self._driver, "widget-configured")
        return ok

    async def finalize(self, report: WorkflowReport) -> bool:
        await self._artifacts.screenshot(self._driver, "final-state")
        report.url = await self._driver.current_url()
        report.dashboard_name = self._dashboard.name if self._dashboard else None
        self._write_record(report)

        created = self._tracker.created_names
        logger.info("[Workflow] Dashboards created this session: %s", ", ".join(created) or "none")
        if self._config.offer_cleanup_on_exit and created:
            if await self._gate.confirm(f"Delete the dashboards created this session ({', '.join(created)})?"):
                result = await self._lifecycle.cleanup_created()
                return result.success
        return True

    def _write_record(self, report: WorkflowReport) -> None:
        self._artifacts.write_run_record(
            dashboard_name=report.dashboard_name,
            url=report.url,
            success=report.aborted_at is None,
            failed_step=report.aborted_at.value if report.aborted_at else None,
            failure_code=report.failure_code,
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run(self) -> WorkflowReport:
        report = WorkflowReport(session_id=self._tracker.session_id)
        logger.info("[Workflow] Session %s, dashboard name %s", self._tracker.session_id, self._tracker.new_name())
        pipeline: list[tuple[StepName, Callable[[], Awaitable[bool]]]] = [
            (StepName.LOGIN, self.login),
            (StepName.CLEANUP, self.cleanup),
            (StepName.CREATE, self.create),
            (StepName.RENAME, self.rename),
            (StepName.ADD_WIDGET, self.add_widget),
            (StepName.CONFIGURE_WIDGET, self.configure_widget),
        ]
        try:
            for step, handler in pipeline:
                result = await self._run_step(step, handler)
                report.steps.append(result)
                if not result.success:
                    report.aborted_at = step
                    report.failure_code = result.failure_code
                    logger.error("[Workflow] Stopping - %s failed", step.value)
                    break
        except asyncio.CancelledError:
            logger.warning("[Workflow] Run interrupted")
            report.failure_code = "CANCELLED"
            report.dashboard_name = self._dashboard.name if self._dashboard else None
            self._write_record(report)
            raise

        report.steps.append(await self._run_step(StepName.FINALIZE, lambda: self.finalize(report)))
        logger.info("[Workflow] Finished: %s", "success" if report.success else f"failed ({report.failure_code})")
        return report

    async def survey(self) -> list[DashboardRecord]:
        """Log in and list dashboards without changing anything."""
        if not await self.login():
            return []
        await self._driver.navigate(self._config.app_url)
        await self._driver.settle(self._config.settle_timeout_ms)
        return await self._lifecycle.list()
