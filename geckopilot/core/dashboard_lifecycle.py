"""Dashboard lifecycle: list, create, switch, rename and delete.

States per record::

    LISTED -> ACTIVE <-> INACTIVE -> DELETING -> DELETED
    RENAMING is entered from ACTIVE or INACTIVE and always returns there.

Two independent gates protect deletion and are checked before any driver
call: the name must be owned by the automation (session prefix or a legacy
test-name pattern), and the record must not be the active dashboard.
Neither gate can be overridden by a human confirmation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from geckopilot.core import selectors
from geckopilot.core.confirmation import ConfirmationGate
from geckopilot.core.contracts import (
    ActionOutcome,
    DashboardOrigin,
    DashboardRecord,
    DashboardState,
    OutcomeKind,
    SelectorCandidates,
)
from geckopilot.core.driver import ActionDriver
from geckopilot.core.errors import InvariantViolation, NamingSafetyViolation, UserAbort
from geckopilot.core.selector_resolver import SelectorResolver
from geckopilot.core.session_tracker import SessionTracker

logger = logging.getLogger("geckopilot.lifecycle")


@dataclass
class CleanupResult:
    candidates: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: bool = False
    listing_failed: bool = False

    @property
    def success(self) -> bool:
        return not self.failed and not self.listing_failed


class DashboardLifecycleManager:
    def __init__(
        self,
        driver: ActionDriver,
        resolver: SelectorResolver,
        gate: ConfirmationGate,
        tracker: SessionTracker,
        action_budget_ms: int = 10_000,
        probe_budget_ms: int = 3_000,
        settle_timeout_ms: int = 5_000,
        confirm_deletes: bool = True,
    ) -> None:
        self._driver = driver
        self._resolver = resolver
        self._gate = gate
        self._tracker = tracker
        self._budget_ms = action_budget_ms
        self._probe_ms = probe_budget_ms
        self._settle_ms = settle_timeout_ms
        self._confirm_deletes = confirm_deletes
        self._records: dict[str, DashboardRecord] = {}
        self.delete_attempts = 0
        self.last_failure: ActionOutcome | None = None

    # ------------------------------------------------------------------
    # Record set
    # ------------------------------------------------------------------

    @property
    def records(self) -> list[DashboardRecord]:
        return list(self._records.values())

    @property
    def active(self) -> Optional[DashboardRecord]:
        for record in self._records.values():
            if record.is_active:
                return record
        return None

    def get(self, name: str) -> Optional[DashboardRecord]:
        return self._records.get(name)

    def _check_single_active(self) -> None:
        active = [record.name for record in self._records.values() if record.is_active]
        if len(active) > 1:
            raise InvariantViolation(f"More than one active dashboard: {active}")

    def _set_active(self, target: DashboardRecord) -> None:
        for record in self._records.values():
            if record is not target and record.is_active:
                record.state = DashboardState.INACTIVE
        target.state = DashboardState.ACTIVE
        self._check_single_active()

    def _rekey(self, old_name: str, new_name: str) -> None:
        self._records = {
            (new_name if name == old_name else name): record for name, record in self._records.items()
        }

    def _require_known(self, record: DashboardRecord) -> None:
        if self._records.get(record.name) is not record:
            raise InvariantViolation(f"Dashboard {record.name!r} is not in the current record set")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _escalate(self, transition: str, outcome: ActionOutcome) -> bool:
        confirmed = await self._gate.escalate(transition, outcome)
        if not confirmed:
            self.last_failure = outcome
        return confirmed

    async def _click(self, candidates: SelectorCandidates, transition: str) -> bool:
        outcome = await self._resolver.click(candidates, self._budget_ms)
        if outcome.ok:
            return True
        return await self._escalate(transition, outcome)

    async def _hover(self, record: DashboardRecord) -> None:
        # Menu buttons only render on hover; a failed hover is tolerated because
        # the following click escalates on its own.
        outcome = await self._resolver.hover(selectors.dashboard_link(record.name), self._probe_ms)
        if outcome.kind == OutcomeKind.CANCELLED:
            raise UserAbort(f"Run cancelled while hovering {record.name!r}")
        if not outcome.ok:
            logger.info("[Lifecycle] Hover on %s failed: %s", record.name, outcome.describe())

    async def _read_active_name(self) -> Optional[str]:
        outcome = await self._resolver.read_texts(selectors.ACTIVE_DASHBOARD_NAME, self._probe_ms)
        if not outcome.ok:
            return None
        for text, _active in outcome.element:
            if text:
                return text
        return None

    async def _is_listed(self, name: str) -> bool:
        return await self._resolver.is_present(selectors.dashboard_link(name), self._probe_ms)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def list(self) -> list[DashboardRecord]:
        """Reconcile the sidebar listing into the record set and return the records seen."""
        outcome = await self._resolver.read_texts(selectors.DASHBOARD_NAMES, self._budget_ms)
        if outcome.kind == OutcomeKind.CANCELLED:
            raise UserAbort("Run cancelled while listing dashboards")
        if not outcome.ok:
            logger.warning("[Lifecycle] Dashboard listing unavailable: %s", outcome.describe())
            self.last_failure = outcome
            return []

        seen: list[DashboardRecord] = []
        active_record: Optional[DashboardRecord] = None
        marker_known = False
        for text, active in outcome.element:
            name = text.strip()
            if not name:
                continue
            if any(record.name == name for record in seen):
                logger.warning("[Lifecycle] Duplicate dashboard name in listing: %s", name)
                continue
            record = self._records.get(name)
            if record is None:
                origin = (
                    DashboardOrigin.CREATED_THIS_SESSION
                    if name in self._tracker.created_names
                    else DashboardOrigin.PRE_EXISTING
                )
                record = DashboardRecord(name=name, origin=origin)
                self._records[name] = record
            seen.append(record)
            if active is not None:
                marker_known = True
            if active:
                active_record = record

        if active_record is not None:
            self._set_active(active_record)
        if marker_known:
            for record in seen:
                if record.state == DashboardState.LISTED:
                    record.state = DashboardState.INACTIVE

        logger.info(
            "[Lifecycle] Listed %s dashboards (active: %s)",
            len(seen),
            active_record.name if active_record else "unknown",
        )
        return seen

    async def create(self) -> Optional[DashboardRecord]:
        if not await self._click(selectors.NEW_DASHBOARD, "create a new dashboard"):
            logger.error("[Lifecycle] Dashboard creation not confirmed")
            return None
        await self._driver.settle(self._settle_ms)

        name = await self._read_active_name()
        if not name:
            name = await self._gate.describe("What is the current name of the new dashboard?")
        if not name:
            logger.error("[Lifecycle] New dashboard name unknown")
            return None

        record = self._records.get(name)
        if record is None:
            record = DashboardRecord(name=name)
            self._records[name] = record
        record.origin = DashboardOrigin.CREATED_THIS_SESSION
        self._set_active(record)
        self._tracker.record(name)
        logger.info("[Lifecycle] ✓ Created dashboard %s", name)
        return record

    async def switch_active(self, target: DashboardRecord) -> bool:
        self._require_known(target)
        if target.is_active:
            raise InvariantViolation(f"Dashboard {target.name!r} is already active")
        if target.state not in (DashboardState.LISTED, DashboardState.INACTIVE):
            raise InvariantViolation(f"Cannot switch to {target.name!r} in state {target.state.value}")

        if not await self._click(selectors.dashboard_link(target.name), f"switch to dashboard {target.name!r}"):
            return False
        await self._driver.settle(self._settle_ms)

        now_active = await self._read_active_name()
        if now_active != target.name:
            logger.info("[Lifecycle] Active marker reads %r after switching to %s", now_active, target.name)
            if not await self._gate.confirm(f'Is "{target.name}" now the active dashboard?'):
                return False

        self._set_active(target)
        logger.info("[Lifecycle] ✓ Switched to %s", target.name)
        return True

    async def rename(self, record: DashboardRecord, new_name: str) -> bool:
        self._require_known(record)
        if record.state not in (DashboardState.ACTIVE, DashboardState.INACTIVE):
            raise InvariantViolation(f"Cannot rename {record.name!r} in state {record.state.value}")
        if not new_name.strip():
            raise ValueError("new_name must not be empty")
        clash = self._records.get(new_name)
        if clash is not None and clash is not record:
            raise InvariantViolation(f"A dashboard named {new_name!r} already exists")
        if new_name == record.name:
            return True

        old_name = record.name
        previous_state = record.state
        record.state = DashboardState.RENAMING
        try:
            renamed = await self._perform_rename(record, new_name)
        finally:
            record.state = previous_state

        if not renamed:
            logger.warning("[Lifecycle] Rename of %s abandoned; name unchanged", old_name)
            return False

        self._rekey(old_name, new_name)
        record.name = new_name
        if record.origin == DashboardOrigin.CREATED_THIS_SESSION:
            self._tracker.rename(old_name, new_name)
        logger.info("[Lifecycle] ✓ Renamed %s -> %s", old_name, new_name)
        return True

    async def _perform_rename(self, record: DashboardRecord, new_name: str) -> bool:
        await self._hover(record)
        menu = selectors.context_menu_button(record.name, allow_unscoped=record.is_active)
        if not await self._click(menu, f"open the menu of {record.name!r}"):
            return False
        if not await self._click(selectors.MENU_RENAME, "choose Rename"):
            return False

        outcome = await self._resolver.fill(selectors.TITLE_FIELD, new_name, self._budget_ms, submit_key="Enter")
        if not outcome.ok:
            return await self._escalate(f'type the new title "{new_name}" and press Enter', outcome)
        await self._driver.settle(self._settle_ms)

        if await self._is_listed(new_name):
            return True
        return await self._gate.confirm(f'Was the dashboard successfully renamed to "{new_name}"?')

    def _check_owned(self, record: DashboardRecord) -> None:
        if not self._tracker.is_deletable(record.name):
            logger.error("[Lifecycle] Refusing to touch %s: not an automation dashboard", record.name)
            raise NamingSafetyViolation(record.name)

    async def delete(self, record: DashboardRecord, confirmed: bool = False) -> bool:
        self._check_owned(record)
        if record.is_active:
            raise InvariantViolation(
                f"Dashboard {record.name!r} is active; switch to another dashboard before deleting it"
            )
        self._require_known(record)
        if record.state == DashboardState.LISTED:
            raise InvariantViolation(
                f"Dashboard {record.name!r} may be the active one (marker unreadable); use retire() to switch away first"
            )
        if record.state != DashboardState.INACTIVE:
            raise InvariantViolation(f"Cannot delete {record.name!r} in state {record.state.value}")

        if self._confirm_deletes and not confirmed:
            if not await self._gate.confirm(f'Delete dashboard "{record.name}"?'):
                logger.info("[Lifecycle] Deletion of %s declined", record.name)
                return False

        self.delete_attempts += 1
        previous_state = record.state
        record.state = DashboardState.DELETING
        try:
            deleted = await self._perform_delete(record)
        except BaseException:
            record.state = previous_state
            raise

        if not deleted:
            record.state = previous_state
            logger.warning("[Lifecycle] Deletion of %s not confirmed", record.name)
            return False

        record.state = DashboardState.DELETED
        self._records.pop(record.name, None)
        self._tracker.forget(record.name)
        logger.info("[Lifecycle] ✓ Deleted %s", record.name)
        return True

    async def _perform_delete(self, record: DashboardRecord) -> bool:
        await self._hover(record)
        if not await self._click(selectors.context_menu_button(record.name), f"open the menu of {record.name!r}"):
            return False
        if not await self._click(selectors.MENU_DELETE, "choose Delete"):
            return False

        confirm = await self._resolver.click(selectors.CONFIRM_DELETE, self._probe_ms)
        if confirm.kind == OutcomeKind.CANCELLED:
            raise UserAbort("Run cancelled during deletion")
        if not confirm.ok:
            logger.info("[Lifecycle] No confirmation dialog for %s", record.name)
        await self._driver.settle(self._settle_ms)

        if not await self._is_listed(record.name):
            return True
        return await self._gate.confirm(f'Was "{record.name}" successfully deleted?')

    def _switch_target(self, leaving: DashboardRecord) -> Optional[DashboardRecord]:
        for record in self._records.values():
            if record is leaving or self._tracker.is_deletable(record.name):
                continue
            if record.state in (DashboardState.LISTED, DashboardState.INACTIVE):
                return record
        return None

    async def retire(self, record: DashboardRecord, confirmed: bool = False) -> bool:
        """Delete a record, switching to a non-test dashboard first when it is or may be active.

        A LISTED record has an unknown active flag; it only counts as inactive
        once another record is known to be active.
        """
        self._check_owned(record)
        current = self.active
        if record.state == DashboardState.LISTED and current is not None and current is not record:
            record.state = DashboardState.INACTIVE
        if record.is_active or record.state == DashboardState.LISTED:
            target = self._switch_target(record)
            if target is None:
                raise InvariantViolation(
                    f"Dashboard {record.name!r} may be active and there is no non-test dashboard to switch to"
                )
            logger.info("[Lifecycle] %s is or may be active, switching to %s first", record.name, target.name)
            if not await self.switch_active(target):
                return False
            if record.state == DashboardState.LISTED:
                record.state = DashboardState.INACTIVE
        return await self.delete(record, confirmed=confirmed)

    async def _retire_all(self, targets: list[DashboardRecord], result: CleanupResult) -> CleanupResult:
        for record in targets:
            if await self.retire(record, confirmed=True):
                result.deleted.append(record.name)
                continue
            result.failed.append(record.name)
            if not await self._gate.confirm(f'Could not delete "{record.name}". Continue with the remaining dashboards?'):
                raise UserAbort(f"Cleanup stopped after failing to delete {record.name!r}")
        return result

    async def _unlisted_cleanup(self, outcome: ActionOutcome) -> CleanupResult:
        result = CleanupResult()
        if await self._gate.confirm(
            f"I could not read the dashboard list ({outcome.describe()}). "
            "Continue without cleaning up old test dashboards?"
        ):
            logger.warning("[Lifecycle] Cleanup skipped: dashboard list unreadable")
            result.skipped = True
            return result
        result.listing_failed = True
        return result

    async def cleanup(self) -> CleanupResult:
        """Delete every automation dashboard currently listed."""
        self.last_failure = None
        listed = await self.list()
        if not listed and self.last_failure is not None:
            return await self._unlisted_cleanup(self.last_failure)
        targets = [record for record in listed if self._tracker.is_deletable(record.name)]
        result = CleanupResult(candidates=[record.name for record in targets])
        if not targets:
            logger.info("[Lifecycle] No automation dashboards to clean up")
            return result

        logger.info("[Lifecycle] Automation dashboards found: %s", ", ".join(result.candidates))
        if self._confirm_deletes and not await self._gate.confirm(
            f"Delete these automation test dashboards: {', '.join(result.candidates)}?"
        ):
            logger.info("[Lifecycle] Cleanup skipped by operator")
            result.skipped = True
            return result
        return await self._retire_all(targets, result)

    async def cleanup_created(self) -> CleanupResult:
        """Delete the dashboards this session created, if they are still listed."""
        created = self._tracker.created_names
        result = CleanupResult(candidates=created)
        if not created:
            return result
        listed = await self.list()
        targets: list[DashboardRecord] = []
        for record in listed:
            if record.name not in created:
                continue
            if not self._tracker.is_deletable(record.name):
                logger.warning("[Lifecycle] Keeping %s: created this session but not named as a test dashboard", record.name)
                continue
            targets.append(record)
        return await self._retire_all(targets, result)
