"""Ordered fallback resolution of selector candidates.

A logical UI element ("the New dashboard button") is described by several
candidate selectors because the target application's markup changes between
releases. Candidates are tried strictly in order, each within its slice of a
total time budget, and the first one that yields exactly one visible element
wins.

Disambiguation rule: when a candidate yields several visible elements, the
element whose enclosing container is marked active (``.active``,
``[aria-current]``, ``[aria-selected="true"]``) is chosen, provided exactly one
such element exists. Otherwise the candidate is recorded as ambiguous and
resolution moves on to the next candidate; a multi-match is never resolved by
picking the first element.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from typing import Awaitable, Callable, Optional

from geckopilot.core.contracts import ActionOutcome, RetryPolicy, SelectorCandidates
from geckopilot.core.driver import ActionDriver, ElementHandle
from geckopilot.core.errors import DriverError

logger = logging.getLogger("geckopilot.resolver")

MIN_SLICE_MS = 50


class SelectorResolver:
    def __init__(
        self,
        driver: ActionDriver,
        default_budget_ms: int = 10_000,
        retry: RetryPolicy | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self._driver = driver
        self._default_budget_ms = default_budget_ms
        self._retry = retry or RetryPolicy()
        self._cancel_event = cancel_event

    @property
    def cancelled(self) -> bool:
        return bool(self._cancel_event and self._cancel_event.is_set())

    async def _visible(self, handles: list[ElementHandle]) -> list[ElementHandle]:
        visible: list[ElementHandle] = []
        for handle in handles:
            try:
                if await handle.is_visible():
                    visible.append(handle)
            except DriverError:
                # Detached between query and check.
                continue
        return visible

    async def _disambiguate(self, handles: list[ElementHandle]) -> Optional[ElementHandle]:
        if len(handles) == 1:
            return handles[0]
        active: list[ElementHandle] = []
        for handle in handles:
            try:
                if await handle.in_active_container():
                    active.append(handle)
            except DriverError:
                continue
        if len(active) == 1:
            return active[0]
        return None

    async def _search(
        self,
        candidates: SelectorCandidates,
        timeout_budget_ms: int | None,
        accept: Callable[[list[ElementHandle]], Awaitable[object]],
    ) -> ActionOutcome:
        budget_ms = timeout_budget_ms if timeout_budget_ms is not None else self._default_budget_ms
        slice_ms = max(MIN_SLICE_MS, budget_ms // len(candidates))
        deadline = time.monotonic() + budget_ms / 1000.0
        tried: list[str] = []
        ambiguous: list[str] = []

        for selector in candidates:
            if self.cancelled:
                return ActionOutcome.cancelled(candidates.label, tuple(tried))

            remaining_ms = int((deadline - time.monotonic()) * 1000)
            if remaining_ms <= 0:
                logger.warning("[Resolver] Budget exhausted for %s before %s", candidates.label, selector)
                return ActionOutcome.timed_out(
                    candidates.label,
                    selector,
                    tuple(tried),
                    detail=f"budget {budget_ms}ms exhausted",
                )

            tried.append(selector)
            try:
                await self._driver.wait_for(selector, timeout_ms=min(slice_ms, remaining_ms))
                handles = await self._visible(await self._driver.query_all(selector))
            except DriverError as exc:
                logger.debug("[Resolver] %s: candidate %s failed: %s", candidates.label, selector, exc)
                continue

            if not handles:
                logger.debug("[Resolver] %s: candidate %s has no visible match", candidates.label, selector)
                continue

            element = await accept(handles)
            if element is None:
                ambiguous.append(selector)
                logger.info(
                    "[Resolver] %s: candidate %s matched %s elements without a single active one",
                    candidates.label,
                    selector,
                    len(handles),
                )
                continue

            logger.info("[Resolver] ✓ %s resolved via %s (attempt %s)", candidates.label, selector, len(tried))
            return ActionOutcome.succeeded(candidates.label, element, selector, tuple(tried), tuple(ambiguous))

        logger.warning("[Resolver] %s: no candidate resolved (tried %s)", candidates.label, tried)
        return ActionOutcome.not_found(candidates.label, tuple(tried), tuple(ambiguous))

    async def resolve(self, candidates: SelectorCandidates, timeout_budget_ms: int | None = None) -> ActionOutcome:
        return await self._search(candidates, timeout_budget_ms, self._disambiguate)

    async def collect(self, candidates: SelectorCandidates, timeout_budget_ms: int | None = None) -> ActionOutcome:
        """Resolve to every visible element of the first candidate that matches any."""

        async def keep_all(handles: list[ElementHandle]) -> list[ElementHandle]:
            return handles

        return await self._search(candidates, timeout_budget_ms, keep_all)

    async def _interact(
        self,
        candidates: SelectorCandidates,
        timeout_budget_ms: int | None,
        verb: str,
        operation: Callable[[ElementHandle], Awaitable[None]],
    ) -> ActionOutcome:
        attempt = 0
        while True:
            attempt += 1
            outcome = await self.resolve(candidates, timeout_budget_ms)
            if not outcome.ok:
                return outcome
            try:
                await operation(outcome.element)
                return outcome
            except DriverError as exc:
                if attempt >= self._retry.max_attempts:
                    logger.warning("[Resolver] %s %s failed after %s attempts: %s", verb, candidates.label, attempt, exc)
                    if exc.timeout:
                        return ActionOutcome.timed_out(candidates.label, outcome.selector, outcome.tried, detail=str(exc))
                    return ActionOutcome.not_found(candidates.label, outcome.tried, outcome.ambiguous, detail=str(exc))
                delay_ms = self._retry.backoff_ms(attempt)
                logger.info("[Resolver] %s %s failed (%s), retrying in %sms", verb, candidates.label, exc, delay_ms)
                await asyncio.sleep(delay_ms / 1000.0)

    async def click(self, candidates: SelectorCandidates, timeout_budget_ms: int | None = None) -> ActionOutcome:
        return await self._interact(candidates, timeout_budget_ms, "click", lambda element: element.click())

    async def hover(self, candidates: SelectorCandidates, timeout_budget_ms: int | None = None) -> ActionOutcome:
        return await self._interact(candidates, timeout_budget_ms, "hover", lambda element: element.hover())

    async def fill(
        self,
        candidates: SelectorCandidates,
        text: str,
        timeout_budget_ms: int | None = None,
        submit_key: str | None = None,
    ) -> ActionOutcome:
        async def fill_and_submit(element: ElementHandle) -> None:
            await element.fill(text)
            if submit_key:
                await element.press(submit_key)

        return await self._interact(candidates, timeout_budget_ms, "fill", fill_and_submit)

    async def read_texts(self, candidates: SelectorCandidates, timeout_budget_ms: int | None = None) -> ActionOutcome:
        """Collect matches and read them as ``(text, in_active_container)`` pairs.

        The active flag is ``None`` when the marker could not be read.
        """
        outcome = await self.collect(candidates, timeout_budget_ms)
        if not outcome.ok:
            return outcome
        entries: list[tuple[str, Optional[bool]]] = []
        for handle in outcome.element:
            try:
                text = await handle.text()
            except DriverError as exc:
                logger.debug("[Resolver] %s: unreadable element skipped: %s", candidates.label, exc)
                continue
            try:
                active: Optional[bool] = await handle.in_active_container()
            except DriverError:
                active = None
            entries.append((text, active))
        return replace(outcome, element=tuple(entries))

    async def is_present(self, candidates: SelectorCandidates, timeout_budget_ms: int | None = None) -> bool:
        outcome = await self.collect(candidates, timeout_budget_ms)
        return outcome.ok
