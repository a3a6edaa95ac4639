from __future__ import annotations

import asyncio
import json
import logging
import sys
import threading
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from geckopilot.core.contracts import (
    ActionOutcome,
    AnswerKind,
    ConfirmationAnswer,
    ConfirmationQuestion,
    OutcomeKind,
)
from geckopilot.core.errors import UserAbort

logger = logging.getLogger("geckopilot.confirm")

AFFIRMATIVE_TOKENS = frozenset({"y", "yes"})
MANUAL_DONE_TOKENS = ("done", "ready")


def normalize_answer(raw: str, question: ConfirmationQuestion) -> ConfirmationAnswer:
    """Map a raw reply onto YES/NO (fail closed) or TEXT for free-form questions."""
    token = (raw or "").strip().lower()
    if not question.expects_yes_no:
        return ConfirmationAnswer(kind=AnswerKind.TEXT, raw=raw, question=question)
    affirmatives = AFFIRMATIVE_TOKENS | {extra.lower() for extra in question.extra_affirmatives}
    kind = AnswerKind.YES if token in affirmatives else AnswerKind.NO
    return ConfirmationAnswer(kind=kind, raw=raw, question=question)


class HumanInput:
    async def ask(self, prompt: str) -> str:
        raise NotImplementedError


class ConsoleHumanInput(HumanInput):
    """Reads replies from stdin on a daemon thread so a pending prompt never blocks shutdown."""

    def __init__(self, stream=None) -> None:
        self._stream = stream or sys.stdin

    def _read(self, loop: asyncio.AbstractEventLoop, future: asyncio.Future) -> None:
        line: str | None = None
        error: BaseException | None = None
        try:
            line = self._stream.readline()
        except (OSError, ValueError) as exc:
            error = exc
        try:
            loop.call_soon_threadsafe(self._resolve, future, line, error)
        except RuntimeError:
            # Loop already closed: the run was interrupted while we waited.
            return

    @staticmethod
    def _resolve(future: asyncio.Future, line: str | None, exc: BaseException | None) -> None:
        if future.done():
            return
        if exc is not None:
            future.set_exception(exc)
        elif not line:
            future.set_exception(EOFError("stdin closed while waiting for an answer"))
        else:
            future.set_result(line.rstrip("\n"))

    async def ask(self, prompt: str) -> str:
        print(prompt, end="", flush=True)
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        reader = threading.Thread(target=self._read, args=(loop, future), name="geckopilot-stdin", daemon=True)
        reader.start()
        return await future


class ScriptedHumanInput(HumanInput):
    """Replays canned answers; records every prompt it was shown."""

    def __init__(self, answers: Iterable[str] = (), default: str | None = None) -> None:
        self._answers: deque[str] = deque(answers)
        self._default = default
        self.prompts: list[str] = []

    async def ask(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self._answers:
            return self._answers.popleft()
        if self._default is not None:
            return self._default
        raise AssertionError(f"No scripted answer left for prompt: {prompt!r}")


class ConfirmationSink:
    async def emit(self, event: dict[str, Any]) -> None:
        raise NotImplementedError


class JsonlConfirmationSink(ConfirmationSink):
    """Confirmation ledger: one JSON object per answered question, stamped with the session."""

    def __init__(self, path: str | Path, session_id: str | None = None) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._session_id = session_id

    @property
    def path(self) -> Path:
        return self._path

    async def emit(self, event: dict[str, Any]) -> None:
        entry = {"session_id": self._session_id, **event} if self._session_id else dict(event)
        with self._path.open("a", encoding="utf-8") as ledger:
            ledger.write(json.dumps(entry, sort_keys=True, ensure_ascii=False) + "\n")


class ConfirmationGate:
    """Turns ambiguous outcomes into explicit human decisions.

    Blocks until an answer arrives; there is no timeout. Cancelling
    the awaiting task is the only way to abandon a pending question.
    """

    def __init__(self, human: HumanInput, sink: ConfirmationSink | None = None) -> None:
        self._human = human
        self._sink = sink
        self._history: list[ConfirmationAnswer] = []

    @property
    def history(self) -> list[ConfirmationAnswer]:
        return list(self._history)

    async def ask(self, question: ConfirmationQuestion) -> ConfirmationAnswer:
        suffix = " (yes/no): " if question.expects_yes_no else ": "
        try:
            raw = await self._human.ask(f"\n❓ {question.prompt}{suffix}")
        except EOFError as exc:
            raise UserAbort(f"No answer possible for {question.prompt!r}: {exc}") from exc
        answer = normalize_answer(raw, question)
        self._history.append(answer)
        logger.info("[Confirm] Q: %s | A: %r -> %s", question.prompt, raw, answer.kind.value)
        if self._sink is None:
            return answer
        await self._sink.emit(
            {
                "ts": datetime.now(tz=timezone.utc).isoformat(),
                "question": question.prompt,
                "expects_yes_no": question.expects_yes_no,
                "raw": raw,
                "answer": answer.kind.value,
            }
        )
        return answer

    async def confirm(self, prompt: str, extra_affirmatives: tuple[str, ...] = ()) -> bool:
        answer = await self.ask(ConfirmationQuestion(prompt=prompt, extra_affirmatives=extra_affirmatives))
        return answer.is_yes

    async def describe(self, prompt: str) -> str:
        answer = await self.ask(ConfirmationQuestion(prompt=prompt, expects_yes_no=False))
        return answer.text

    async def escalate(self, transition: str, outcome: ActionOutcome) -> bool:
        """Ask whether a transition the driver could not perform has happened anyway."""
        if outcome.kind == OutcomeKind.CANCELLED:
            raise UserAbort(f"Run cancelled while trying to {transition}")
        logger.warning("[Confirm] Could not %s automatically: %s", transition, outcome.describe())
        return await self.confirm(
            f"I could not {transition} automatically ({outcome.describe()}). "
            "If you can, do it manually in the browser; has it happened now?",
            extra_affirmatives=MANUAL_DONE_TOKENS,
        )
