import io
import json
from pathlib import Path

import pytest

from geckopilot.core.confirmation import (
    ConfirmationGate,
    ConsoleHumanInput,
    JsonlConfirmationSink,
    ScriptedHumanInput,
    normalize_answer,
)
from geckopilot.core.contracts import ActionOutcome, AnswerKind, ConfirmationQuestion
from geckopilot.core.errors import UserAbort

YES_NO = ConfirmationQuestion(prompt="Delete dashboard?")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("y", AnswerKind.YES),
        ("yes", AnswerKind.YES),
        ("  YES \n", AnswerKind.YES),
        ("nah", AnswerKind.NO),
        ("n", AnswerKind.NO),
        ("", AnswerKind.NO),
        ("yes please", AnswerKind.NO),
        ("done", AnswerKind.NO),
    ],
)
def test_yes_no_answers_fail_closed(raw: str, expected: AnswerKind) -> None:
    assert normalize_answer(raw, YES_NO).kind == expected


def test_manual_step_prompts_accept_done() -> None:
    question = ConfirmationQuestion(prompt="Has it happened?", extra_affirmatives=("done", "ready"))

    assert normalize_answer("Done", question).is_yes
    assert normalize_answer("ready", question).is_yes
    assert not normalize_answer("later", question).is_yes


def test_free_text_answers_are_kept_verbatim() -> None:
    question = ConfirmationQuestion(prompt="What do you see?", expects_yes_no=False)

    answer = normalize_answer("  a login error  ", question)

    assert answer.kind == AnswerKind.TEXT
    assert answer.text == "a login error"
    assert answer.question is question


@pytest.mark.asyncio
async def test_gate_records_history_and_writes_ledger(tmp_path: Path) -> None:
    ledger = tmp_path / "out" / "confirmations.jsonl"
    human = ScriptedHumanInput(["y", "the old sidebar"])
    gate = ConfirmationGate(human, JsonlConfirmationSink(ledger))

    assert await gate.confirm("Did the login work?") is True
    assert await gate.describe("What do you see?") == "the old sidebar"

    assert human.prompts == ["\n❓ Did the login work? (yes/no): ", "\n❓ What do you see?: "]
    assert [answer.kind for answer in gate.history] == [AnswerKind.YES, AnswerKind.TEXT]

    lines = ledger.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["question"] == "Did the login work?"
    assert first["raw"] == "y"
    assert first["answer"] == "yes"
    assert first["expects_yes_no"] is True
    assert "ts" in first
    assert "session_id" not in first


@pytest.mark.asyncio
async def test_ledger_entries_carry_the_session_id(tmp_path: Path) -> None:
    sink = JsonlConfirmationSink(tmp_path / "confirmations.jsonl", session_id="abc12345")
    gate = ConfirmationGate(ScriptedHumanInput(["no"]), sink)

    assert await gate.confirm("Delete dashboard?") is False

    entry = json.loads(sink.path.read_text(encoding="utf-8"))
    assert entry["session_id"] == "abc12345"
    assert entry["answer"] == "no"


@pytest.mark.asyncio
async def test_gate_without_ledger_only_keeps_history() -> None:
    gate = ConfirmationGate(ScriptedHumanInput(["yes"]))

    assert await gate.confirm("Delete dashboard?") is True
    assert len(gate.history) == 1


@pytest.mark.asyncio
async def test_closed_input_becomes_user_abort() -> None:
    class ClosedInput(ScriptedHumanInput):
        async def ask(self, prompt: str) -> str:
            raise EOFError("stdin closed")

    gate = ConfirmationGate(ClosedInput())

    with pytest.raises(UserAbort):
        await gate.confirm("Delete dashboard?")
    assert gate.history == []

@pytest.mark.asyncio
async def test_escalate_accepts_manual_completion() -> None:
    human = ScriptedHumanInput(["done"])
    gate = ConfirmationGate(human)
    outcome = ActionOutcome.not_found("new dashboard button", ("#a", "#b"))

    assert await gate.escalate("create a new dashboard", outcome) is True
    assert "#a, #b" in human.prompts[0]
    assert "create a new dashboard" in human.prompts[0]


@pytest.mark.asyncio
async def test_escalate_on_cancelled_outcome_aborts_without_asking() -> None:
    human = ScriptedHumanInput()
    gate = ConfirmationGate(human)

    with pytest.raises(UserAbort):
        await gate.escalate("open the menu", ActionOutcome.cancelled("menu"))

    assert human.prompts == []


@pytest.mark.asyncio
async def test_scripted_input_fails_loudly_when_out_of_answers() -> None:
    gate = ConfirmationGate(ScriptedHumanInput())

    with pytest.raises(AssertionError):
        await gate.confirm("Unexpected question?")


@pytest.mark.asyncio
async def test_console_input_reads_a_line(capsys: pytest.CaptureFixture[str]) -> None:
    human = ConsoleHumanInput(stream=io.StringIO("yes\n"))

    assert await human.ask("Continue? ") == "yes"
    assert "Continue? " in capsys.readouterr().out


@pytest.mark.asyncio
async def test_console_input_raises_on_closed_stdin() -> None:
    human = ConsoleHumanInput(stream=io.StringIO(""))

    with pytest.raises(EOFError):
        await human.ask("Continue? ")
