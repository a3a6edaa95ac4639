from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class OutcomeKind(str, Enum):
    SUCCEEDED = "succeeded"
    NOT_FOUND = "not_found"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class DashboardOrigin(str, Enum):
    PRE_EXISTING = "pre_existing"
    CREATED_THIS_SESSION = "created_this_session"


class DashboardState(str, Enum):
    LISTED = "listed"
    ACTIVE = "active"
    INACTIVE = "inactive"
    RENAMING = "renaming"
    DELETING = "deleting"
    DELETED = "deleted"


class AnswerKind(str, Enum):
    YES = "yes"
    NO = "no"
    TEXT = "text"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 2
    initial_backoff_ms: int = 250
    max_backoff_ms: int = 2_000
    multiplier: float = 2.0

    def backoff_ms(self, attempt: int) -> int:
        delay = self.initial_backoff_ms * (self.multiplier ** max(0, attempt - 1))
        return int(min(delay, self.max_backoff_ms))


@dataclass(frozen=True)
class SelectorCandidates:
    """Alternative locators for one logical UI element, most likely first."""

    label: str
    selectors: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.selectors:
            raise ValueError(f"SelectorCandidates {self.label!r} requires at least one selector")

    def __iter__(self):
        return iter(self.selectors)

    def __len__(self) -> int:
        return len(self.selectors)


@dataclass(frozen=True)
class ActionOutcome:
    kind: OutcomeKind
    label: str
    element: Any = None
    selector: str | None = None
    tried: tuple[str, ...] = ()
    ambiguous: tuple[str, ...] = ()
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.SUCCEEDED

    @property
    def failed_candidates(self) -> tuple[str, ...]:
        return tuple(selector for selector in self.tried if selector != self.selector)

    @classmethod
    def succeeded(
        cls,
        label: str,
        element: Any,
        selector: str,
        tried: tuple[str, ...],
        ambiguous: tuple[str, ...] = (),
    ) -> "ActionOutcome":
        return cls(OutcomeKind.SUCCEEDED, label, element=element, selector=selector, tried=tried, ambiguous=ambiguous)

    @classmethod
    def not_found(
        cls,
        label: str,
        tried: tuple[str, ...],
        ambiguous: tuple[str, ...] = (),
        detail: str = "",
    ) -> "ActionOutcome":
        return cls(OutcomeKind.NOT_FOUND, label, tried=tried, ambiguous=ambiguous, detail=detail)

    @classmethod
    def timed_out(cls, label: str, selector: str | None, tried: tuple[str, ...], detail: str = "") -> "ActionOutcome":
        return cls(OutcomeKind.TIMED_OUT, label, selector=selector, tried=tried, detail=detail)

    @classmethod
    def cancelled(cls, label: str, tried: tuple[str, ...] = ()) -> "ActionOutcome":
        return cls(OutcomeKind.CANCELLED, label, tried=tried)

    def describe(self) -> str:
        tried = ", ".join(self.tried) or "none"
        text = f"{self.label}: {self.kind.value} (tried: {tried})"
        if self.ambiguous:
            text += f" ambiguous: {', '.join(self.ambiguous)}"
        if self.detail:
            text += f" [{self.detail}]"
        return text


@dataclass
class DashboardRecord:
    name: str
    origin: DashboardOrigin = DashboardOrigin.PRE_EXISTING
    state: DashboardState = DashboardState.LISTED

    @property
    def is_active(self) -> bool:
        return self.state == DashboardState.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "origin": self.origin.value,
            "state": self.state.value,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class ConfirmationQuestion:
    prompt: str
    expects_yes_no: bool = True
    extra_affirmatives: tuple[str, ...] = ()


@dataclass(frozen=True)
class ConfirmationAnswer:
    kind: AnswerKind
    raw: str
    question: ConfirmationQuestion | None = None

    @property
    def is_yes(self) -> bool:
        return self.kind == AnswerKind.YES

    @property
    def text(self) -> str:
        return self.raw.strip()


@dataclass
class SessionContext:
    session_id: str
    name_prefix: str
    created_names: list[str] = field(default_factory=list)
