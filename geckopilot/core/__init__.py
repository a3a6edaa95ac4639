"""Geckopilot dashboard automation modules."""

from geckopilot.core.artifacts import ArtifactManager, RunRecord
from geckopilot.core.config import PilotConfig
from geckopilot.core.confirmation import (
    ConfirmationGate,
    ConsoleHumanInput,
    HumanInput,
    JsonlConfirmationSink,
    ScriptedHumanInput,
    normalize_answer,
)
from geckopilot.core.contracts import (
    ActionOutcome,
    AnswerKind,
    ConfirmationAnswer,
    ConfirmationQuestion,
    DashboardOrigin,
    DashboardRecord,
    DashboardState,
    OutcomeKind,
    RetryPolicy,
    SelectorCandidates,
    SessionContext,
)
from geckopilot.core.dashboard_lifecycle import CleanupResult, DashboardLifecycleManager
from geckopilot.core.driver import ActionDriver, ElementHandle, PlaywrightDriver
from geckopilot.core.errors import (
    ConfigError,
    DriverError,
    GeckopilotError,
    InvariantViolation,
    NamingSafetyViolation,
    SelectorExhausted,
    UserAbort,
)
from geckopilot.core.selector_resolver import SelectorResolver
from geckopilot.core.session_tracker import SessionTracker
from geckopilot.core.widgets import WidgetConfigurator, WidgetSpec
from geckopilot.core.workflow import StepName, StepResult, WorkflowOrchestrator, WorkflowReport

__all__ = [
    "ActionDriver",
    "ActionOutcome",
    "AnswerKind",
    "ArtifactManager",
    "CleanupResult",
    "ConfigError",
    "ConfirmationAnswer",
    "ConfirmationGate",
    "ConfirmationQuestion",
    "ConsoleHumanInput",
    "DashboardLifecycleManager",
    "DashboardOrigin",
    "DashboardRecord",
    "DashboardState",
    "DriverError",
    "ElementHandle",
    "GeckopilotError",
    "HumanInput",
    "InvariantViolation",
    "JsonlConfirmationSink",
    "NamingSafetyViolation",
    "OutcomeKind",
    "PilotConfig",
    "PlaywrightDriver",
    "RetryPolicy",
    "RunRecord",
    "ScriptedHumanInput",
    "SelectorCandidates",
    "SelectorExhausted",
    "SelectorResolver",
    "SessionContext",
    "SessionTracker",
    "StepName",
    "StepResult",
    "UserAbort",
    "WidgetConfigurator",
    "WidgetSpec",
    "WorkflowOrchestrator",
    "WorkflowReport",
    "normalize_answer",
]
