from __future__ import annotations


class GeckopilotError(Exception):
    code = "GECKOPILOT_ERROR"


class ConfigError(GeckopilotError, ValueError):
    code = "CONFIG_ERROR"


class DriverError(GeckopilotError):
    """Navigation, network or element interaction failure reported by the driver."""

    code = "DRIVER_ERROR"

    def __init__(self, message: str, timeout: bool = False) -> None:
        super().__init__(message)
        self.timeout = timeout


class SelectorExhausted(GeckopilotError):
    code = "SELECTOR_EXHAUSTED"

    def __init__(self, label: str, tried: tuple[str, ...]) -> None:
        super().__init__(f"No candidate resolved for {label!r}; tried {list(tried)}")
        self.label = label
        self.tried = tried


class InvariantViolation(GeckopilotError):
    code = "INVARIANT_VIOLATION"


class NamingSafetyViolation(GeckopilotError):
    code = "NAMING_SAFETY_VIOLATION"

    def __init__(self, name: str) -> None:
        super().__init__(f"Dashboard {name!r} is not owned by this automation")
        self.name = name


class UserAbort(GeckopilotError):
    code = "USER_ABORT"
