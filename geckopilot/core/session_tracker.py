from __future__ import annotations

import re
import uuid

from geckopilot.core.contracts import SessionContext


class SessionTracker:
    """Names automation dashboards for one run and remembers which ones it created."""

    def __init__(
        self,
        name_prefix: str = "AUTO-TEST-",
        name_suffix: str = "-Widget-Test",
        legacy_patterns: tuple[str, ...] = (),
        session_id: str | None = None,
    ) -> None:
        if not name_prefix:
            raise ValueError("name_prefix must not be empty")
        self._context = SessionContext(
            session_id=session_id or uuid.uuid4().hex[:8],
            name_prefix=name_prefix,
        )
        self._suffix = name_suffix
        self._legacy = tuple(re.compile(pattern) for pattern in legacy_patterns)

    @property
    def session_id(self) -> str:
        return self._context.session_id

    @property
    def name_prefix(self) -> str:
        return self._context.name_prefix

    @property
    def created_names(self) -> list[str]:
        return list(self._context.created_names)

    def new_name(self) -> str:
        return f"{self._context.name_prefix}{self._context.session_id}{self._suffix}"

    def record(self, name: str) -> None:
        if name not in self._context.created_names:
            self._context.created_names.append(name)

    def rename(self, old_name: str, new_name: str) -> None:
        names = self._context.created_names
        if old_name in names:
            names[names.index(old_name)] = new_name
        elif new_name not in names:
            names.append(new_name)

    def forget(self, name: str) -> None:
        if name in self._context.created_names:
            self._context.created_names.remove(name)

    def is_owned(self, name: str) -> bool:
        return name.startswith(self._context.name_prefix)

    def is_legacy(self, name: str) -> bool:
        return any(pattern.search(name) for pattern in self._legacy)

    def is_deletable(self, name: str) -> bool:
        return self.is_owned(name) or self.is_legacy(name)
