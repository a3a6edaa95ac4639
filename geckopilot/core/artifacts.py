from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from geckopilot.core.driver import ActionDriver
from geckopilot.core.errors import DriverError

logger = logging.getLogger("geckopilot.artifacts")


@dataclass(frozen=True)
class RunRecord:
    session_id: str
    dashboard_name: str | None
    url: str
    created_at: str
    success: bool
    failed_step: str | None = None
    failure_code: str | None = None


class ArtifactManager:
    def __init__(self, root_dir: str | Path, session_id: str) -> None:
        self._root = Path(root_dir)
        self._screenshots = self._root / "screenshots"
        self._screenshots.mkdir(parents=True, exist_ok=True)
        self._session_id = session_id
        self._counter = 0

    @property
    def root(self) -> Path:
        return self._root

    def screenshot_path(self, description: str) -> Path:
        self._counter += 1
        slug = re.sub(r"[^a-zA-Z0-9]+", "-", description).strip("-").lower() or "step"
        return self._screenshots / f"{self._session_id}-{self._counter:02d}-{slug}.png"

    async def screenshot(self, driver: ActionDriver, description: str) -> Optional[Path]:
        path = self.screenshot_path(description)
        try:
            await driver.screenshot(str(path))
        except DriverError as exc:
            logger.warning("[Artifacts] Screenshot %s failed: %s", path.name, exc)
            return None
        logger.info("[Artifacts] 📸 %s", path.name)
        return path

    def write_run_record(
        self,
        dashboard_name: str | None,
        url: str,
        success: bool,
        failed_step: str | None = None,
        failure_code: str | None = None,
    ) -> RunRecord:
        record = RunRecord(
            session_id=self._session_id,
            dashboard_name=dashboard_name,
            url=url,
            created_at=datetime.now(tz=timezone.utc).isoformat(),
            success=success,
            failed_step=failed_step,
            failure_code=failure_code,
        )
        text_path = self._root / f"run-{self._session_id}.txt"
        text_path.write_text(
            f"Dashboard: {dashboard_name or '-'}\nURL: {url}\nCreated: {record.created_at}\n",
            encoding="utf-8",
        )
        json_path = self._root / f"run-{self._session_id}.json"
        json_path.write_text(json.dumps(asdict(record), indent=2, sort_keys=True), encoding="utf-8")
        logger.info("[Artifacts] Run record written to %s", text_path)
        return record
