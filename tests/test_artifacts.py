import json
import logging
from pathlib import Path

import pytest

from geckopilot.core.artifacts import ArtifactManager
from geckopilot.core.errors import DriverError
from geckopilot.core.run_log import attach_run_log, detach_run_log
from tests.fakes import FakeDriver


class BrokenCameraDriver(FakeDriver):
    async def screenshot(self, path: str) -> None:
        raise DriverError("screenshot failed: page crashed")


@pytest.mark.asyncio
async def test_screenshots_are_numbered_per_session(tmp_path: Path) -> None:
    artifacts = ArtifactManager(tmp_path, "s1")
    driver = FakeDriver()

    first = await artifacts.screenshot(driver, "Login page")
    second = await artifacts.screenshot(driver, "after login!")

    assert first == tmp_path / "screenshots" / "s1-01-login-page.png"
    assert second == tmp_path / "screenshots" / "s1-02-after-login.png"
    assert driver.screenshots == [str(first), str(second)]


@pytest.mark.asyncio
async def test_failed_screenshot_is_not_fatal(tmp_path: Path) -> None:
    artifacts = ArtifactManager(tmp_path, "s1")

    assert await artifacts.screenshot(BrokenCameraDriver(), "final state") is None


def test_run_record_is_written_as_text_and_json(tmp_path: Path) -> None:
    artifacts = ArtifactManager(tmp_path, "s1")

    record = artifacts.write_run_record(
        dashboard_name="AUTO-TEST-s1-Widget-Test",
        url="https://app.geckoboard.com/edit/dashboards/1",
        success=False,
        failed_step="configure_widget",
        failure_code="SELECTOR_EXHAUSTED",
    )

    text = (tmp_path / "run-s1.txt").read_text(encoding="utf-8")
    assert "Dashboard: AUTO-TEST-s1-Widget-Test" in text
    assert "URL: https://app.geckoboard.com/edit/dashboards/1" in text
    assert f"Created: {record.created_at}" in text

    payload = json.loads((tmp_path / "run-s1.json").read_text(encoding="utf-8"))
    assert payload["session_id"] == "s1"
    assert payload["success"] is False
    assert payload["failed_step"] == "configure_widget"
    assert payload["failure_code"] == "SELECTOR_EXHAUSTED"


def test_run_log_is_appended_and_detached(tmp_path: Path) -> None:
    log_path = tmp_path / "logs" / "run-log.txt"
    handler = attach_run_log(log_path, "s1")
    logging.getLogger("geckopilot.test").info("[Test] clicked %s", "New dashboard")
    detach_run_log(handler)
    logging.getLogger("geckopilot.test").info("[Test] after detach")

    content = log_path.read_text(encoding="utf-8")
    assert "session s1 started" in content
    assert "[Test] clicked New dashboard" in content
    assert "after detach" not in content
    assert handler not in logging.getLogger("geckopilot").handlers
