from pathlib import Path

import pytest

from geckopilot import cli


@pytest.fixture
def credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GECKOBOARD_EMAIL", "pilot@example.com")
    monkeypatch.setenv("GECKOBOARD_PASSWORD", "secret")
    for name in ("HEADLESS_MODE", "GECKOPILOT_OUTPUT_DIR", "GECKOPILOT_NAME_PREFIX", "GECKOPILOT_CONFIRM_DELETES"):
        monkeypatch.delenv(name, raising=False)


def test_flags_override_environment(credentials: None, tmp_path: Path) -> None:
    args = cli.parse_args(
        [
            "--headless",
            "--output-dir",
            str(tmp_path),
            "--prefix",
            "QA-",
            "--no-confirm-deletes",
            "--env-file",
            str(tmp_path / "missing.env"),
        ]
    )

    config = cli.build_config(args)

    assert config.headless is True
    assert config.output_dir == str(tmp_path)
    assert config.name_prefix == "QA-"
    assert config.confirm_deletes is False


def test_absent_flags_keep_environment_values(credentials: None, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HEADLESS_MODE", "1")
    args = cli.parse_args(["--env-file", str(tmp_path / "missing.env")])

    config = cli.build_config(args)

    assert config.headless is True
    assert config.confirm_deletes is True
    assert args.list_only is False


def test_missing_credentials_exit_with_config_code(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GECKOBOARD_EMAIL", "")
    monkeypatch.setenv("GECKOBOARD_PASSWORD", "")

    assert cli.main(["--env-file", str(tmp_path / "missing.env")]) == cli.EXIT_CONFIG
