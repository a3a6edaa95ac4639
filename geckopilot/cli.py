"""Command line entrypoint for the Geckoboard dashboard pilot."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import Any

from geckopilot.core.config import PilotConfig
from geckopilot.core.confirmation import ConfirmationGate, ConsoleHumanInput, HumanInput, JsonlConfirmationSink
from geckopilot.core.driver import PlaywrightDriver
from geckopilot.core.errors import ConfigError
from geckopilot.core.run_log import attach_run_log, configure_logging, detach_run_log
from geckopilot.core.session_tracker import SessionTracker
from geckopilot.core.workflow import WorkflowOrchestrator

logger = logging.getLogger("geckopilot.cli")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def _install_interrupt_handlers(cancel_event: asyncio.Event) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()

    def interrupt() -> None:
        logger.warning("[CLI] Interrupt received, shutting down")
        cancel_event.set()
        if task is not None:
            task.cancel()

    installed: list[signal.Signals] = []
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, interrupt)
        except (NotImplementedError, RuntimeError):
            continue
        installed.append(signum)
    return installed


async def _run(config: PilotConfig, list_only: bool = False, human: HumanInput | None = None) -> dict[str, Any]:
    tracker = SessionTracker(
        name_prefix=config.name_prefix,
        name_suffix=config.name_suffix,
        legacy_patterns=config.legacy_name_patterns,
    )
    run_log = attach_run_log(config.run_log_path, tracker.session_id)
    cancel_event = asyncio.Event()
    installed = _install_interrupt_handlers(cancel_event)
    try:
        async with PlaywrightDriver.launch(config) as driver:
            ledger = JsonlConfirmationSink(config.confirmation_ledger_path, tracker.session_id)
            gate = ConfirmationGate(human or ConsoleHumanInput(), ledger)
            orchestrator = WorkflowOrchestrator.build(config, driver, gate, tracker=tracker, cancel_event=cancel_event)
            if list_only:
                records = await orchestrator.survey()
                return {
                    "session_id": tracker.session_id,
                    "success": bool(records),
                    "dashboards": [
                        {**record.to_dict(), "deletable": tracker.is_deletable(record.name)} for record in records
                    ],
                }
            report = await orchestrator.run()
            return report.to_dict()
    finally:
        loop = asyncio.get_running_loop()
        for signum in installed:
            loop.remove_signal_handler(signum)
        detach_run_log(run_log)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Geckoboard dashboard automation with human confirmation")
    parser.add_argument("--headless", action="store_true", help="Run the browser without a window")
    parser.add_argument("--output-dir", type=str, default=None, help="Directory for screenshots, logs and run records")
    parser.add_argument("--prefix", type=str, default=None, help="Name prefix that marks dashboards as owned")
    parser.add_argument(
        "--no-confirm-deletes",
        action="store_true",
        help="Skip the per-delete confirmation (ownership checks still apply)",
    )
    parser.add_argument("--list-only", action="store_true", help="Log in, list dashboards and exit")
    parser.add_argument("--env-file", type=str, default=None, help="Optional .env file to load")
    parser.add_argument("--log-level", type=str, default=None, help="Console log level (default: LOG_LEVEL or INFO)")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> PilotConfig:
    return PilotConfig.from_env(args.env_file).with_overrides(
        headless=True if args.headless else None,
        output_dir=args.output_dir,
        name_prefix=args.prefix,
        confirm_deletes=False if args.no_confirm_deletes else None,
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    try:
        config = build_config(args)
    except ConfigError as exc:
        logger.error("[CLI] %s", exc)
        return EXIT_CONFIG

    try:
        result = asyncio.run(_run(config, list_only=args.list_only))
    except (asyncio.CancelledError, KeyboardInterrupt):
        logger.warning("[CLI] Run interrupted; partial results are in %s", config.output_dir)
        return EXIT_INTERRUPTED

    print(json.dumps(result, indent=2, sort_keys=True))
    return EXIT_OK if result.get("success") else EXIT_FAILED


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
