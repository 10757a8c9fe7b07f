# src/taskpulse/cli/main.py

"""
CLI entrypoint.

Initializes logging, loads settings once, builds AppState, then runs one command:
- run (default): build the daily report and deliver it (or print it with --dry-run)
- probe: inspect the tracker API and write a transcript, never sends anything

Exit code 0 on success (a run with nothing to report counts as success),
1 on delivery failure, misconfiguration or any unexpected error.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from collections.abc import Sequence

from ..cli.bootstrap import create_initial_state, create_tracker
from ..cli.probe import run_probe
from ..config import Settings, load_settings
from ..core.errors import DeliveryError
from ..core.pipeline import RunStatus, run_report
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="taskpulse", description="Daily team task status report.")
    parser.add_argument("command", nargs="?", choices=("run", "probe"), default="run")
    parser.add_argument("--dry-run", action="store_true", help="Print the report instead of sending it.")
    parser.add_argument("--no-llm", action="store_true", help="Always use the standard report format.")
    return parser.parse_args(argv)


async def _run(settings: Settings, *, dry_run: bool | None, use_llm: bool) -> int:
    state = create_initial_state(settings, dry_run=dry_run, use_llm=use_llm)
    try:
        outcome = await run_report(
            source=state.source,
            store=state.store,
            renderer=state.renderer,
            notifier=state.notifier,
            dry_run=state.dry_run,
        )
    finally:
        await state.aclose()

    if outcome.status == RunStatus.SKIPPED:
        logger.info("Nothing was sent.")
    return 0


async def _probe(settings: Settings) -> int:
    async with create_tracker(settings) as tracker:
        await run_probe(tracker, output_path=settings.data_dir / "probe-output.txt")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = load_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (%s)...", settings.app_name, args.command)

    try:
        if args.command == "probe":
            return asyncio.run(_probe(settings))
        return asyncio.run(
            _run(
                settings,
                dry_run=True if args.dry_run else None,
                use_llm=not args.no_llm,
            )
        )
    except DeliveryError:
        logger.exception("Report delivery failed.")
        return 1
    except ValueError:
        logger.exception("Configuration error.")
        return 1
    except Exception:
        logger.exception("Fatal error.")
        return 1
    finally:
        logger.info("Done.")


if __name__ == "__main__":
    raise SystemExit(main())
