"""Command-line entry point for RallySync.

    python -m rallysync preview Alice:10 Bob:15 Carol:20 [--group 1] [--export]
    python -m rallysync launch Alice:10 Bob:15 Carol:20
    python -m rallysync rally Alpha --lead 2:10 Dave:30 Erin:1:05

``launch`` and ``rally`` run the countdown in real time against the console
output. Settings come from RALLYSYNC_* environment variables (a local .env is
loaded first).
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .core.config import SyncConfig
from .core.errors import RallySyncError
from .core.models import AdversaryTimer, SynchronizedSchedule
from .core.timing import (
    calculate_deadline_schedule,
    calculate_sync_schedule,
    parse_player_string,
    parse_time_string,
    validate_attack_group,
)
from .utils.logger import setup_logger
from .voice.narration import describe_schedule, narrate
from .voice.orchestrator import CountdownOrchestrator
from .voice.sequence import SequenceAssembler
from .voice.sink import ConsoleOutputSink

logger = logging.getLogger("rallysync.cli")

CONTEXT_ID = "console"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rallysync", description="Synchronized attack countdowns")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", action="store_true", help="Also write a log file under data/logs")
    sub = parser.add_subparsers(dest="command", required=True)

    preview = sub.add_parser("preview", help="Print a synchronized schedule")
    preview.add_argument("players", nargs="+", help='Players as "Name:seconds"')
    preview.add_argument("--group", type=int, default=None, help="Attack group filter")
    preview.add_argument("--export", action="store_true", help="Write the countdown audio as WAV")

    launch = sub.add_parser("launch", help="Run a synchronized countdown")
    launch.add_argument("players", nargs="+", help='Players as "Name:seconds"')
    launch.add_argument("--group", type=int, default=None, help="Attack group filter")

    rally = sub.add_parser("rally", help="Counter an enemy rally that starts now")
    rally.add_argument("name", help="Rally name")
    rally.add_argument("--lead", required=True, help='Time until the rally lands, e.g. "2:10"')
    rally.add_argument("players", nargs="+", help='Players as "Name:30" or "Name:1:05"')
    rally.add_argument("--group", type=int, default=1, help="Attack group")

    return parser


def _sync_schedule(players: List[str], group: Optional[int]) -> SynchronizedSchedule:
    attack_group = validate_attack_group(group)
    actors = [parse_player_string(player, attack_group=attack_group or 1) for player in players]
    return calculate_sync_schedule(actors, attack_group=attack_group)


async def _export(config: SyncConfig, schedule: SynchronizedSchedule) -> Path:
    orchestrator = CountdownOrchestrator.from_config(config)
    assembler = SequenceAssembler(
        renderer=orchestrator.renderer,
        cache=orchestrator.cache,
        profile=orchestrator.profile,
        output_dir=Path(config.cache_dir),
    )
    cues = narrate(
        schedule,
        announce_intro=config.announce_intro,
        prepare_lead_seconds=config.prepare_lead_seconds,
        spoken_count=config.spoken_count,
    )
    try:
        artifact = await assembler.assemble(cues, schedule.total_duration)
    finally:
        await orchestrator.shutdown()
    return artifact.path


async def _run(config: SyncConfig, schedule: SynchronizedSchedule, lead_time: Optional[int] = None) -> int:
    orchestrator = CountdownOrchestrator.from_config(config)
    orchestrator.attach(CONTEXT_ID, ConsoleOutputSink())
    try:
        session = orchestrator.launch(CONTEXT_ID, schedule, lead_time=lead_time)
        await session.wait_finished()
        await session.wait_delivered()
        return 1 if session.failures else 0
    finally:
        await orchestrator.shutdown()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for RallySync."""
    load_dotenv()

    args = build_parser().parse_args(argv)
    config = SyncConfig.from_env(verbose=args.verbose, save_logs=args.log_file)
    setup_logger(verbose=config.verbose, save_to_file=config.save_logs)

    try:
        if args.command == "rally":
            lead_time = parse_time_string(args.lead)
            timer = AdversaryTimer(args.name, lead_time, attack_group=validate_attack_group(args.group))
            timer.start()
            actors = [parse_player_string(player, attack_group=timer.attack_group) for player in args.players]
            schedule = calculate_deadline_schedule(timer, actors)
            logger.info(describe_schedule(schedule))
            return asyncio.run(_run(config, schedule, lead_time=lead_time))

        schedule = _sync_schedule(args.players, args.group)
        logger.info(describe_schedule(schedule))

        if args.command == "preview":
            if args.export:
                path = asyncio.run(_export(config, schedule))
                logger.info(f"Countdown audio: {path}")
            return 0

        return asyncio.run(_run(config, schedule))

    except RallySyncError as e:
        logger.error(f"❌ {e}")
        return 2
    except KeyboardInterrupt:
        logger.info("\n⚠️  Countdown interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
