import argparse
import dataclasses
import datetime
import json
import sys
from enum import Enum
from typing import Mapping, Optional, Sequence

import yaml
from loguru import logger

from config import APP_VERSION, YamlConfig
from engine import TrainingEngine
from models import (
    DailyLog,
    Difficulty,
    EquipmentCategory,
    ExperienceLevel,
    MuscleGroup,
    TrainingPhase,
    WorkoutSession,
)


def load_export(path: str) -> tuple[list[WorkoutSession], dict[datetime.date, DailyLog]]:
    """Read sessions and daily logs from a JSON export file."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    sessions = [WorkoutSession.from_dict(s) for s in data.get("sessions", [])]
    logs: dict[datetime.date, DailyLog] = {}
    for raw in data.get("daily_logs", []):
        log = DailyLog.from_dict(raw)
        logs[log.date] = log
    return sessions, logs


def _json_default(value):
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Cannot serialise {type(value).__name__}")


def to_json(result) -> str:
    if dataclasses.is_dataclass(result):
        result = dataclasses.asdict(result)
    elif isinstance(result, list):
        result = [dataclasses.asdict(r) if dataclasses.is_dataclass(r) else r for r in result]
    return json.dumps(result, default=_json_default, indent=2)


def _parse_when(value: Optional[str]) -> Optional[datetime.datetime]:
    return datetime.datetime.fromisoformat(value) if value else None


def run_command(
    args: argparse.Namespace,
    engine: TrainingEngine,
    sessions: Sequence[WorkoutSession],
    logs: Mapping[datetime.date, DailyLog],
):
    now = _parse_when(args.now)
    level = ExperienceLevel(args.experience)

    if args.cmd == "plateau":
        series = engine.stats.extract_exercise_time_series(args.exercise, sessions, now=now)
        return engine.stats.detect_plateau(series, args.weeks, now=now)
    if args.cmd == "landmarks":
        phase = TrainingPhase(args.phase)
        if args.muscle:
            return engine.volume.get_volume_recommendation(
                MuscleGroup(args.muscle), sessions, level, phase, now=now
            )
        return engine.volume.get_all_volume_recommendations(sessions, level, phase, now=now)
    if args.cmd == "recovery":
        return engine.recovery.get_recovery_assessment(
            sessions,
            logs,
            level,
            last_rest_day=_parse_when(args.last_rest),
            last_deload_date=_parse_when(args.last_deload),
            now=now,
        )
    if args.cmd == "periodization":
        status = engine.periodization.get_periodization_status(
            sessions,
            logs,
            level,
            last_deload_date=_parse_when(args.last_deload),
            peak_start=_parse_when(args.peak_start),
            now=now,
        )
        plan = engine.periodization.generate_mesocycle_plan(status, level, now=now)
        return {"status": dataclasses.asdict(status), "plan": dataclasses.asdict(plan)}
    if args.cmd == "weak-points":
        return engine.intelligence.analyze_weak_points(sessions, level, now=now)
    if args.cmd == "substitutes":
        return engine.intelligence.find_exercise_substitutions(
            args.exercise,
            equipment=[EquipmentCategory(e) for e in args.equipment],
            avoid_muscles=[MuscleGroup(m) for m in args.avoid],
            difficulty=Difficulty(args.difficulty) if args.difficulty else None,
        )
    if args.cmd == "variations":
        return engine.intelligence.suggest_exercise_variations(sessions, args.weeks, now=now)
    raise ValueError(f"unknown command {args.cmd}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Training analysis reports")
    parser.add_argument("--version", action="version", version=APP_VERSION)
    sub = parser.add_subparsers(dest="cmd", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--data", required=True, help="JSON export with sessions and daily_logs")
    common.add_argument("--settings", default="settings.yaml")
    common.add_argument(
        "--experience",
        choices=[e.value for e in ExperienceLevel],
        default=ExperienceLevel.INTERMEDIATE.value,
    )
    common.add_argument("--now", help="ISO timestamp used as the current time")
    common.add_argument("--verbose", action="store_true")

    plateau = sub.add_parser("plateau", parents=[common])
    plateau.add_argument("--exercise", required=True)
    plateau.add_argument("--weeks", type=int, default=4)

    landmarks = sub.add_parser("landmarks", parents=[common])
    landmarks.add_argument("--muscle", choices=[m.value for m in MuscleGroup])
    landmarks.add_argument(
        "--phase",
        choices=[p.value for p in TrainingPhase],
        default=TrainingPhase.ACCUMULATION.value,
    )

    recovery = sub.add_parser("recovery", parents=[common])
    recovery.add_argument("--last-rest", dest="last_rest")
    recovery.add_argument("--last-deload", dest="last_deload")

    periodization = sub.add_parser("periodization", parents=[common])
    periodization.add_argument("--last-deload", dest="last_deload")
    periodization.add_argument("--peak-start", dest="peak_start")

    sub.add_parser("weak-points", parents=[common])

    subs = sub.add_parser("substitutes", parents=[common])
    subs.add_argument("--exercise", required=True)
    subs.add_argument(
        "--equipment", action="append", default=[], choices=[e.value for e in EquipmentCategory]
    )
    subs.add_argument("--avoid", action="append", default=[], choices=[m.value for m in MuscleGroup])
    subs.add_argument("--difficulty", choices=[d.value for d in Difficulty])

    variations = sub.add_parser("variations", parents=[common])
    variations.add_argument("--weeks", type=int)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else "WARNING")

    try:
        sessions, logs = load_export(args.data)
    except (OSError, ValueError, KeyError) as e:
        logger.warning(f"Could not read {args.data}: {e}")
        return 1
    try:
        settings = YamlConfig(args.settings).settings()
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.warning(f"Invalid settings in {args.settings}: {e}")
        return 1
    engine = TrainingEngine(settings=settings)
    print(to_json(run_command(args, engine, sessions, logs)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
