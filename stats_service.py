from __future__ import annotations
import datetime
from typing import Dict, Iterable, List, Optional, Sequence
from loguru import logger

from algorithms.math_tools import MathTools
from exercise_library import DEFAULT_LIBRARY, ExerciseLibrary
from models import (
    ExerciseTimeSeries,
    MuscleGroup,
    PerformancePoint,
    PlateauResult,
    TrendResult,
    VolumeCorrelation,
    VolumePoint,
    WorkoutSession,
)
from settings_schema import EngineSettings

ONE_DAY = datetime.timedelta(days=1)
ONE_WEEK = datetime.timedelta(weeks=1)


def resolve_now(now: Optional[datetime.datetime]) -> datetime.datetime:
    return now if now is not None else datetime.datetime.now()


def week_start(moment: datetime.datetime) -> datetime.datetime:
    """Return Monday 00:00 of the week containing ``moment``."""
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - datetime.timedelta(days=moment.weekday())


def weeks_between(earlier: datetime.datetime, later: datetime.datetime) -> int:
    """Whole weeks elapsed from ``earlier`` to ``later`` (floored)."""
    return (later - earlier) // ONE_WEEK


def completed_sessions(
    sessions: Iterable[WorkoutSession], since: Optional[datetime.datetime] = None
) -> List[WorkoutSession]:
    """Completed sessions starting at or after ``since``, oldest first."""
    result = [
        s
        for s in sessions
        if s.is_completed and (since is None or s.start_time >= since)
    ]
    result.sort(key=lambda s: s.start_time)
    return result


class StatisticsService:
    """Build performance time series and analyse their trends."""

    def __init__(
        self,
        library: ExerciseLibrary | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self.library = library or DEFAULT_LIBRARY
        self.settings = settings or EngineSettings()

    # ------------------------------------------------------------------
    # Time series extraction
    # ------------------------------------------------------------------

    def extract_exercise_time_series(
        self,
        exercise_id: str,
        sessions: Sequence[WorkoutSession],
        weeks_back: int = 0,
        now: Optional[datetime.datetime] = None,
    ) -> ExerciseTimeSeries:
        """Return one performance point per session that logged ``exercise_id``.

        Each point is built from the heaviest working set of the session;
        volume sums every working set. ``weeks_back`` of 0 keeps all history.
        """
        since = resolve_now(now) - weeks_back * ONE_WEEK if weeks_back > 0 else None
        points: List[PerformancePoint] = []
        for session in completed_sessions(sessions, since):
            log = session.log_for(exercise_id)
            if log is None:
                continue
            working = log.working_sets
            if not working:
                continue
            top = working[0]
            for s in working[1:]:
                if s.weight > top.weight:
                    top = s
            points.append(
                PerformancePoint(
                    date=session.start_time,
                    weight=top.weight,
                    reps=top.reps,
                    volume=MathTools.volume((s.reps, s.weight) for s in working),
                    estimated_1rm=MathTools.epley_1rm(top.weight, max(top.reps, 0)),
                    rpe=top.rpe,
                    sets=len(working),
                )
            )
        return ExerciseTimeSeries(
            exercise_id=exercise_id,
            exercise_name=self.library.name_of(exercise_id),
            points=tuple(points),
            first_workout=points[0].date if points else None,
            last_workout=points[-1].date if points else None,
        )

    def extract_volume_time_series(
        self,
        muscle_group: MuscleGroup,
        sessions: Sequence[WorkoutSession],
        weeks_back: int = 12,
        now: Optional[datetime.datetime] = None,
    ) -> List[VolumePoint]:
        """Return weekly set credit and tonnage for ``muscle_group``.

        Primary-muscle work counts a full set, secondary-muscle work half a
        set (and half the tonnage).
        """
        since = resolve_now(now) - weeks_back * ONE_WEEK
        weeks: Dict[datetime.datetime, dict] = {}
        for session in completed_sessions(sessions, since):
            bucket = weeks.setdefault(
                week_start(session.start_time),
                {"sets": 0.0, "volume": 0.0, "exercises": []},
            )
            for log in session.logs:
                exercise = self.library.get(log.exercise_id)
                if exercise is None:
                    logger.warning(f"Unknown exercise id {log.exercise_id!r} skipped")
                    continue
                if exercise.muscle_group == muscle_group:
                    credit = 1.0
                elif muscle_group in exercise.secondary_muscles:
                    credit = 0.5
                else:
                    continue
                working = log.working_sets
                bucket["sets"] += len(working) * credit
                bucket["volume"] += sum(s.tonnage * credit for s in working)
                if log.exercise_id not in bucket["exercises"]:
                    bucket["exercises"].append(log.exercise_id)
        return [
            VolumePoint(
                week_start=start,
                sets=data["sets"],
                volume=data["volume"],
                exercises=tuple(data["exercises"]),
            )
            for start, data in sorted(weeks.items())
        ]

    # ------------------------------------------------------------------
    # Trends and correlation
    # ------------------------------------------------------------------

    @staticmethod
    def calculate_trend(points: Sequence[PerformancePoint]) -> TrendResult:
        """Regress estimated 1RM against days since the first point."""
        if len(points) < 2:
            return TrendResult(slope=0.0, slope_per_week=0.0, r2=0.0)
        first = points[0].date
        days = [(p.date - first) / ONE_DAY for p in points]
        rms = [p.estimated_1rm for p in points]
        slope, _intercept, r2 = MathTools.linear_regression(days, rms)
        return TrendResult(slope=slope, slope_per_week=slope * 7, r2=r2)

    @staticmethod
    def calculate_correlation(series_a: Sequence[float], series_b: Sequence[float]) -> float:
        return MathTools.pearson_correlation(series_a, series_b)

    def detect_plateau(
        self,
        series: ExerciseTimeSeries,
        weeks_to_check: int = 4,
        now: Optional[datetime.datetime] = None,
    ) -> PlateauResult:
        """Return whether progress on ``series`` has stalled.

        The trend is measured inside the trailing window while the PR search
        covers the whole series.
        """
        points = series.points
        if len(points) < 2:
            return PlateauResult(
                is_plateaued=False,
                weeks_since_pr=0,
                current_pr=0.0,
                reasoning="Insufficient data to detect plateau.",
            )
        now = resolve_now(now)
        cutoff = now - weeks_to_check * ONE_WEEK
        recent = [p for p in points if p.date >= cutoff]
        current_pr = max(p.estimated_1rm for p in points)
        if len(recent) < 2:
            return PlateauResult(
                is_plateaued=False,
                weeks_since_pr=0,
                current_pr=current_pr,
                reasoning="Not enough recent data to detect plateau.",
            )

        trend = self.calculate_trend(recent)
        weeks_since_pr = self.weeks_since_pr(points, now)
        cfg = self.settings
        slope = trend.slope_per_week
        plateaued = (
            slope < cfg.plateau_slope_per_week
            and weeks_since_pr >= cfg.plateau_min_weeks_since_pr
            and trend.r2 > cfg.plateau_min_r2
        )
        if plateaued:
            reasoning = (
                f"No PR in {weeks_since_pr} weeks. Progress rate {slope:.1f}/week "
                f"(expected >{cfg.plateau_slope_per_week}). Consider deload or variation."
            )
        elif slope >= cfg.plateau_slope_per_week:
            reasoning = f"Progressing well at {slope:.1f}/week. Keep current program."
        else:
            reasoning = (
                f"Recent progress slow ({slope:.1f}/week) but need more data to "
                "confirm plateau."
            )
        return PlateauResult(
            is_plateaued=plateaued,
            weeks_since_pr=weeks_since_pr,
            current_pr=current_pr,
            reasoning=reasoning,
        )

    def weeks_since_pr(
        self, points: Sequence[PerformancePoint], now: datetime.datetime
    ) -> int:
        """Weeks since the latest point within tolerance of the all-time PR."""
        if not points:
            return 0
        current_pr = max(p.estimated_1rm for p in points)
        for point in reversed(points):
            if point.estimated_1rm >= current_pr - self.settings.pr_tolerance:
                return weeks_between(point.date, now)
        return 0

    def correlate_volume_with_performance(
        self,
        muscle_group: MuscleGroup,
        exercise_id: str,
        sessions: Sequence[WorkoutSession],
        now: Optional[datetime.datetime] = None,
    ) -> VolumeCorrelation:
        """Relate weekly set volume to the week's average estimated 1RM."""
        weeks = self.settings.correlation_weeks
        volume_data = self.extract_volume_time_series(muscle_group, sessions, weeks, now)
        performance = self.extract_exercise_time_series(exercise_id, sessions, weeks, now)

        aligned_volume: List[float] = []
        aligned_rm: List[float] = []
        for point in volume_data:
            week_end = point.week_start + ONE_WEEK
            in_week = [
                p.estimated_1rm
                for p in performance.points
                if point.week_start <= p.date < week_end
            ]
            if in_week:
                aligned_volume.append(point.sets)
                aligned_rm.append(MathTools.mean(in_week))

        correlation = self.calculate_correlation(aligned_volume, aligned_rm)

        buckets: Dict[int, List[float]] = {}
        for sets, rm in zip(aligned_volume, aligned_rm):
            buckets.setdefault(MathTools.round_half_up(sets / 2) * 2, []).append(rm)
        optimal_volume = 15.0
        best_rm = 0.0
        for bucket, rms in buckets.items():
            avg = MathTools.mean(rms)
            if avg > best_rm:
                best_rm = avg
                optimal_volume = float(bucket)

        return VolumeCorrelation(
            correlation=correlation,
            optimal_volume=optimal_volume,
            volume_data=tuple(volume_data),
            performance_data=performance.points,
        )
