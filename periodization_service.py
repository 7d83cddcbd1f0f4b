from __future__ import annotations
import datetime
from typing import Mapping, Optional, Sequence
from loguru import logger

from algorithms.math_tools import MathTools
from models import (
    ChangeDirection,
    DailyLog,
    DeloadDecision,
    ExperienceLevel,
    InjuryRiskAssessment,
    InjuryRiskAssessor,
    MesocyclePlan,
    PeriodizationStatus,
    Priority,
    TrainingPhase,
    VolumeTargets,
    WorkoutSession,
)
from settings_schema import EngineSettings
from stats_service import ONE_DAY, ONE_WEEK, completed_sessions, resolve_now, weeks_between

DELOAD_FREQUENCY = {
    ExperienceLevel.BEGINNER: 8,
    ExperienceLevel.INTERMEDIATE: 5,
    ExperienceLevel.ADVANCED: 4,
}

BLOCK_WEEKS = {
    ExperienceLevel.BEGINNER: 6,
    ExperienceLevel.INTERMEDIATE: 4,
    ExperienceLevel.ADVANCED: 3,
}

NEXT_PHASE = {
    TrainingPhase.ACCUMULATION: TrainingPhase.INTENSIFICATION,
    TrainingPhase.INTENSIFICATION: TrainingPhase.DELOAD,
    TrainingPhase.DELOAD: TrainingPhase.ACCUMULATION,
    TrainingPhase.PEAKING: TrainingPhase.DELOAD,
}

PHASE_VOLUME_LANDMARKS = {
    ExperienceLevel.BEGINNER: (8, 16),
    ExperienceLevel.INTERMEDIATE: (10, 20),
    ExperienceLevel.ADVANCED: (12, 24),
}

# volume, intensity, focus, volume multiplier, intensity multiplier, deload
MESOCYCLE_TABLE = {
    TrainingPhase.ACCUMULATION: (
        ChangeDirection.INCREASE,
        ChangeDirection.MAINTAIN,
        "Build work capacity and hypertrophy through progressive volume increases",
        1.0,
        0.75,
        False,
    ),
    TrainingPhase.INTENSIFICATION: (
        ChangeDirection.DECREASE,
        ChangeDirection.INCREASE,
        "Push strength PRs with heavy weights and reduced volume",
        0.7,
        1.0,
        False,
    ),
    TrainingPhase.DELOAD: (
        ChangeDirection.DECREASE,
        ChangeDirection.DECREASE,
        "Active recovery - maintain technique while reducing fatigue",
        0.5,
        0.7,
        True,
    ),
    TrainingPhase.PEAKING: (
        ChangeDirection.DECREASE,
        ChangeDirection.INCREASE,
        "Competition prep - maximize strength expression",
        0.5,
        1.1,
        False,
    ),
}


def consult_assessor(
    assessor: InjuryRiskAssessor | None,
    sessions: Sequence[WorkoutSession],
    daily_logs: Mapping[datetime.date, DailyLog],
    settings: EngineSettings,
) -> InjuryRiskAssessment | None:
    """Ask the injury-risk assessor for a verdict, or return ``None``.

    ``None`` means the risk is unknown and must not penalise anything.
    """
    if assessor is None:
        logger.debug("No injury-risk assessor configured")
        return None
    if len(sessions) < settings.min_sessions_for_injury_risk:
        logger.debug(f"Only {len(sessions)} sessions, injury risk not assessed")
        return None
    return assessor(sessions, daily_logs, settings.injury_lookback_weeks)


class PeriodizationService:
    """Infer the current training phase and plan the next block."""

    def __init__(
        self,
        settings: EngineSettings | None = None,
        injury_assessor: InjuryRiskAssessor | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.injury_assessor = injury_assessor

    @staticmethod
    def deload_frequency(experience_level: ExperienceLevel) -> int:
        """Weeks of hard training between deloads."""
        return DELOAD_FREQUENCY.get(experience_level, 5)

    @staticmethod
    def phase_duration(phase: TrainingPhase, experience_level: ExperienceLevel) -> int:
        if phase == TrainingPhase.DELOAD:
            return 1
        if phase == TrainingPhase.PEAKING:
            return 2
        return BLOCK_WEEKS.get(experience_level, 4)

    @staticmethod
    def next_phase(phase: TrainingPhase) -> TrainingPhase:
        return NEXT_PHASE[phase]

    def weeks_since_deload(
        self,
        last_deload_date: Optional[datetime.datetime],
        now: datetime.datetime,
    ) -> int:
        if last_deload_date is None:
            return self.settings.default_weeks_since_deload
        return weeks_between(last_deload_date, now)

    def infer_phase(
        self,
        sessions: Sequence[WorkoutSession],
        weeks_since_deload: int,
        now: Optional[datetime.datetime] = None,
    ) -> tuple[TrainingPhase, int]:
        """Guess ``(phase, weeks_in_phase)`` from four trailing weeks of tonnage."""
        now = resolve_now(now)
        done = completed_sessions(sessions)
        if len(done) < 4:
            return TrainingPhase.ACCUMULATION, 1
        window_start = now - 4 * ONE_WEEK
        recent = [s for s in done if s.start_time >= window_start]
        if not recent:
            return TrainingPhase.ACCUMULATION, 1

        weekly: list[float] = []
        for week in range(4):
            start = now - (4 - week) * ONE_WEEK
            end = start + ONE_WEEK
            weekly.append(
                sum(s.working_tonnage() for s in recent if start <= s.start_time < end)
            )
        average = MathTools.mean(weekly)
        first, last = weekly[0], weekly[-1]

        if last > average * 1.1 and last > first:
            return TrainingPhase.ACCUMULATION, min(weeks_since_deload, 4)
        if last < average * 0.8:
            if last < average * 0.6:
                return TrainingPhase.DELOAD, 1
            return TrainingPhase.INTENSIFICATION, min(weeks_since_deload, 3)
        return TrainingPhase.ACCUMULATION, min(weeks_since_deload, 3)

    def phase_recommendation(
        self,
        phase: TrainingPhase,
        weeks_into_phase: int,
        injury_risk_score: float,
        experience_level: ExperienceLevel,
    ) -> str:
        remaining = self.phase_duration(phase, experience_level) - weeks_into_phase
        if phase == TrainingPhase.ACCUMULATION:
            if weeks_into_phase <= 1:
                return (
                    "Starting accumulation phase - focus on progressive volume increases. "
                    "Add 1-2 sets per week to major lifts."
                )
            if remaining <= 1:
                return (
                    "Final week of accumulation - maintain current volume. "
                    "Next: intensification phase with heavy weights."
                )
            return (
                "Accumulation phase - continue building volume. "
                f"{remaining} weeks until intensification phase."
            )
        if phase == TrainingPhase.INTENSIFICATION:
            if weeks_into_phase <= 1:
                return (
                    "Starting intensification - reduce volume 20-30%, increase weight "
                    "to 85-90% 1RM. Focus on PRs."
                )
            if injury_risk_score >= 60:
                return "High fatigue detected - consider moving to deload early to prevent injury."
            if remaining <= 1:
                return (
                    "Final week of intensification - push for PRs this week, "
                    "then deload for recovery."
                )
            return (
                "Intensification phase - heavy weights, low volume. "
                f"{remaining} weeks until deload."
            )
        if phase == TrainingPhase.DELOAD:
            return (
                "Deload week - reduce volume by 50% and intensity to 70%. Focus on "
                "technique and recovery. Return to accumulation next week."
            )
        if weeks_into_phase <= 1:
            return "Peaking phase - minimal volume, max intensity. Test 1RMs or compete this week."
        return "Final peaking week - attempt PRs and showcase strength. Deload next week."

    def get_periodization_status(
        self,
        sessions: Sequence[WorkoutSession],
        daily_logs: Mapping[datetime.date, DailyLog],
        experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE,
        last_deload_date: Optional[datetime.datetime] = None,
        peak_start: Optional[datetime.datetime] = None,
        now: Optional[datetime.datetime] = None,
    ) -> PeriodizationStatus:
        """Return the inferred phase, the deload schedule and a recommendation.

        The phase is recomputed on every call. A forced deload (assessor
        verdict or deload overdue) wins over everything else, then an active
        ``peak_start`` directive, then inference from recent tonnage.
        """
        now = resolve_now(now)
        wsd = self.weeks_since_deload(last_deload_date, now)
        risk = consult_assessor(self.injury_assessor, sessions, daily_logs, self.settings)
        frequency = self.deload_frequency(experience_level)
        days_until_deload = max(0, (frequency - wsd) * 7)
        risk_deload = bool(risk and risk.needs_deload)
        immediate_deload = risk_deload or wsd >= frequency

        peak_weeks = None
        if peak_start is not None and peak_start <= now:
            elapsed = weeks_between(peak_start, now)
            if elapsed < self.phase_duration(TrainingPhase.PEAKING, experience_level):
                peak_weeks = elapsed + 1

        if immediate_deload:
            phase, weeks_into = TrainingPhase.DELOAD, 0
            following = TrainingPhase.ACCUMULATION
        elif peak_weeks is not None:
            phase, weeks_into = TrainingPhase.PEAKING, peak_weeks
            following = self.next_phase(phase)
        else:
            phase, weeks_into = self.infer_phase(sessions, wsd, now)
            following = self.next_phase(phase)

        duration = self.phase_duration(phase, experience_level)
        should_transition = weeks_into >= duration or immediate_deload
        reasoning = None
        if immediate_deload:
            if risk_deload:
                reasoning = "High injury risk detected - immediate deload recommended"
            else:
                reasoning = f"{wsd} weeks since last deload - recovery week needed"
        elif should_transition:
            reasoning = (
                f"Completed {weeks_into} weeks of {phase.value} phase - "
                f"time to transition to {following.value}"
            )

        return PeriodizationStatus(
            current_phase=phase,
            weeks_into_phase=weeks_into,
            weeks_remaining_in_phase=max(0, duration - weeks_into),
            next_phase=following,
            next_deload_date=now + days_until_deload * ONE_DAY,
            days_until_deload=days_until_deload,
            phase_recommendation=self.phase_recommendation(
                phase, weeks_into, risk.risk_score if risk else 0.0, experience_level
            ),
            should_transition_phase=should_transition,
            transition_reasoning=reasoning,
        )

    def generate_mesocycle_plan(
        self,
        status: PeriodizationStatus,
        experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE,
        now: Optional[datetime.datetime] = None,
    ) -> MesocyclePlan:
        now = resolve_now(now)
        phase = status.next_phase if status.should_transition_phase else status.current_phase
        weeks = self.phase_duration(phase, experience_level)
        volume_dir, intensity_dir, focus, volume_mult, intensity_mult, deload = MESOCYCLE_TABLE[phase]
        return MesocyclePlan(
            start_date=now,
            end_date=now + weeks * ONE_WEEK,
            phase=phase,
            duration_weeks=weeks,
            volume_progression=volume_dir,
            intensity_progression=intensity_dir,
            focus=focus,
            volume_multiplier=volume_mult,
            intensity_multiplier=intensity_mult,
            deload_scheduled=deload,
        )

    @staticmethod
    def get_volume_targets(
        phase: TrainingPhase, experience_level: ExperienceLevel
    ) -> VolumeTargets:
        """Weekly set range per muscle group for ``phase``."""
        mev, mav = PHASE_VOLUME_LANDMARKS.get(
            experience_level, PHASE_VOLUME_LANDMARKS[ExperienceLevel.INTERMEDIATE]
        )
        rhu = MathTools.round_half_up
        if phase == TrainingPhase.ACCUMULATION:
            return VolumeTargets(min=mev, max=rhu(mav * 0.9))
        if phase == TrainingPhase.INTENSIFICATION:
            return VolumeTargets(min=rhu(mev * 0.8), max=rhu(mev * 1.2))
        if phase == TrainingPhase.DELOAD:
            return VolumeTargets(min=rhu(mev * 0.4), max=rhu(mev * 0.6))
        return VolumeTargets(min=rhu(mev * 0.3), max=rhu(mev * 0.5))

    def should_enter_deload(
        self,
        sessions: Sequence[WorkoutSession],
        daily_logs: Mapping[datetime.date, DailyLog],
        experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE,
        last_deload_date: Optional[datetime.datetime] = None,
        now: Optional[datetime.datetime] = None,
    ) -> DeloadDecision:
        now = resolve_now(now)
        risk = consult_assessor(self.injury_assessor, sessions, daily_logs, self.settings)
        if risk is not None and risk.needs_deload:
            return DeloadDecision(
                should_deload=True,
                reasoning=(
                    f"Critical injury risk detected ({risk.risk_score:g}/100). "
                    "Immediate deload required."
                ),
                urgency=Priority.CRITICAL,
            )

        wsd = self.weeks_since_deload(last_deload_date, now)
        frequency = self.deload_frequency(experience_level)
        if wsd >= frequency + 1:
            return DeloadDecision(
                should_deload=True,
                reasoning=(
                    f"{wsd} weeks since last deload (recommended: {frequency} weeks). "
                    "Deload needed for recovery."
                ),
                urgency=Priority.HIGH,
            )
        if risk is not None and risk.risk_score >= 50:
            return DeloadDecision(
                should_deload=True,
                reasoning=(
                    f"Elevated injury risk ({risk.risk_score:g}/100). "
                    "Preventive deload recommended."
                ),
                urgency=Priority.MEDIUM,
            )
        if wsd >= frequency - 1:
            return DeloadDecision(
                should_deload=False,
                reasoning=(
                    f"Deload recommended in {(frequency - wsd) * 7} days. "
                    "Monitor fatigue closely."
                ),
                urgency=Priority.LOW,
            )
        return DeloadDecision(
            should_deload=False,
            reasoning=(
                f"No deload needed. {frequency - wsd} weeks until next scheduled deload."
            ),
            urgency=Priority.LOW,
        )
