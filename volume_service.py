from __future__ import annotations
import datetime
from typing import List, Optional, Sequence
from loguru import logger

from algorithms.math_tools import MathTools
from exercise_library import DEFAULT_LIBRARY, ExerciseLibrary
from models import (
    TRAINABLE_GROUPS,
    ChangeDirection,
    ExperienceLevel,
    MuscleGroup,
    Severity,
    TrainingPhase,
    VolumeCorrelation,
    VolumeImbalance,
    VolumeImbalanceReport,
    VolumeLandmarks,
    VolumeRecommendation,
    VolumeStatus,
    WorkoutSession,
)
from settings_schema import EngineSettings
from stats_service import StatisticsService

# Research defaults in sets per week.
DEFAULT_LANDMARKS: dict[ExperienceLevel, dict[str, int]] = {
    ExperienceLevel.BEGINNER: {"mv": 4, "mev": 8, "mav": 16, "mrv": 20},
    ExperienceLevel.INTERMEDIATE: {"mv": 6, "mev": 10, "mav": 20, "mrv": 25},
    ExperienceLevel.ADVANCED: {"mv": 8, "mev": 12, "mav": 24, "mrv": 30},
}

MUSCLE_MULTIPLIERS: dict[MuscleGroup, float] = {
    MuscleGroup.CHEST: 1.0,
    MuscleGroup.BACK: 1.1,
    MuscleGroup.LEGS: 1.0,
    MuscleGroup.SHOULDERS: 0.9,
    MuscleGroup.ARMS: 0.8,
    MuscleGroup.CORE: 1.2,
    MuscleGroup.CARDIO: 0.5,
}

MEV_FRACTION_OF_MAV = 0.55
MV_FRACTION_OF_MEV = 0.33
MRV_CAP_OF_MAV = 1.2
APPROACHING_MRV = 0.9


def volume_status(current: float, mev: float, mrv: float) -> VolumeStatus:
    if current < mev:
        return VolumeStatus.UNDERTRAINED
    if current >= mrv:
        return VolumeStatus.OVERTRAINED
    if current >= mrv * APPROACHING_MRV:
        return VolumeStatus.APPROACHING_MRV
    return VolumeStatus.OPTIMAL


class VolumeService:
    """Calibrate MV/MEV/MAV/MRV landmarks and turn them into set targets."""

    def __init__(
        self,
        library: ExerciseLibrary | None = None,
        settings: EngineSettings | None = None,
        stats: StatisticsService | None = None,
    ) -> None:
        self.library = library or DEFAULT_LIBRARY
        self.settings = settings or EngineSettings()
        self.stats = stats or StatisticsService(self.library, self.settings)

    @staticmethod
    def default_landmarks(
        muscle_group: MuscleGroup, experience_level: ExperienceLevel
    ) -> tuple[int, int, int, int]:
        """Return ``(mv, mev, mav, mrv)`` from the research table."""
        base = DEFAULT_LANDMARKS.get(
            experience_level, DEFAULT_LANDMARKS[ExperienceLevel.INTERMEDIATE]
        )
        mult = MUSCLE_MULTIPLIERS.get(muscle_group, 1.0)
        return (
            MathTools.round_half_up(base["mv"] * mult),
            MathTools.round_half_up(base["mev"] * mult),
            MathTools.round_half_up(base["mav"] * mult),
            MathTools.round_half_up(base["mrv"] * mult),
        )

    def current_volume(
        self,
        muscle_group: MuscleGroup,
        sessions: Sequence[WorkoutSession],
        now: Optional[datetime.datetime] = None,
    ) -> float:
        """Sets credited in the latest trained week of the recent window."""
        series = self.stats.extract_volume_time_series(
            muscle_group, sessions, self.settings.current_volume_weeks, now
        )
        return series[-1].sets if series else 0.0

    def calculate_volume_landmarks(
        self,
        muscle_group: MuscleGroup,
        sessions: Sequence[WorkoutSession],
        experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE,
        now: Optional[datetime.datetime] = None,
    ) -> VolumeLandmarks:
        cfg = self.settings
        current = self.current_volume(muscle_group, sessions, now)
        representative = self.library.representative(muscle_group)
        correlation: VolumeCorrelation | None = None
        if representative is not None:
            correlation = self.stats.correlate_volume_with_performance(
                muscle_group, representative.id, sessions, now
            )

        if correlation is None or not self._has_personal_history(correlation):
            logger.debug(
                f"Using default landmarks for {muscle_group.value}: "
                "not enough weekly history"
            )
            mv, mev, mav, mrv = self.default_landmarks(muscle_group, experience_level)
            return VolumeLandmarks(
                muscle_group=muscle_group,
                mv=mv,
                mev=mev,
                mav=mav,
                mrv=mrv,
                current=current,
                status=volume_status(current, mev, mrv),
                confidence=cfg.default_confidence,
            )

        max_observed = max(v.sets for v in correlation.volume_data)
        mav = MathTools.round_half_up(correlation.optimal_volume)
        mev = MathTools.round_half_up(mav * MEV_FRACTION_OF_MAV)
        mv = MathTools.round_half_up(mev * MV_FRACTION_OF_MEV)
        mrv = min(int(max_observed), MathTools.round_half_up(mav * MRV_CAP_OF_MAV))
        # bucket rounding can place MAV just above the observed maximum
        mrv = max(mrv, mav)
        return VolumeLandmarks(
            muscle_group=muscle_group,
            mv=mv,
            mev=mev,
            mav=mav,
            mrv=mrv,
            current=current,
            status=volume_status(current, mev, mrv),
            confidence=self._landmark_confidence(correlation),
        )

    def _has_personal_history(self, correlation: VolumeCorrelation) -> bool:
        """Enough weeks that actually trained the group, with 1RM samples."""
        trained_weeks = sum(1 for v in correlation.volume_data if v.sets > 0)
        return (
            trained_weeks >= self.settings.personalized_min_weeks
            and len(correlation.performance_data) >= 2
        )

    @staticmethod
    def _landmark_confidence(correlation: VolumeCorrelation) -> float:
        score = abs(correlation.correlation) * 40
        score += min(1.0, len(correlation.volume_data) / 12) * 30
        score += min(1.0, len(correlation.performance_data) / 20) * 30
        return MathTools.clamp(score, 0.0, 100.0) / 100

    def get_volume_recommendation(
        self,
        muscle_group: MuscleGroup,
        sessions: Sequence[WorkoutSession],
        experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE,
        phase: TrainingPhase = TrainingPhase.ACCUMULATION,
        now: Optional[datetime.datetime] = None,
    ) -> VolumeRecommendation:
        """Pick next week's set target for ``muscle_group``.

        The training phase wins over landmark advice: in a deload the target
        is half of MEV even when the group is undertrained.
        """
        landmarks = self.calculate_volume_landmarks(
            muscle_group, sessions, experience_level, now
        )
        current, mev, mav, mrv = landmarks.current, landmarks.mev, landmarks.mav, landmarks.mrv
        status = landmarks.status
        deload_target = MathTools.round_half_up(mev * 0.5)
        phase_multiplier = {
            TrainingPhase.ACCUMULATION: 1.0,
            TrainingPhase.INTENSIFICATION: 0.6,
            TrainingPhase.DELOAD: 0.5,
            TrainingPhase.PEAKING: 0.5,
        }[phase]
        phase_target = MathTools.round_half_up(mav * phase_multiplier)

        recommended: float = current
        direction = ChangeDirection.MAINTAIN
        if status == VolumeStatus.UNDERTRAINED:
            if phase == TrainingPhase.DELOAD:
                recommended = deload_target
                reasoning = "Deload week - maintain reduced volume even though below normal MEV."
            else:
                recommended = min(mev, phase_target)
                direction = ChangeDirection.INCREASE
                reasoning = (
                    f"Currently below MEV ({current:g}/{mev} sets). Increase to "
                    f"{recommended:g} sets for muscle growth stimulus."
                )
        elif status == VolumeStatus.OPTIMAL:
            if phase == TrainingPhase.ACCUMULATION and current < mav * 0.9:
                recommended = min(current + 2, mav)
                direction = ChangeDirection.INCREASE
                reasoning = (
                    f"Accumulation phase - gradually increase toward MAV ({mav} sets). "
                    f"Currently at {current:g} sets."
                )
            elif phase == TrainingPhase.INTENSIFICATION:
                recommended = MathTools.round_half_up(mev * 0.8)
                direction = ChangeDirection.DECREASE
                reasoning = (
                    f"Intensification phase - reduce volume to {recommended:g} sets "
                    "to recover while pushing intensity."
                )
            elif phase == TrainingPhase.DELOAD:
                recommended = deload_target
                direction = ChangeDirection.DECREASE
                reasoning = f"Deload week - reduce to {recommended:g} sets for active recovery."
            else:
                reasoning = f"Volume optimal ({current:g} sets). Maintain current approach."
        elif status == VolumeStatus.APPROACHING_MRV:
            recommended = (
                deload_target
                if phase == TrainingPhase.DELOAD
                else MathTools.round_half_up(mav * 0.9)
            )
            direction = ChangeDirection.DECREASE
            reasoning = (
                f"Approaching MRV ({current:g}/{mrv} sets). Reduce to {recommended:g} "
                "sets to prevent overtraining."
            )
        else:
            recommended = deload_target if phase == TrainingPhase.DELOAD else mav
            direction = ChangeDirection.DECREASE
            reasoning = (
                f"Volume exceeds MRV ({current:g}/{mrv} sets). Reduce to "
                f"{recommended:g} sets. Consider deload week."
            )

        return VolumeRecommendation(
            muscle_group=muscle_group,
            current_volume=current,
            recommended_volume=recommended,
            change_direction=direction,
            change_magnitude=abs(recommended - current),
            reasoning=reasoning,
            landmarks=landmarks,
        )

    def get_all_volume_recommendations(
        self,
        sessions: Sequence[WorkoutSession],
        experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE,
        phase: TrainingPhase = TrainingPhase.ACCUMULATION,
        now: Optional[datetime.datetime] = None,
    ) -> List[VolumeRecommendation]:
        return [
            self.get_volume_recommendation(mg, sessions, experience_level, phase, now)
            for mg in TRAINABLE_GROUPS
        ]

    def detect_volume_imbalances(
        self,
        sessions: Sequence[WorkoutSession],
        experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE,
        now: Optional[datetime.datetime] = None,
    ) -> VolumeImbalanceReport:
        """Flag groups trained past MRV or below MEV and push-heavy splits."""
        recs = self.get_all_volume_recommendations(
            sessions, experience_level, TrainingPhase.ACCUMULATION, now
        )
        imbalances: List[VolumeImbalance] = []
        advice: List[str] = []

        overtrained = [r for r in recs if r.landmarks.status == VolumeStatus.OVERTRAINED]
        undertrained = [r for r in recs if r.landmarks.status == VolumeStatus.UNDERTRAINED]
        for r in overtrained:
            imbalances.append(
                VolumeImbalance(
                    r.muscle_group,
                    f"Overtraining: {r.current_volume:g} sets (MRV: {r.landmarks.mrv})",
                    Severity.SEVERE,
                )
            )
        for r in undertrained:
            imbalances.append(
                VolumeImbalance(
                    r.muscle_group,
                    f"Undertrained: {r.current_volume:g} sets (MEV: {r.landmarks.mev})",
                    Severity.MODERATE,
                )
            )

        by_group = {r.muscle_group: r.current_volume for r in recs}
        chest = by_group.get(MuscleGroup.CHEST, 0.0)
        back = by_group.get(MuscleGroup.BACK, 0.0)
        if chest > back * self.settings.imbalance_ratio_high:
            imbalances.append(
                VolumeImbalance(
                    MuscleGroup.BACK,
                    f"Push/pull imbalance: Chest {chest:g} sets vs Back {back:g} sets",
                    Severity.MODERATE,
                )
            )
            advice.append("Increase back volume to match chest work (1:1.2 ratio recommended)")

        if overtrained:
            names = ", ".join(r.muscle_group.value for r in overtrained)
            advice.append(f"Reduce volume for: {names}")
            advice.append("Consider immediate deload week to prevent injury")
        if undertrained:
            names = ", ".join(r.muscle_group.value for r in undertrained)
            advice.append(f"Increase volume for: {names}")
        if not advice:
            advice.append("Volume balance looks good across all muscle groups")

        return VolumeImbalanceReport(
            has_imbalance=bool(imbalances),
            imbalances=tuple(imbalances),
            recommendations=tuple(advice),
        )
