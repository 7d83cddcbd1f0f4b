from __future__ import annotations
import datetime
import math
from typing import List, Mapping, Optional, Sequence

from algorithms.math_tools import MathTools
from models import (
    PRIORITY_ORDER,
    DailyLog,
    ExperienceLevel,
    InjuryRiskAssessment,
    InjuryRiskAssessor,
    Priority,
    QuickRecoveryStatus,
    RecoveryAssessment,
    RecoveryRecommendation,
    RecoveryType,
    RiskLevel,
    SleepAnalysis,
    WorkoutSession,
)
from periodization_service import PeriodizationService, consult_assessor
from settings_schema import EngineSettings
from stats_service import ONE_DAY, completed_sessions, resolve_now

REST_FREQUENCY = {
    ExperienceLevel.BEGINNER: 2,
    ExperienceLevel.INTERMEDIATE: 3,
    ExperienceLevel.ADVANCED: 4,
}

DEFAULT_RPE = 7.0
DEFAULT_SLEEP_QUALITY = 7.0


class RecoveryService:
    """Fuse injury risk, sleep, training stress and rest into one readiness score."""

    def __init__(
        self,
        settings: EngineSettings | None = None,
        injury_assessor: InjuryRiskAssessor | None = None,
        periodization: PeriodizationService | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.injury_assessor = injury_assessor
        self.periodization = periodization or PeriodizationService(
            self.settings, injury_assessor
        )

    def analyze_sleep(
        self,
        daily_logs: Mapping[datetime.date, DailyLog],
        now: Optional[datetime.datetime] = None,
    ) -> SleepAnalysis:
        """Average sleep and accumulated debt over the trailing window."""
        now = resolve_now(now)
        days = self.settings.sleep_window_days
        optimal = self.settings.optimal_sleep_hours
        cutoff = now - days * ONE_DAY
        recent = [
            log
            for log in daily_logs.values()
            if log.sleep_hours is not None
            and datetime.datetime.combine(log.date, datetime.time()) >= cutoff
        ]
        recent.sort(key=lambda log: log.date, reverse=True)
        recent = recent[:days]
        if not recent:
            return SleepAnalysis(
                avg_sleep=7.0,
                sleep_debt=0.0,
                avg_quality=DEFAULT_SLEEP_QUALITY,
                optimal_sleep=optimal,
            )
        avg_sleep = MathTools.mean(log.sleep_hours for log in recent)
        debt = (optimal - avg_sleep) * len(recent)
        quality = MathTools.mean(
            (log.mood for log in recent if log.mood is not None),
            default=DEFAULT_SLEEP_QUALITY,
        )
        return SleepAnalysis(
            avg_sleep=avg_sleep,
            sleep_debt=max(0.0, debt),
            avg_quality=quality,
            optimal_sleep=optimal,
        )

    def training_stress(
        self,
        sessions: Sequence[WorkoutSession],
        now: Optional[datetime.datetime] = None,
    ) -> float:
        """Return a 0-100 index blending frequency, tonnage and exertion."""
        now = resolve_now(now)
        days = self.settings.stress_window_days
        recent = completed_sessions(sessions, now - days * ONE_DAY)
        if not recent:
            return 0.0
        tonnage = sum(s.working_tonnage() for s in recent)
        rpes = [
            st.rpe
            for s in recent
            for log in s.logs
            for st in log.sets
            if st.completed and st.rpe
        ]
        avg_rpe = MathTools.mean(rpes, default=DEFAULT_RPE)
        frequency_score = len(recent) / days * 20
        volume_score = min(self.settings.tonnage_ceiling_points, tonnage / 1000)
        intensity_score = avg_rpe / 10 * 40
        return MathTools.clamp(frequency_score + volume_score + intensity_score, 0.0, 100.0)

    @staticmethod
    def recovery_score(
        risk: InjuryRiskAssessment | None,
        sleep: SleepAnalysis,
        stress: float,
        days_since_rest: int,
    ) -> int:
        score = 100.0
        if risk is not None:
            score -= risk.risk_score * 0.4
        score -= min(20.0, sleep.sleep_debt * 2)
        score -= stress * 0.3
        if days_since_rest >= 7:
            score -= min(10, (days_since_rest - 6) * 2)
        return int(MathTools.clamp(MathTools.round_half_up(score), 0, 100))

    @staticmethod
    def rest_frequency(experience_level: ExperienceLevel, stress: float) -> int:
        """Training days between full rest days."""
        base = REST_FREQUENCY.get(experience_level, 3)
        if stress > 80:
            return max(1, base - 1)
        return base

    def get_recovery_assessment(
        self,
        sessions: Sequence[WorkoutSession],
        daily_logs: Mapping[datetime.date, DailyLog],
        experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE,
        last_rest_day: Optional[datetime.datetime] = None,
        last_deload_date: Optional[datetime.datetime] = None,
        now: Optional[datetime.datetime] = None,
    ) -> RecoveryAssessment:
        now = resolve_now(now)
        risk = consult_assessor(self.injury_assessor, sessions, daily_logs, self.settings)
        sleep = self.analyze_sleep(daily_logs, now)
        stress = self.training_stress(sessions, now)
        periodization = self.periodization.get_periodization_status(
            sessions,
            daily_logs,
            experience_level,
            last_deload_date=last_deload_date,
            now=now,
        )
        if last_rest_day is not None:
            days_since_rest = (now - last_rest_day) // ONE_DAY
        else:
            days_since_rest = self.settings.default_days_since_rest

        score = self.recovery_score(risk, sleep, stress, days_since_rest)
        ready = score >= self.settings.ready_to_train_score and (
            risk is None or risk.overall_risk != RiskLevel.CRITICAL
        )
        recs = self._recommendations(
            risk, sleep, stress, periodization.days_until_deload, days_since_rest
        )

        days_until_rest = max(
            0, self.rest_frequency(experience_level, stress) - days_since_rest
        )
        return RecoveryAssessment(
            overall_recovery_score=score,
            ready_to_train=ready,
            recommendations=tuple(recs),
            next_rest_day=now + days_until_rest * ONE_DAY,
            days_until_rest_day=days_until_rest,
            sleep_debt=sleep.sleep_debt,
            training_stress=stress,
        )

    def _recommendations(
        self,
        risk: InjuryRiskAssessment | None,
        sleep: SleepAnalysis,
        stress: float,
        days_until_deload: int,
        days_since_rest: int,
    ) -> List[RecoveryRecommendation]:
        needs_deload = bool(risk and risk.needs_deload)
        recs: List[RecoveryRecommendation] = []

        if needs_deload:
            recs.append(
                RecoveryRecommendation(
                    type=RecoveryType.DELOAD,
                    priority=Priority.CRITICAL,
                    title="Immediate Deload Required",
                    description=(
                        f"Critical injury risk detected ({risk.risk_score:g}/100). "
                        "Take a full deload week to prevent injury."
                    ),
                    action_items=(
                        "Reduce volume by 50% for all exercises",
                        "Lower intensity to 70% of normal weights",
                        "Focus on perfect form and technique",
                        "Add extra mobility and stretching work",
                        "Get 8+ hours of sleep per night",
                    ),
                    days_until_action=0,
                    duration="1 week",
                )
            )

        if risk is not None and risk.overall_risk == RiskLevel.HIGH and not needs_deload:
            recs.append(
                RecoveryRecommendation(
                    type=RecoveryType.REST_DAY,
                    priority=Priority.HIGH,
                    title="Add Extra Rest Day This Week",
                    description=(
                        f"Elevated injury risk ({risk.risk_score:g}/100). Schedule an "
                        "additional rest day within 2 days."
                    ),
                    action_items=(
                        "Take a complete rest day within next 48 hours",
                        "Focus on sleep and nutrition",
                        "Light walking or yoga only",
                        "Monitor fatigue levels closely",
                    ),
                    days_until_action=2,
                )
            )

        if sleep.sleep_debt > 5:
            recs.append(
                RecoveryRecommendation(
                    type=RecoveryType.SLEEP_FOCUS,
                    priority=Priority.HIGH,
                    title="Critical Sleep Debt Detected",
                    description=(
                        f"You're {sleep.sleep_debt:.1f} hours behind on sleep this week. "
                        "This impacts recovery by 7-11%."
                    ),
                    action_items=(
                        f"Aim for {math.ceil(sleep.optimal_sleep + 1)} hours tonight to catch up",
                        "Go to bed 30-60 minutes earlier",
                        "Limit caffeine after 2 PM",
                        "Reduce screen time 1 hour before bed",
                        "Keep bedroom cool (65-68°F)",
                    ),
                    duration="3-5 days",
                )
            )
        elif sleep.sleep_debt > 2:
            recs.append(
                RecoveryRecommendation(
                    type=RecoveryType.SLEEP_FOCUS,
                    priority=Priority.MEDIUM,
                    title="Moderate Sleep Debt",
                    description=(
                        f"{sleep.sleep_debt:.1f} hours of sleep debt accumulated. "
                        "Prioritize recovery tonight."
                    ),
                    action_items=(
                        f"Target {math.ceil(sleep.optimal_sleep)} hours of sleep",
                        "Consider a 20-minute nap today",
                        "Avoid late evening workouts",
                    ),
                    duration="2-3 days",
                )
            )

        if stress > 75 and not needs_deload:
            recs.append(
                RecoveryRecommendation(
                    type=RecoveryType.ACTIVE_RECOVERY,
                    priority=Priority.HIGH,
                    title="High Training Stress - Active Recovery Needed",
                    description=(
                        f"Training stress at {stress:.0f}/100. Schedule an active "
                        "recovery session."
                    ),
                    action_items=(
                        "20-30 minute light cardio (walking, cycling)",
                        "Full body mobility routine",
                        "Foam rolling for tight areas",
                        "Light stretching (10-15 minutes)",
                        "Sauna or hot bath if available",
                    ),
                    days_until_action=1,
                    duration="30-45 minutes",
                )
            )

        if 0 < days_until_deload <= 7:
            recs.append(
                RecoveryRecommendation(
                    type=RecoveryType.DELOAD,
                    priority=Priority.MEDIUM,
                    title="Deload Week Approaching",
                    description=(
                        f"Scheduled deload in {days_until_deload} days. Start preparing."
                    ),
                    action_items=(
                        "Finish any planned PRs this week",
                        "Plan deload week workouts (50% volume)",
                        "Stock up on recovery foods",
                        "Schedule extra sleep during deload week",
                    ),
                    days_until_action=days_until_deload,
                )
            )

        if sleep.avg_quality < 6:
            recs.append(
                RecoveryRecommendation(
                    type=RecoveryType.SLEEP_FOCUS,
                    priority=Priority.MEDIUM,
                    title="Sleep Quality Needs Improvement",
                    description=(
                        f"Average sleep quality {sleep.avg_quality:.1f}/10 this week. "
                        "Poor sleep hurts gains."
                    ),
                    action_items=(
                        "Review sleep hygiene checklist",
                        "Ensure room is dark and cool",
                        "Consider magnesium supplement before bed",
                        "Limit alcohol consumption",
                        "Try 10 minutes of meditation before sleep",
                    ),
                )
            )

        if days_since_rest >= 7:
            recs.append(
                RecoveryRecommendation(
                    type=RecoveryType.REST_DAY,
                    priority=Priority.HIGH if days_since_rest >= 10 else Priority.MEDIUM,
                    title=f"{days_since_rest} Days Without Complete Rest",
                    description=(
                        "Extended training without full rest increases injury risk "
                        "and reduces performance."
                    ),
                    action_items=(
                        "Take a complete rest day within 24 hours",
                        "No training, only light movement",
                        "Focus on nutrition and hydration",
                        "Get extra sleep (8+ hours)",
                    ),
                    days_until_action=0,
                )
            )

        if stress > 60 or (risk is not None and risk.risk_score > 50):
            recs.append(
                RecoveryRecommendation(
                    type=RecoveryType.NUTRITION,
                    priority=Priority.LOW,
                    title="Optimize Nutrition for Recovery",
                    description=(
                        "High training stress requires optimal nutrition timing and quality."
                    ),
                    action_items=(
                        "Consume 20-30g protein within 1 hour post-workout",
                        "Aim for 1g protein per lb bodyweight daily",
                        "Eat carbs around training (before/after)",
                        "Stay hydrated (0.5-1oz water per lb bodyweight)",
                        "Consider creatine (5g daily) for recovery",
                    ),
                )
            )

        if not recs:
            recs.append(
                RecoveryRecommendation(
                    type=RecoveryType.MOBILITY,
                    priority=Priority.LOW,
                    title="Add Mobility Work",
                    description=(
                        "Recovery is good! Use this time to improve mobility and "
                        "prevent future injuries."
                    ),
                    action_items=(
                        "10 minutes daily mobility routine",
                        "Focus on hip flexors and thoracic spine",
                        "Add yoga or pilates once per week",
                        "Foam roll after heavy sessions",
                    ),
                )
            )

        # list.sort is stable, so ties keep trigger order
        recs.sort(key=lambda r: PRIORITY_ORDER[r.priority])
        return recs

    def get_quick_recovery_status(
        self,
        sessions: Sequence[WorkoutSession],
        daily_logs: Mapping[datetime.date, DailyLog],
        experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE,
        now: Optional[datetime.datetime] = None,
    ) -> QuickRecoveryStatus:
        assessment = self.get_recovery_assessment(
            sessions, daily_logs, experience_level, now=now
        )
        score = assessment.overall_recovery_score
        if score >= 85:
            status = "excellent"
        elif score >= 70:
            status = "good"
        elif score >= 50:
            status = "fair"
        else:
            status = "poor"
        top = (
            assessment.recommendations[0].title
            if assessment.recommendations
            else "Keep up the good work!"
        )
        return QuickRecoveryStatus(score=score, status=status, top_recommendation=top)
