from __future__ import annotations
import datetime
from typing import Collection, Dict, List, Optional, Sequence
from loguru import logger

from algorithms.math_tools import MathTools
from exercise_library import DEFAULT_LIBRARY, ExerciseLibrary
from models import (
    TRAINABLE_GROUPS,
    Difficulty,
    EquipmentCategory,
    ExerciseDefinition,
    ExerciseSubstitution,
    ExerciseUsage,
    ExperienceLevel,
    MuscleGroup,
    Severity,
    StagnantExercise,
    VariationRecommendation,
    WeakPoint,
    WeakPointAnalysis,
    WeakPointType,
    WorkoutSession,
)
from settings_schema import EngineSettings
from stats_service import ONE_WEEK, StatisticsService, completed_sessions, resolve_now, weeks_between
from volume_service import VolumeService

# Coefficient of variation -> balance score.
BALANCE_CURVE = ((0.0, 100.0), (0.3, 90.0), (0.5, 70.0), (0.8, 50.0), (1.3, 0.0))

MUSCLE_WEIGHT = 0.4
PATTERN_WEIGHT = 0.3
EQUIPMENT_WEIGHT = 0.2
DIFFICULTY_WEIGHT = 0.1

RECENT_EXERCISE_WEEKS = 12
MAX_GAP_WEEKS = 4
PLATEAU_TENURE_WEEKS = 4

UPPER_GROUPS = (MuscleGroup.CHEST, MuscleGroup.BACK, MuscleGroup.SHOULDERS, MuscleGroup.ARMS)
LOWER_GROUPS = (MuscleGroup.LEGS, MuscleGroup.CORE)


class IntelligenceService:
    """Find weak points and suggest substitutions or variations."""

    def __init__(
        self,
        library: ExerciseLibrary | None = None,
        settings: EngineSettings | None = None,
        stats: StatisticsService | None = None,
        volume: VolumeService | None = None,
    ) -> None:
        self.library = library or DEFAULT_LIBRARY
        self.settings = settings or EngineSettings()
        self.stats = stats or StatisticsService(self.library, self.settings)
        self.volume = volume or VolumeService(self.library, self.settings, self.stats)

    # ------------------------------------------------------------------
    # Substitutions
    # ------------------------------------------------------------------

    def find_exercise_substitutions(
        self,
        exercise_id: str,
        equipment: Collection[EquipmentCategory] = (),
        avoid_muscles: Collection[MuscleGroup] = (),
        difficulty: Optional[Difficulty] = None,
    ) -> List[ExerciseSubstitution]:
        """Rank library exercises that could replace ``exercise_id``.

        Candidates touching an avoided muscle are dropped. The rest score
        0.4 for the same primary muscle, 0.3 for the same movement pattern,
        0.2 for available equipment (any, when none is given) and 0.1 for
        the preferred difficulty (any, when none is given).
        """
        original = self.library.get(exercise_id)
        if original is None:
            logger.warning(f"Unknown exercise id {exercise_id!r}, no substitutions")
            return []
        avoid = set(avoid_muscles)
        results: List[ExerciseSubstitution] = []
        for candidate in self.library:
            if candidate.id == exercise_id:
                continue
            if candidate.muscle_group in avoid or avoid.intersection(candidate.secondary_muscles):
                continue
            score = 0.0
            muscle_match = candidate.muscle_group == original.muscle_group
            pattern_match = candidate.pattern == original.pattern
            equipment_match = not equipment or candidate.equipment in equipment
            difficulty_match = difficulty is None or candidate.difficulty == difficulty
            if muscle_match:
                score += MUSCLE_WEIGHT
            if pattern_match:
                score += PATTERN_WEIGHT
            if equipment_match:
                score += EQUIPMENT_WEIGHT
            if difficulty_match:
                score += DIFFICULTY_WEIGHT
            score = round(score, 2)
            if score < self.settings.substitution_min_similarity:
                continue

            if muscle_match and pattern_match:
                reason = f"Same muscle group ({candidate.muscle_group.value}) and movement pattern"
            elif muscle_match:
                reason = f"Targets {candidate.muscle_group.value}"
            else:
                reason = f"Similar movement pattern ({candidate.pattern.value})"
            if equipment_match and equipment:
                reason += f" | Uses available {candidate.equipment.value} equipment"

            results.append(
                ExerciseSubstitution(
                    exercise=candidate,
                    similarity=score,
                    reason=reason,
                    equipment_match=equipment_match,
                    muscle_group_match=muscle_match,
                    difficulty_match=difficulty_match,
                )
            )
        results.sort(key=lambda s: s.similarity, reverse=True)
        return results

    def get_quick_substitution(
        self, exercise_id: str, injured_muscle: MuscleGroup
    ) -> Optional[ExerciseDefinition]:
        subs = self.find_exercise_substitutions(exercise_id, avoid_muscles=(injured_muscle,))
        return subs[0].exercise if subs else None

    # ------------------------------------------------------------------
    # History helpers
    # ------------------------------------------------------------------

    def recent_exercises(
        self,
        sessions: Sequence[WorkoutSession],
        weeks_back: int,
        now: Optional[datetime.datetime] = None,
    ) -> List[ExerciseUsage]:
        """Summarise every exercise logged in the trailing ``weeks_back`` weeks."""
        since = resolve_now(now) - weeks_back * ONE_WEEK
        usage: Dict[str, dict] = {}
        for session in completed_sessions(sessions, since):
            seen = {log.exercise_id for log in session.logs}
            for exercise_id in sorted(seen):
                entry = usage.get(exercise_id)
                if entry is None:
                    usage[exercise_id] = {
                        "first": session.start_time,
                        "last": session.start_time,
                        "count": 1,
                    }
                else:
                    entry["first"] = min(entry["first"], session.start_time)
                    entry["last"] = max(entry["last"], session.start_time)
                    entry["count"] += 1
        return [
            ExerciseUsage(
                exercise_id=exercise_id,
                exercise_name=self.library.name_of(exercise_id),
                first_performed=data["first"],
                last_performed=data["last"],
                total_sessions=data["count"],
            )
            for exercise_id, data in usage.items()
        ]

    def find_stagnant_exercises(
        self,
        sessions: Sequence[WorkoutSession],
        weeks_threshold: Optional[int] = None,
        now: Optional[datetime.datetime] = None,
    ) -> List[StagnantExercise]:
        """Exercises logged regularly whose last PR is ``weeks_threshold`` or more weeks old."""
        now = resolve_now(now)
        threshold = weeks_threshold if weeks_threshold is not None else self.settings.stagnation_weeks
        lookback = threshold + 4
        stagnant: List[StagnantExercise] = []
        for usage in self.recent_exercises(sessions, lookback, now):
            if usage.total_sessions < 3:
                continue
            series = self.stats.extract_exercise_time_series(
                usage.exercise_id, sessions, lookback, now
            )
            if len(series.points) < 3:
                continue
            weeks = self.stats.weeks_since_pr(series.points, now)
            if weeks >= threshold:
                stagnant.append(
                    StagnantExercise(usage.exercise_id, usage.exercise_name, weeks)
                )
        stagnant.sort(key=lambda s: s.weeks_since_pr, reverse=True)
        return stagnant

    # ------------------------------------------------------------------
    # Weak points
    # ------------------------------------------------------------------

    @staticmethod
    def balance_score(weekly_sets: Sequence[float]) -> int:
        """Score 0-100 for how evenly sets are spread across groups."""
        if not weekly_sets:
            return 100
        if MathTools.mean(weekly_sets) == 0:
            return 0
        cv = MathTools.coefficient_of_variation(weekly_sets)
        score = max(0.0, MathTools.piecewise_linear(cv, BALANCE_CURVE))
        return MathTools.round_half_up(score)

    def analyze_weak_points(
        self,
        sessions: Sequence[WorkoutSession],
        experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE,
        now: Optional[datetime.datetime] = None,
    ) -> WeakPointAnalysis:
        now = resolve_now(now)
        cfg = self.settings
        weak: List[WeakPoint] = []
        avg_sets: Dict[MuscleGroup, float] = {}
        mevs: Dict[MuscleGroup, int] = {}

        for group in TRAINABLE_GROUPS:
            weekly = self.stats.extract_volume_time_series(
                group, sessions, cfg.current_volume_weeks, now
            )
            sets = MathTools.mean(w.sets for w in weekly)
            avg_sets[group] = sets
            landmarks = self.volume.calculate_volume_landmarks(
                group, sessions, experience_level, now
            )
            mevs[group] = landmarks.mev
            if sets >= landmarks.mev * 0.8:
                continue
            if sets < landmarks.mev * 0.5:
                severity = Severity.SEVERE
            elif sets < landmarks.mev * 0.7:
                severity = Severity.MODERATE
            else:
                severity = Severity.MINOR
            name = group.value.capitalize()
            weak.append(
                WeakPoint(
                    type=WeakPointType.MUSCLE_GROUP,
                    muscle_group=group,
                    severity=severity,
                    description=(
                        f"{name} undertrained - {sets:.0f} sets/week vs MEV of {landmarks.mev}"
                    ),
                    recommendations=(
                        f"Increase {name} volume to {landmarks.mev}-{landmarks.mav} sets/week",
                        f"Add 1-2 more {name} exercises",
                        f"Focus on compound movements for {name}",
                    ),
                    metric=sets,
                )
            )

        chest = avg_sets[MuscleGroup.CHEST]
        back = avg_sets[MuscleGroup.BACK]
        if chest > 0 and back > 0:
            ratio = chest / back
            if ratio > cfg.imbalance_ratio_high:
                weak.append(
                    WeakPoint(
                        type=WeakPointType.STRENGTH_IMBALANCE,
                        severity=Severity.MODERATE if ratio > 1.5 else Severity.MINOR,
                        description=f"Push/pull imbalance - {ratio:.1f}:1 ratio (chest:back)",
                        recommendations=(
                            "Increase back training volume",
                            "Add more horizontal pulls (rows)",
                            "Reduce chest volume or increase back to balance",
                        ),
                        metric=ratio,
                    )
                )
            elif ratio < cfg.imbalance_ratio_low:
                weak.append(
                    WeakPoint(
                        type=WeakPointType.STRENGTH_IMBALANCE,
                        severity=Severity.MODERATE if ratio < 0.5 else Severity.MINOR,
                        description=f"Push/pull imbalance - {ratio:.1f}:1 ratio (chest:back)",
                        recommendations=(
                            "Increase chest training volume",
                            "Add more horizontal presses",
                            "Balance push and pull exercises",
                        ),
                        metric=ratio,
                    )
                )

        for item in self.find_stagnant_exercises(sessions, cfg.stagnation_weeks, now):
            weak.append(
                WeakPoint(
                    type=WeakPointType.EXERCISE,
                    exercise_id=item.exercise_id,
                    exercise_name=item.exercise_name,
                    severity=Severity.MODERATE if item.weeks_since_pr >= 12 else Severity.MINOR,
                    description=(
                        f"{item.exercise_name} - no progress in {item.weeks_since_pr} weeks"
                    ),
                    recommendations=(
                        f"Try a variation of {item.exercise_name}",
                        "Increase volume or change rep range",
                        "Check form - video yourself",
                        "Consider a deload week",
                    ),
                    metric=float(item.weeks_since_pr),
                )
            )

        priority = sorted(
            (g for g in TRAINABLE_GROUPS if avg_sets[g] < mevs[g]),
            key=lambda g: avg_sets[g],
        )[:3]

        advice: List[str] = []
        if not weak:
            advice.append("Training is well-balanced! Keep up the great work.")
        else:
            critical = [w for w in weak if w.severity in (Severity.MODERATE, Severity.SEVERE)]
            if critical:
                advice.append(f"Focus on {len(critical)} critical weak point(s) first")
            if priority:
                advice.append(
                    "Priority muscle groups: " + ", ".join(g.value for g in priority)
                )
            if any(w.type == WeakPointType.STRENGTH_IMBALANCE for w in weak):
                advice.append("Address push/pull imbalance to prevent injury")

        return WeakPointAnalysis(
            weak_points=tuple(weak),
            overall_balance=self.balance_score([avg_sets[g] for g in TRAINABLE_GROUPS]),
            priority_areas=tuple(priority),
            recommendations=tuple(advice),
        )

    def get_top_weak_point(
        self,
        sessions: Sequence[WorkoutSession],
        experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE,
        now: Optional[datetime.datetime] = None,
    ) -> str:
        analysis = self.analyze_weak_points(sessions, experience_level, now)
        if not analysis.weak_points:
            return "No weak points detected - training is balanced!"
        return analysis.weak_points[0].description

    # ------------------------------------------------------------------
    # Variations
    # ------------------------------------------------------------------

    def suggest_exercise_variations(
        self,
        sessions: Sequence[WorkoutSession],
        weeks_threshold: Optional[int] = None,
        now: Optional[datetime.datetime] = None,
    ) -> List[VariationRecommendation]:
        """Suggest swaps for lifts done too long or no longer progressing.

        Plateaued lifts come first, then the longest-running ones.
        """
        now = resolve_now(now)
        cfg = self.settings
        threshold = weeks_threshold if weeks_threshold is not None else cfg.variation_weeks
        results: List[VariationRecommendation] = []
        for usage in self.recent_exercises(sessions, RECENT_EXERCISE_WEEKS, now):
            exercise = self.library.get(usage.exercise_id)
            if exercise is None:
                continue
            tenure = weeks_between(usage.first_performed, now)
            gap = weeks_between(usage.last_performed, now)
            if usage.total_sessions < cfg.min_sessions_for_variation or gap > MAX_GAP_WEEKS:
                continue

            series = self.stats.extract_exercise_time_series(
                usage.exercise_id, sessions, RECENT_EXERCISE_WEEKS, now
            )
            slope = self.stats.calculate_trend(series.points).slope_per_week
            plateaued = slope < cfg.plateau_slope_per_week
            if not (tenure >= threshold or (plateaued and tenure >= PLATEAU_TENURE_WEEKS)):
                continue

            options = self.find_exercise_substitutions(
                usage.exercise_id, difficulty=exercise.difficulty
            )
            if not options:
                continue
            if plateaued:
                reason = (
                    f"Progress stalled ({slope:.1f}/week). Try this variation to break through."
                )
            else:
                reason = (
                    f"Been doing this {tenure} weeks. Variation prevents overuse and "
                    "renews progress."
                )
            results.append(
                VariationRecommendation(
                    current_exercise=exercise,
                    suggested_variation=options[0].exercise,
                    reason=reason,
                    weeks_since_variation=tenure,
                    is_plateaued=plateaued,
                )
            )
        results.sort(key=lambda r: (not r.is_plateaued, -r.weeks_since_variation))
        return results

    # ------------------------------------------------------------------
    # Program building
    # ------------------------------------------------------------------

    def select_balanced_exercises(
        self,
        target_groups: Sequence[MuscleGroup],
        session_count: int,
        experience_level: ExperienceLevel = ExperienceLevel.INTERMEDIATE,
        equipment: Collection[EquipmentCategory] = (),
    ) -> List[List[ExerciseDefinition]]:
        """Lay out a week of sessions.

        Up to three sessions train the full body, four use an upper/lower
        split and five or more rotate push/pull/legs.
        """
        if session_count <= 0:
            return []
        sessions: List[List[ExerciseDefinition]] = []
        if session_count <= 3:
            for _ in range(session_count):
                day: List[ExerciseDefinition] = []
                for group in target_groups:
                    options = [
                        e
                        for e in self.library.by_muscle_group(group)
                        if (not equipment or e.equipment in equipment)
                        and self._suits_level(e, experience_level)
                    ]
                    options.sort(key=lambda e: not e.is_compound)
                    count = 2 if group in (MuscleGroup.LEGS, MuscleGroup.BACK) else 1
                    day.extend(options[:count])
                sessions.append(day)
        elif session_count == 4:
            upper = [g for g in target_groups if g in UPPER_GROUPS]
            lower = [g for g in target_groups if g in LOWER_GROUPS]
            for _ in range(2):
                day = []
                for group in upper:
                    day.extend(self.library.by_muscle_group(group)[:2])
                sessions.append(day)
            for _ in range(2):
                day = []
                for group in lower:
                    day.extend(
                        self.library.by_muscle_group(group)[: 3 if group == MuscleGroup.LEGS else 2]
                    )
                sessions.append(day)
        else:
            split = (
                (MuscleGroup.CHEST, MuscleGroup.SHOULDERS),
                (MuscleGroup.BACK,),
                (MuscleGroup.LEGS, MuscleGroup.CORE),
            )
            for groups in split:
                sessions.append([e for e in self.library if e.muscle_group in groups][:6])
            while len(sessions) < session_count:
                sessions.extend(
                    list(day) for day in sessions[: min(3, session_count - len(sessions))]
                )
        return sessions[:session_count]

    @staticmethod
    def _suits_level(exercise: ExerciseDefinition, level: ExperienceLevel) -> bool:
        if exercise.difficulty.value == level.value:
            return True
        return level == ExperienceLevel.INTERMEDIATE and exercise.difficulty == Difficulty.BEGINNER
