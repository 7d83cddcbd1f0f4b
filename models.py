"""Immutable records shared by the training analysis services.

Sessions and daily logs are owned by the external store; the services only
read them. Everything else in this module is derived per call and never
stored as a source of truth.
"""

from __future__ import annotations
import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Mapping, Optional, Sequence


class SessionStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    TEMPLATE = "template"


class SetType(str, Enum):
    NORMAL = "normal"
    WARMUP = "warmup"
    DROP = "drop"
    FAILURE = "failure"


class ExperienceLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class MuscleGroup(str, Enum):
    CHEST = "chest"
    BACK = "back"
    LEGS = "legs"
    SHOULDERS = "shoulders"
    ARMS = "arms"
    CORE = "core"
    CARDIO = "cardio"


# Groups that carry weekly set volume; cardio is tracked separately.
TRAINABLE_GROUPS: tuple[MuscleGroup, ...] = (
    MuscleGroup.CHEST,
    MuscleGroup.BACK,
    MuscleGroup.LEGS,
    MuscleGroup.SHOULDERS,
    MuscleGroup.ARMS,
    MuscleGroup.CORE,
)


class MovementPattern(str, Enum):
    SQUAT = "squat"
    HINGE = "hinge"
    PUSH_HORIZONTAL = "push_horizontal"
    PUSH_VERTICAL = "push_vertical"
    PULL_HORIZONTAL = "pull_horizontal"
    PULL_VERTICAL = "pull_vertical"
    CARRY = "carry"
    ISOLATION = "isolation"


class EquipmentCategory(str, Enum):
    BARBELL = "barbell"
    DUMBBELL = "dumbbell"
    MACHINE = "machine"
    CABLE = "cable"
    BODYWEIGHT = "bodyweight"
    BAND = "band"


class TrainingPhase(str, Enum):
    ACCUMULATION = "accumulation"
    INTENSIFICATION = "intensification"
    DELOAD = "deload"
    PEAKING = "peaking"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_ORDER: dict[Priority, int] = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


def _parse_datetime(value: str | float | int | datetime.datetime | None) -> datetime.datetime | None:
    """Accept ISO strings, epoch milliseconds or datetimes."""
    if value is None or isinstance(value, datetime.datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.datetime.fromtimestamp(value / 1000.0)
    return datetime.datetime.fromisoformat(value)


# ---------------------------------------------------------------------------
# Raw inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SetRecord:
    weight: float
    reps: int
    completed: bool = True
    rpe: Optional[float] = None
    set_type: SetType = SetType.NORMAL

    @property
    def is_working(self) -> bool:
        """Completed sets that are not warm-ups."""
        return self.completed and self.set_type != SetType.WARMUP

    @property
    def tonnage(self) -> float:
        return self.reps * self.weight

    @classmethod
    def from_dict(cls, data: Mapping) -> "SetRecord":
        rpe = data.get("rpe")
        return cls(
            weight=float(data.get("weight", 0.0)),
            reps=int(data.get("reps", 0)),
            completed=bool(data.get("completed", True)),
            rpe=float(rpe) if rpe is not None else None,
            set_type=SetType(data.get("set_type", SetType.NORMAL.value)),
        )


@dataclass(frozen=True)
class ExerciseLog:
    exercise_id: str
    sets: tuple[SetRecord, ...] = ()

    @property
    def working_sets(self) -> list[SetRecord]:
        return [s for s in self.sets if s.is_working]

    @classmethod
    def from_dict(cls, data: Mapping) -> "ExerciseLog":
        return cls(
            exercise_id=str(data["exercise_id"]),
            sets=tuple(SetRecord.from_dict(s) for s in data.get("sets", [])),
        )


@dataclass(frozen=True)
class WorkoutSession:
    id: str
    status: SessionStatus
    start_time: datetime.datetime
    end_time: Optional[datetime.datetime] = None
    logs: tuple[ExerciseLog, ...] = ()

    @property
    def is_completed(self) -> bool:
        return self.status == SessionStatus.COMPLETED

    def log_for(self, exercise_id: str) -> Optional[ExerciseLog]:
        """Return the first log of ``exercise_id`` in this session."""
        for log in self.logs:
            if log.exercise_id == exercise_id:
                return log
        return None

    def working_tonnage(self) -> float:
        return sum(s.tonnage for log in self.logs for s in log.working_sets)

    @classmethod
    def from_dict(cls, data: Mapping) -> "WorkoutSession":
        return cls(
            id=str(data["id"]),
            status=SessionStatus(data.get("status", SessionStatus.COMPLETED.value)),
            start_time=_parse_datetime(data["start_time"]),
            end_time=_parse_datetime(data.get("end_time")),
            logs=tuple(ExerciseLog.from_dict(log) for log in data.get("logs", [])),
        )


@dataclass(frozen=True)
class DailyLog:
    date: datetime.date
    sleep_hours: Optional[float] = None
    mood: Optional[float] = None
    stress_level: Optional[float] = None
    energy_level: Optional[float] = None
    water_litres: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Mapping) -> "DailyLog":
        def _opt(key: str) -> Optional[float]:
            value = data.get(key)
            return float(value) if value is not None else None

        return cls(
            date=datetime.date.fromisoformat(str(data["date"])),
            sleep_hours=_opt("sleep_hours"),
            mood=_opt("mood"),
            stress_level=_opt("stress_level"),
            energy_level=_opt("energy_level"),
            water_litres=_opt("water_litres"),
        )


# ---------------------------------------------------------------------------
# Injury risk boundary
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InjuryRiskAssessment:
    overall_risk: RiskLevel
    risk_score: float
    needs_deload: bool = False


InjuryRiskAssessor = Callable[
    [Sequence[WorkoutSession], Mapping[datetime.date, DailyLog], int],
    Optional[InjuryRiskAssessment],
]


# ---------------------------------------------------------------------------
# Time series and trends
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PerformancePoint:
    date: datetime.datetime
    weight: float
    reps: int
    volume: float
    estimated_1rm: float
    rpe: Optional[float]
    sets: int


@dataclass(frozen=True)
class ExerciseTimeSeries:
    exercise_id: str
    exercise_name: str
    points: tuple[PerformancePoint, ...] = ()
    first_workout: Optional[datetime.datetime] = None
    last_workout: Optional[datetime.datetime] = None

    @property
    def total_workouts(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class VolumePoint:
    week_start: datetime.datetime
    sets: float
    volume: float
    exercises: tuple[str, ...] = ()


@dataclass(frozen=True)
class TrendResult:
    slope: float
    slope_per_week: float
    r2: float


@dataclass(frozen=True)
class PlateauResult:
    is_plateaued: bool
    weeks_since_pr: int
    current_pr: float
    reasoning: str


@dataclass(frozen=True)
class VolumeCorrelation:
    correlation: float
    optimal_volume: float
    volume_data: tuple[VolumePoint, ...]
    performance_data: tuple[PerformancePoint, ...]


# ---------------------------------------------------------------------------
# Volume landmarks
# ---------------------------------------------------------------------------


class VolumeStatus(str, Enum):
    UNDERTRAINED = "undertrained"
    OPTIMAL = "optimal"
    APPROACHING_MRV = "approaching_mrv"
    OVERTRAINED = "overtrained"


class ChangeDirection(str, Enum):
    INCREASE = "increase"
    MAINTAIN = "maintain"
    DECREASE = "decrease"


class Severity(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    SEVERE = "severe"


@dataclass(frozen=True)
class VolumeLandmarks:
    muscle_group: MuscleGroup
    mv: int
    mev: int
    mav: int
    mrv: int
    current: float
    status: VolumeStatus
    confidence: float


@dataclass(frozen=True)
class VolumeRecommendation:
    muscle_group: MuscleGroup
    current_volume: float
    recommended_volume: float
    change_direction: ChangeDirection
    change_magnitude: float
    reasoning: str
    landmarks: VolumeLandmarks


@dataclass(frozen=True)
class VolumeImbalance:
    muscle_group: MuscleGroup
    issue: str
    severity: Severity


@dataclass(frozen=True)
class VolumeImbalanceReport:
    has_imbalance: bool
    imbalances: tuple[VolumeImbalance, ...]
    recommendations: tuple[str, ...]


# ---------------------------------------------------------------------------
# Recovery
# ---------------------------------------------------------------------------


class RecoveryType(str, Enum):
    REST_DAY = "rest_day"
    ACTIVE_RECOVERY = "active_recovery"
    SLEEP_FOCUS = "sleep_focus"
    NUTRITION = "nutrition"
    DELOAD = "deload"
    MOBILITY = "mobility"


@dataclass(frozen=True)
class RecoveryRecommendation:
    type: RecoveryType
    priority: Priority
    title: str
    description: str
    action_items: tuple[str, ...] = ()
    days_until_action: Optional[int] = None
    duration: Optional[str] = None


@dataclass(frozen=True)
class SleepAnalysis:
    avg_sleep: float
    sleep_debt: float
    avg_quality: float
    optimal_sleep: float


@dataclass(frozen=True)
class RecoveryAssessment:
    overall_recovery_score: int
    ready_to_train: bool
    recommendations: tuple[RecoveryRecommendation, ...]
    next_rest_day: datetime.datetime
    days_until_rest_day: int
    sleep_debt: float
    training_stress: float


@dataclass(frozen=True)
class QuickRecoveryStatus:
    score: int
    status: str
    top_recommendation: str


# ---------------------------------------------------------------------------
# Periodization
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PeriodizationStatus:
    current_phase: TrainingPhase
    weeks_into_phase: int
    weeks_remaining_in_phase: int
    next_phase: TrainingPhase
    next_deload_date: datetime.datetime
    days_until_deload: int
    phase_recommendation: str
    should_transition_phase: bool
    transition_reasoning: Optional[str] = None


@dataclass(frozen=True)
class MesocyclePlan:
    start_date: datetime.datetime
    end_date: datetime.datetime
    phase: TrainingPhase
    duration_weeks: int
    volume_progression: ChangeDirection
    intensity_progression: ChangeDirection
    focus: str
    volume_multiplier: float
    intensity_multiplier: float
    deload_scheduled: bool


@dataclass(frozen=True)
class VolumeTargets:
    min: int
    max: int


@dataclass(frozen=True)
class DeloadDecision:
    should_deload: bool
    reasoning: str
    urgency: Priority


# ---------------------------------------------------------------------------
# Weak points and substitutions
# ---------------------------------------------------------------------------


class WeakPointType(str, Enum):
    MUSCLE_GROUP = "muscle_group"
    EXERCISE = "exercise"
    STRENGTH_IMBALANCE = "strength_imbalance"


@dataclass(frozen=True)
class WeakPoint:
    type: WeakPointType
    severity: Severity
    description: str
    recommendations: tuple[str, ...] = ()
    muscle_group: Optional[MuscleGroup] = None
    exercise_id: Optional[str] = None
    exercise_name: Optional[str] = None
    metric: Optional[float] = None


@dataclass(frozen=True)
class WeakPointAnalysis:
    weak_points: tuple[WeakPoint, ...]
    overall_balance: int
    priority_areas: tuple[MuscleGroup, ...]
    recommendations: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class StagnantExercise:
    exercise_id: str
    exercise_name: str
    weeks_since_pr: int


@dataclass(frozen=True)
class ExerciseUsage:
    exercise_id: str
    exercise_name: str
    first_performed: datetime.datetime
    last_performed: datetime.datetime
    total_sessions: int


@dataclass(frozen=True)
class ExerciseDefinition:
    id: str
    name: str
    muscle_group: MuscleGroup
    equipment: EquipmentCategory
    pattern: MovementPattern
    difficulty: Difficulty
    secondary_muscles: tuple[MuscleGroup, ...] = ()
    category: str = "compound"

    def touches(self, muscle_group: MuscleGroup) -> bool:
        """Whether the exercise trains ``muscle_group`` at all."""
        return self.muscle_group == muscle_group or muscle_group in self.secondary_muscles

    @property
    def is_compound(self) -> bool:
        return self.category == "compound" or bool(self.secondary_muscles)


@dataclass(frozen=True)
class ExerciseSubstitution:
    exercise: ExerciseDefinition
    similarity: float
    reason: str
    equipment_match: bool
    muscle_group_match: bool
    difficulty_match: bool


@dataclass(frozen=True)
class VariationRecommendation:
    current_exercise: ExerciseDefinition
    suggested_variation: ExerciseDefinition
    reason: str
    weeks_since_variation: int
    is_plateaued: bool
