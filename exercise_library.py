from __future__ import annotations
from typing import Iterable, Iterator, Mapping, Optional
from types import MappingProxyType

from models import (
    Difficulty,
    EquipmentCategory as Eq,
    ExerciseDefinition,
    MovementPattern as Mp,
    MuscleGroup as Mg,
)


class ExerciseLibrary:
    """Immutable lookup of exercise definitions keyed by id."""

    def __init__(
        self,
        exercises: Iterable[ExerciseDefinition],
        representatives: Mapping[Mg, str] | None = None,
    ) -> None:
        items = tuple(exercises)
        self._by_id = MappingProxyType({e.id: e for e in items})
        if len(self._by_id) != len(items):
            raise ValueError("duplicate exercise ids in library")
        self._order = items
        self.representatives = MappingProxyType(dict(representatives or {}))

    def __iter__(self) -> Iterator[ExerciseDefinition]:
        return iter(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, exercise_id: object) -> bool:
        return exercise_id in self._by_id

    def get(self, exercise_id: str) -> Optional[ExerciseDefinition]:
        return self._by_id.get(exercise_id)

    def name_of(self, exercise_id: str) -> str:
        """Return the exercise name or the id itself when unknown."""
        exercise = self._by_id.get(exercise_id)
        return exercise.name if exercise is not None else exercise_id

    def by_muscle_group(self, muscle_group: Mg) -> list[ExerciseDefinition]:
        return [e for e in self._order if e.muscle_group == muscle_group]

    def representative(self, muscle_group: Mg) -> Optional[ExerciseDefinition]:
        """Return the compound lift used to track ``muscle_group`` strength."""
        exercise_id = self.representatives.get(muscle_group)
        if exercise_id is None:
            return None
        return self._by_id.get(exercise_id)


def _ex(
    exercise_id: str,
    name: str,
    muscle_group: Mg,
    secondary: tuple[Mg, ...],
    equipment: Eq,
    category: str,
    difficulty: Difficulty,
    pattern: Mp,
) -> ExerciseDefinition:
    return ExerciseDefinition(
        id=exercise_id,
        name=name,
        muscle_group=muscle_group,
        secondary_muscles=secondary,
        equipment=equipment,
        category=category,
        difficulty=difficulty,
        pattern=pattern,
    )


_B = Difficulty.BEGINNER
_I = Difficulty.INTERMEDIATE
_A = Difficulty.ADVANCED

DEFAULT_EXERCISES: tuple[ExerciseDefinition, ...] = (
    _ex("e1", "Barbell Bench Press", Mg.CHEST, (Mg.SHOULDERS, Mg.ARMS), Eq.BARBELL, "compound", _I, Mp.PUSH_HORIZONTAL),
    _ex("e2", "Incline Dumbbell Press", Mg.CHEST, (Mg.SHOULDERS, Mg.ARMS), Eq.DUMBBELL, "compound", _B, Mp.PUSH_HORIZONTAL),
    _ex("e3", "Pull Up", Mg.BACK, (Mg.ARMS,), Eq.BODYWEIGHT, "compound", _I, Mp.PULL_VERTICAL),
    _ex("e4", "Barbell Squat", Mg.LEGS, (Mg.CORE, Mg.BACK), Eq.BARBELL, "compound", _A, Mp.SQUAT),
    _ex("e5", "Deadlift", Mg.BACK, (Mg.LEGS, Mg.CORE), Eq.BARBELL, "compound", _A, Mp.HINGE),
    _ex("e6", "Dumbbell Shoulder Press", Mg.SHOULDERS, (Mg.ARMS,), Eq.DUMBBELL, "compound", _B, Mp.PUSH_VERTICAL),
    _ex("e7", "Tricep Rope Pushdown", Mg.ARMS, (), Eq.CABLE, "isolation", _B, Mp.ISOLATION),
    _ex("e8", "Bicep Curl", Mg.ARMS, (), Eq.DUMBBELL, "isolation", _B, Mp.ISOLATION),
    _ex("e9", "Leg Extension", Mg.LEGS, (), Eq.MACHINE, "machine", _B, Mp.ISOLATION),
    _ex("e10", "Plank", Mg.CORE, (Mg.SHOULDERS,), Eq.BODYWEIGHT, "bodyweight", _B, Mp.ISOLATION),
    _ex("e11", "Romanian Deadlift", Mg.LEGS, (Mg.BACK,), Eq.BARBELL, "compound", _I, Mp.HINGE),
    _ex("e12", "Lateral Raise", Mg.SHOULDERS, (), Eq.DUMBBELL, "isolation", _B, Mp.PUSH_VERTICAL),
    _ex("e13", "Leg Press", Mg.LEGS, (), Eq.MACHINE, "machine", _B, Mp.ISOLATION),
    _ex("e14", "Face Pull", Mg.SHOULDERS, (Mg.BACK,), Eq.CABLE, "isolation", _I, Mp.PULL_VERTICAL),
    _ex("e15", "Hammer Curl", Mg.ARMS, (), Eq.DUMBBELL, "isolation", _B, Mp.ISOLATION),
    _ex("e16", "Overhead Barbell Press", Mg.SHOULDERS, (Mg.ARMS, Mg.CORE), Eq.BARBELL, "compound", _I, Mp.PUSH_VERTICAL),
    _ex("e17", "Bulgarian Split Squat", Mg.LEGS, (Mg.CORE,), Eq.DUMBBELL, "compound", _A, Mp.SQUAT),
    _ex("e18", "Lat Pulldown", Mg.BACK, (Mg.ARMS,), Eq.MACHINE, "machine", _B, Mp.PULL_VERTICAL),
    _ex("e19", "Barbell Row", Mg.BACK, (Mg.ARMS, Mg.CORE), Eq.BARBELL, "compound", _I, Mp.PULL_HORIZONTAL),
    _ex("e20", "Seated Calf Raise", Mg.LEGS, (), Eq.MACHINE, "isolation", _B, Mp.ISOLATION),
    _ex("e21", "Front Squat", Mg.LEGS, (Mg.CORE, Mg.BACK), Eq.BARBELL, "compound", _A, Mp.SQUAT),
    _ex("e22", "Sumo Deadlift", Mg.LEGS, (Mg.BACK,), Eq.BARBELL, "compound", _A, Mp.HINGE),
    _ex("e23", "Close Grip Bench Press", Mg.ARMS, (Mg.CHEST, Mg.SHOULDERS), Eq.BARBELL, "compound", _I, Mp.ISOLATION),
)

DEFAULT_REPRESENTATIVES: Mapping[Mg, str] = MappingProxyType(
    {
        Mg.CHEST: "e1",
        Mg.BACK: "e19",
        Mg.LEGS: "e4",
        Mg.SHOULDERS: "e16",
        Mg.ARMS: "e8",
        Mg.CORE: "e10",
    }
)

DEFAULT_LIBRARY = ExerciseLibrary(DEFAULT_EXERCISES, DEFAULT_REPRESENTATIVES)
