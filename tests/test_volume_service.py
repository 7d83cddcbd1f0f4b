import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from models import (
    ChangeDirection,
    ExerciseLog,
    ExperienceLevel,
    MuscleGroup,
    SessionStatus,
    SetRecord,
    Severity,
    TrainingPhase,
    VolumeStatus,
    WorkoutSession,
)
from volume_service import VolumeService, volume_status

NOW = datetime.datetime(2024, 4, 22, 12, 0)


def make_session(sid, when, logs):
    return WorkoutSession(
        id=sid, status=SessionStatus.COMPLETED, start_time=when, logs=tuple(logs)
    )


def make_log(exercise_id, weight, reps, sets=1):
    return ExerciseLog(exercise_id, tuple(SetRecord(weight, reps) for _ in range(sets)))


def ramping_bench(weeks=10):
    """Weekly bench sessions adding a set and 2 kg each week."""
    return [
        make_session(
            str(i),
            NOW - datetime.timedelta(weeks=weeks - i, days=1),
            [make_log("e1", 100 + 2 * i, 5, sets=8 + i)],
        )
        for i in range(1, weeks + 1)
    ]


class VolumeServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.service = VolumeService()

    def assertOrdered(self, lm) -> None:
        self.assertLessEqual(lm.mv, lm.mev)
        self.assertLessEqual(lm.mev, lm.mav)
        self.assertLessEqual(lm.mav, lm.mrv)

    def test_default_landmarks_table(self) -> None:
        self.assertEqual(
            VolumeService.default_landmarks(MuscleGroup.CHEST, ExperienceLevel.INTERMEDIATE),
            (6, 10, 20, 25),
        )
        self.assertEqual(
            VolumeService.default_landmarks(MuscleGroup.BACK, ExperienceLevel.BEGINNER),
            (4, 9, 18, 22),
        )
        self.assertEqual(
            VolumeService.default_landmarks(MuscleGroup.ARMS, ExperienceLevel.ADVANCED),
            (6, 10, 19, 24),
        )

    def test_status_thresholds(self) -> None:
        self.assertEqual(volume_status(5, 10, 25), VolumeStatus.UNDERTRAINED)
        self.assertEqual(volume_status(10, 10, 25), VolumeStatus.OPTIMAL)
        self.assertEqual(volume_status(22.5, 10, 25), VolumeStatus.APPROACHING_MRV)
        self.assertEqual(volume_status(25, 10, 25), VolumeStatus.OVERTRAINED)

    def test_zero_sets_forces_default_path(self) -> None:
        lm = self.service.calculate_volume_landmarks(
            MuscleGroup.CHEST, [], ExperienceLevel.INTERMEDIATE, now=NOW
        )
        self.assertEqual(lm.status, VolumeStatus.UNDERTRAINED)
        self.assertAlmostEqual(lm.confidence, 0.3)
        self.assertEqual(lm.current, 0.0)
        self.assertEqual((lm.mv, lm.mev, lm.mav, lm.mrv), (6, 10, 20, 25))

    def test_untrained_group_uses_defaults_despite_long_history(self) -> None:
        sessions = [
            make_session(
                str(i),
                NOW - datetime.timedelta(weeks=10 - i, days=1),
                [make_log("e9", 60 + i, 12, sets=4)],
            )
            for i in range(10)
        ]
        lm = self.service.calculate_volume_landmarks(
            MuscleGroup.CHEST, sessions, ExperienceLevel.INTERMEDIATE, now=NOW
        )
        self.assertEqual((lm.mv, lm.mev, lm.mav, lm.mrv), (6, 10, 20, 25))
        self.assertAlmostEqual(lm.confidence, 0.3)
        self.assertEqual(lm.status, VolumeStatus.UNDERTRAINED)

    def test_default_path_invariant_all_groups(self) -> None:
        for level in ExperienceLevel:
            for group in MuscleGroup:
                lm = self.service.calculate_volume_landmarks(group, [], level, now=NOW)
                self.assertOrdered(lm)

    def test_personalized_landmarks(self) -> None:
        lm = self.service.calculate_volume_landmarks(
            MuscleGroup.CHEST, ramping_bench(), ExperienceLevel.INTERMEDIATE, now=NOW
        )
        self.assertEqual((lm.mv, lm.mev, lm.mav, lm.mrv), (3, 10, 18, 18))
        self.assertOrdered(lm)
        self.assertEqual(lm.current, 18.0)
        self.assertEqual(lm.status, VolumeStatus.OVERTRAINED)
        self.assertAlmostEqual(lm.confidence, 0.8)

    def test_personalized_mrv_never_below_mav(self) -> None:
        # bucket rounding turns 9 observed sets into a MAV of 10
        sessions = [
            make_session(
                str(i),
                NOW - datetime.timedelta(weeks=9 - i, days=1),
                [make_log("e1", 100 + i, 5, sets=9 if i == 8 else 6)],
            )
            for i in range(9)
        ]
        lm = self.service.calculate_volume_landmarks(MuscleGroup.CHEST, sessions, now=NOW)
        self.assertEqual(lm.mav, 10)
        self.assertEqual(lm.mrv, 10)
        self.assertOrdered(lm)

    def test_recommendation_undertrained(self) -> None:
        rec = self.service.get_volume_recommendation(
            MuscleGroup.CHEST, [], ExperienceLevel.INTERMEDIATE, now=NOW
        )
        self.assertEqual(rec.recommended_volume, 10)
        self.assertEqual(rec.change_direction, ChangeDirection.INCREASE)
        self.assertEqual(rec.change_magnitude, 10)

    def test_recommendation_deload_caps_undertrained(self) -> None:
        rec = self.service.get_volume_recommendation(
            MuscleGroup.CHEST, [], ExperienceLevel.INTERMEDIATE, TrainingPhase.DELOAD, now=NOW
        )
        self.assertEqual(rec.recommended_volume, 5)
        self.assertEqual(rec.change_direction, ChangeDirection.MAINTAIN)
        self.assertTrue(rec.reasoning.startswith("Deload week"))

    def test_recommendation_optimal_accumulation_adds_sets(self) -> None:
        sessions = [make_session("a", NOW - datetime.timedelta(days=1), [make_log("e1", 100, 8, sets=12)])]
        rec = self.service.get_volume_recommendation(MuscleGroup.CHEST, sessions, now=NOW)
        self.assertEqual(rec.landmarks.status, VolumeStatus.OPTIMAL)
        self.assertEqual(rec.recommended_volume, 14)
        self.assertEqual(rec.change_direction, ChangeDirection.INCREASE)

    def test_recommendation_optimal_intensification(self) -> None:
        sessions = [make_session("a", NOW - datetime.timedelta(days=1), [make_log("e1", 100, 8, sets=12)])]
        rec = self.service.get_volume_recommendation(
            MuscleGroup.CHEST, sessions, phase=TrainingPhase.INTENSIFICATION, now=NOW
        )
        self.assertEqual(rec.recommended_volume, 8)
        self.assertEqual(rec.change_direction, ChangeDirection.DECREASE)

    def test_recommendation_overtrained(self) -> None:
        sessions = [make_session("a", NOW - datetime.timedelta(days=1), [make_log("e1", 100, 8, sets=30)])]
        rec = self.service.get_volume_recommendation(MuscleGroup.CHEST, sessions, now=NOW)
        self.assertEqual(rec.landmarks.status, VolumeStatus.OVERTRAINED)
        self.assertEqual(rec.recommended_volume, 20)
        self.assertEqual(rec.change_magnitude, 10)
        self.assertEqual(rec.change_direction, ChangeDirection.DECREASE)

    def test_all_recommendations_skip_cardio(self) -> None:
        recs = self.service.get_all_volume_recommendations([], now=NOW)
        groups = [r.muscle_group for r in recs]
        self.assertEqual(len(groups), 6)
        self.assertNotIn(MuscleGroup.CARDIO, groups)

    def test_push_pull_imbalance(self) -> None:
        sessions = [
            make_session(
                "a",
                NOW - datetime.timedelta(days=1),
                [make_log("e1", 100, 8, sets=20), make_log("e19", 80, 8, sets=10)],
            )
        ]
        report = self.service.detect_volume_imbalances(sessions, now=NOW)
        self.assertTrue(report.has_imbalance)
        push_pull = [i for i in report.imbalances if i.issue.startswith("Push/pull")]
        self.assertEqual(len(push_pull), 1)
        self.assertEqual(push_pull[0].muscle_group, MuscleGroup.BACK)
        self.assertEqual(push_pull[0].severity, Severity.MODERATE)

    def test_no_imbalance_message(self) -> None:
        sessions = [
            make_session(
                "a",
                NOW - datetime.timedelta(days=1),
                [
                    make_log("e1", 100, 8, sets=10),
                    make_log("e19", 80, 8, sets=12),
                    make_log("e13", 150, 10, sets=12),
                    make_log("e12", 10, 12, sets=8),
                    make_log("e8", 15, 10, sets=2),
                    make_log("e10", 0, 60, sets=10),
                ],
            )
        ]
        report = self.service.detect_volume_imbalances(sessions, now=NOW)
        self.assertFalse(report.has_imbalance)
        self.assertEqual(
            report.recommendations, ("Volume balance looks good across all muscle groups",)
        )


if __name__ == "__main__":
    unittest.main()
