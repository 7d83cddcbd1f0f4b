import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from models import (
    DailyLog,
    ExerciseLog,
    ExperienceLevel,
    InjuryRiskAssessment,
    Priority,
    RecoveryType,
    RiskLevel,
    SessionStatus,
    SetRecord,
    WorkoutSession,
)
from recovery_service import RecoveryService

NOW = datetime.datetime(2024, 4, 22, 12, 0)


def make_session(sid, when, weight=100, reps=10, sets=10, rpe=None):
    log = ExerciseLog("e1", tuple(SetRecord(weight, reps, rpe=rpe) for _ in range(sets)))
    return WorkoutSession(id=sid, status=SessionStatus.COMPLETED, start_time=when, logs=(log,))


def sleep_logs(hours, mood=None, days=7):
    logs = {}
    for offset in range(days):
        day = NOW.date() - datetime.timedelta(days=offset)
        logs[day] = DailyLog(date=day, sleep_hours=hours, mood=mood)
    return logs


def fixed_assessor(assessment):
    calls = []

    def assess(sessions, daily_logs, lookback_weeks):
        calls.append(lookback_weeks)
        return assessment

    assess.calls = calls
    return assess


class RecoveryServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.service = RecoveryService()

    def test_full_sleep_has_no_debt(self) -> None:
        sleep = self.service.analyze_sleep(sleep_logs(7.5), now=NOW)
        self.assertEqual(sleep.sleep_debt, 0.0)
        self.assertAlmostEqual(sleep.avg_sleep, 7.5)

    def test_sleep_debt_and_quality(self) -> None:
        sleep = self.service.analyze_sleep(sleep_logs(6.5, mood=5), now=NOW)
        self.assertAlmostEqual(sleep.sleep_debt, 7.0)
        self.assertAlmostEqual(sleep.avg_quality, 5.0)

    def test_sleep_ignores_old_and_missing_logs(self) -> None:
        logs = sleep_logs(8.0, days=3)
        old = NOW.date() - datetime.timedelta(days=20)
        logs[old] = DailyLog(date=old, sleep_hours=3.0)
        blank = NOW.date() - datetime.timedelta(days=4)
        logs[blank] = DailyLog(date=blank, mood=2)
        sleep = self.service.analyze_sleep(logs, now=NOW)
        self.assertAlmostEqual(sleep.avg_sleep, 8.0)
        self.assertEqual(sleep.sleep_debt, 0.0)
        self.assertEqual(sleep.avg_quality, 7.0)

    def test_no_sleep_logs_is_neutral(self) -> None:
        sleep = self.service.analyze_sleep({}, now=NOW)
        self.assertEqual(sleep.sleep_debt, 0.0)
        self.assertEqual(sleep.avg_quality, 7.0)
        self.assertEqual(sleep.optimal_sleep, 7.5)

    def test_training_stress(self) -> None:
        self.assertEqual(self.service.training_stress([], now=NOW), 0.0)
        sessions = [make_session("a", NOW - datetime.timedelta(days=1), rpe=8)]
        stress = self.service.training_stress(sessions, now=NOW)
        self.assertAlmostEqual(stress, 1 / 7 * 20 + 10 + 32)

    def test_training_stress_caps_tonnage(self) -> None:
        sessions = [
            make_session(str(i), NOW - datetime.timedelta(days=i + 1), weight=500, sets=20)
            for i in range(6)
        ]
        stress = self.service.training_stress(sessions, now=NOW)
        self.assertAlmostEqual(stress, 6 / 7 * 20 + 40 + 28)

    def test_fresh_athlete(self) -> None:
        result = self.service.get_recovery_assessment([], {}, now=NOW)
        self.assertEqual(result.overall_recovery_score, 98)
        self.assertTrue(result.ready_to_train)
        self.assertEqual(len(result.recommendations), 1)
        rec = result.recommendations[0]
        self.assertEqual(rec.type, RecoveryType.REST_DAY)
        self.assertEqual(rec.priority, Priority.MEDIUM)
        self.assertEqual(rec.title, "7 Days Without Complete Rest")
        self.assertEqual(result.days_until_rest_day, 0)
        self.assertEqual(result.next_rest_day, NOW)

    def test_recent_rest_and_mobility_fallback(self) -> None:
        result = self.service.get_recovery_assessment(
            [],
            sleep_logs(8.0, mood=8),
            ExperienceLevel.ADVANCED,
            last_rest_day=NOW - datetime.timedelta(days=1),
            last_deload_date=NOW - datetime.timedelta(weeks=1),
            now=NOW,
        )
        self.assertEqual(result.overall_recovery_score, 100)
        self.assertEqual(result.recommendations[0].type, RecoveryType.MOBILITY)
        self.assertEqual(result.days_until_rest_day, 3)
        self.assertEqual(result.next_rest_day, NOW + datetime.timedelta(days=3))

    def test_deload_heads_up(self) -> None:
        result = self.service.get_recovery_assessment(
            [],
            {},
            last_rest_day=NOW - datetime.timedelta(days=1),
            last_deload_date=NOW - datetime.timedelta(weeks=4),
            now=NOW,
        )
        titles = [r.title for r in result.recommendations]
        self.assertEqual(titles, ["Deload Week Approaching"])
        self.assertEqual(result.recommendations[0].days_until_action, 7)

    def test_score_is_clamped_and_critical_blocks_training(self) -> None:
        assessor = fixed_assessor(InjuryRiskAssessment(RiskLevel.CRITICAL, 100, needs_deload=True))
        service = RecoveryService(injury_assessor=assessor)
        sessions = [
            make_session(str(i), NOW - datetime.timedelta(hours=6 * i + 1), weight=500, sets=20, rpe=10)
            for i in range(20)
        ]
        result = service.get_recovery_assessment(
            sessions,
            sleep_logs(0.0, mood=1),
            last_rest_day=NOW - datetime.timedelta(days=30),
            now=NOW,
        )
        self.assertEqual(result.overall_recovery_score, 0)
        self.assertFalse(result.ready_to_train)
        self.assertEqual(result.training_stress, 100.0)
        self.assertEqual(result.recommendations[0].priority, Priority.CRITICAL)
        self.assertEqual(result.recommendations[0].title, "Immediate Deload Required")
        self.assertEqual(result.days_until_rest_day, 0)
        self.assertIn(4, assessor.calls)
        priorities = [r.priority for r in result.recommendations]
        order = [Priority.CRITICAL, Priority.HIGH, Priority.MEDIUM, Priority.LOW]
        self.assertEqual(priorities, sorted(priorities, key=order.index))

    def test_high_risk_adds_rest_day_before_sleep_advice(self) -> None:
        assessor = fixed_assessor(InjuryRiskAssessment(RiskLevel.HIGH, 70))
        service = RecoveryService(injury_assessor=assessor)
        sessions = [make_session(str(i), NOW - datetime.timedelta(days=10 + i), sets=1) for i in range(3)]
        result = service.get_recovery_assessment(
            sessions,
            sleep_logs(6.5),
            last_rest_day=NOW - datetime.timedelta(days=1),
            last_deload_date=NOW - datetime.timedelta(weeks=1),
            now=NOW,
        )
        titles = [r.title for r in result.recommendations]
        self.assertEqual(
            titles,
            [
                "Add Extra Rest Day This Week",
                "Critical Sleep Debt Detected",
                "Optimize Nutrition for Recovery",
            ],
        )
        # 100 - 70*0.4 - 14 - 0
        self.assertEqual(result.overall_recovery_score, 58)
        self.assertFalse(result.ready_to_train)

    def test_assessor_ignored_with_few_sessions(self) -> None:
        assessor = fixed_assessor(InjuryRiskAssessment(RiskLevel.CRITICAL, 100, needs_deload=True))
        service = RecoveryService(injury_assessor=assessor)
        result = service.get_recovery_assessment([], {}, now=NOW)
        self.assertEqual(assessor.calls, [])
        self.assertTrue(result.ready_to_train)

    def test_rest_frequency(self) -> None:
        self.assertEqual(RecoveryService.rest_frequency(ExperienceLevel.BEGINNER, 50), 2)
        self.assertEqual(RecoveryService.rest_frequency(ExperienceLevel.ADVANCED, 85), 3)
        self.assertEqual(RecoveryService.rest_frequency(ExperienceLevel.BEGINNER, 85), 1)

    def test_quick_status(self) -> None:
        quick = self.service.get_quick_recovery_status([], {}, now=NOW)
        self.assertEqual(quick.score, 98)
        self.assertEqual(quick.status, "excellent")
        self.assertEqual(quick.top_recommendation, "7 Days Without Complete Rest")


if __name__ == "__main__":
    unittest.main()
