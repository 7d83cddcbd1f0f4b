from __future__ import annotations

from exercise_library import DEFAULT_LIBRARY, ExerciseLibrary
from intelligence_service import IntelligenceService
from models import InjuryRiskAssessor
from periodization_service import PeriodizationService
from recovery_service import RecoveryService
from settings_schema import EngineSettings
from stats_service import StatisticsService
from volume_service import VolumeService


class TrainingEngine:
    """Wire every analysis service to one library and one set of settings."""

    def __init__(
        self,
        library: ExerciseLibrary | None = None,
        settings: EngineSettings | None = None,
        injury_assessor: InjuryRiskAssessor | None = None,
    ) -> None:
        self.library = library or DEFAULT_LIBRARY
        self.settings = settings or EngineSettings()
        self.stats = StatisticsService(self.library, self.settings)
        self.volume = VolumeService(self.library, self.settings, self.stats)
        self.periodization = PeriodizationService(self.settings, injury_assessor)
        self.recovery = RecoveryService(self.settings, injury_assessor, self.periodization)
        self.intelligence = IntelligenceService(
            self.library, self.settings, self.stats, self.volume
        )
