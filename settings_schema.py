from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator


class EngineSettings(BaseModel):
    """Tunable policy constants for the analysis services."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # sleep and recovery
    optimal_sleep_hours: float = 7.5
    sleep_window_days: int = Field(7, ge=1)
    default_days_since_rest: int = 7
    stress_window_days: int = Field(7, ge=1)
    tonnage_ceiling_points: float = 40.0
    ready_to_train_score: float = 60.0

    # trends and plateaus
    plateau_slope_per_week: float = 0.5
    plateau_min_weeks_since_pr: int = 4
    plateau_min_r2: float = 0.3
    pr_tolerance: float = 5.0

    # volume landmarks
    personalized_min_weeks: int = Field(8, ge=2)
    default_confidence: float = Field(0.3, ge=0.0, le=1.0)
    correlation_weeks: int = Field(12, ge=1)
    current_volume_weeks: int = Field(4, ge=1)

    # periodization
    default_weeks_since_deload: int = 12
    injury_lookback_weeks: int = 4
    min_sessions_for_injury_risk: int = 3

    # weak points and variations
    imbalance_ratio_low: float = 0.6
    imbalance_ratio_high: float = 1.3
    stagnation_weeks: int = 8
    variation_weeks: int = 8
    min_sessions_for_variation: int = 3
    substitution_min_similarity: float = 0.3

    @model_validator(mode="after")
    def _check_band(self) -> "EngineSettings":
        if self.imbalance_ratio_low >= self.imbalance_ratio_high:
            raise ValueError("imbalance_ratio_low must be below imbalance_ratio_high")
        return self


def validate_settings(data: dict) -> EngineSettings:
    try:
        return EngineSettings(**data)
    except ValidationError as e:
        raise ValueError(str(e))
