"""
Bidding Optimization Configuration
==================================

환경 변수(.env 포함) 기반 설정 관리

코어 함수는 설정을 직접 읽지 않는다. 호출 경계에서 Settings 값을 한 번 읽어
불변 파라미터(CostParameters, NeurodynamicParams, EnsembleConfig)로 변환해
명시적으로 전달한다.
"""

from functools import lru_cache
from typing import List, Optional, Tuple

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.bidding.types import CostParameters, NeurodynamicParams
from src.models.ensemble import EnsembleConfig
from src.monitoring.logging_config import LogConfig


class OptimizationSettings(BaseSettings):
    """입찰 최적화 설정 (환경 변수 접두사 BIDDING_)"""

    model_config = SettingsConfigDict(
        env_prefix="BIDDING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # 비용 파라미터
    GENERATION_COST: float = Field(380.0, gt=0)
    UPWARD_COST: float = Field(500.0, gt=0)
    DOWNWARD_COST: float = Field(300.0, gt=0)
    MAX_POWER: float = Field(100.0, gt=0)
    MAX_UP_REGULATION: float = Field(3.0, gt=0)
    MAX_DOWN_REGULATION: float = Field(3.0, gt=0)

    # 가격 그리드
    PRICE_RANGE_MIN: float = 350.0
    PRICE_RANGE_MAX: float = 500.0
    PRICE_GRID_STEP: float = Field(2.0, gt=0)
    JUMP_THRESHOLD: float = Field(5.0, gt=0)

    # 신경동역학 탐색
    ETA_BASE: float = 0.05
    ETA_MIN: float = 0.0005
    MAX_ITER: int = Field(500, ge=0)
    TOLERANCE: float = 1e-5
    PATIENCE: int = Field(50, ge=1)
    NOISE_FACTOR: float = 0.05
    MOMENTUM: float = 0.85

    # 실행
    MAX_WORKERS: Optional[int] = None
    SCAN_DEADLINE_S: Optional[float] = None

    # 앙상블
    ENSEMBLE_METHOD: str = "weighted_average"
    SELECTION_METHOD: str = "all"
    TOP_K: int = Field(3, ge=1)
    MIN_MODELS: int = Field(2, ge=1)
    MAX_MAE: Optional[float] = None
    MAX_RMSE: Optional[float] = None
    MIN_R2: Optional[float] = None
    EXCLUDE_MODELS: List[str] = Field(default_factory=list)

    # 로깅
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"

    @model_validator(mode="after")
    def _check_price_range(self) -> "OptimizationSettings":
        if self.PRICE_RANGE_MIN > self.PRICE_RANGE_MAX:
            raise ValueError("PRICE_RANGE_MIN must not exceed PRICE_RANGE_MAX")
        return self

    @property
    def price_range(self) -> Tuple[float, float]:
        return (self.PRICE_RANGE_MIN, self.PRICE_RANGE_MAX)

    def cost_parameters(self) -> CostParameters:
        return CostParameters(
            generation_cost=self.GENERATION_COST,
            upward_cost=self.UPWARD_COST,
            downward_cost=self.DOWNWARD_COST,
            max_power=self.MAX_POWER,
            max_up_regulation=self.MAX_UP_REGULATION,
            max_down_regulation=self.MAX_DOWN_REGULATION,
        )

    def neurodynamic_params(self) -> NeurodynamicParams:
        return NeurodynamicParams(
            eta_base=self.ETA_BASE,
            eta_min=self.ETA_MIN,
            max_iter=self.MAX_ITER,
            tolerance=self.TOLERANCE,
            patience=self.PATIENCE,
            noise_factor=self.NOISE_FACTOR,
            momentum=self.MOMENTUM,
        )

    def ensemble_config(self) -> EnsembleConfig:
        return EnsembleConfig(
            selection_method=self.SELECTION_METHOD,
            ensemble_method=self.ENSEMBLE_METHOD,
            top_k=self.TOP_K,
            max_mae=self.MAX_MAE,
            max_rmse=self.MAX_RMSE,
            min_r2=self.MIN_R2,
            min_models=self.MIN_MODELS,
            exclude_models=tuple(self.EXCLUDE_MODELS),
        )

    def log_config(self) -> LogConfig:
        return LogConfig(level=self.LOG_LEVEL, format=self.LOG_FORMAT)


@lru_cache()
def get_settings() -> OptimizationSettings:
    """설정 싱글톤 반환"""
    return OptimizationSettings()
