"""
신경동역학 입찰 최적화 모듈
===========================

실시간 가격 예측으로부터 최적 일전 (가격, 출력) 입찰을 계산

Modules:
    types: 예측 집합, 비용/탐색 파라미터, 결과 타입
    rng: 일전 가격 시드 난수 생성기
    revenue: 기대 수익 모델
    gradient: 보정 gradient 추정
    neurodynamic: 가격별 출력 탐색
    grid_scanner: 가격 그리드 스캔
    threshold_regions: 임계 전략 구간 탐지
    optimizer: optimize 진입점
"""

from .types import (
    ForecastPoint,
    ForecastSet,
    CostParameters,
    NeurodynamicParams,
    SearchState,
    SearchStatus,
    OptimizationResult,
)
from .rng import PriceSeededGenerator
from .revenue import expected_revenue, revenue_surface
from .gradient import (
    estimate_gradient,
    competition_correction,
    utilization_correction,
    DEFAULT_CORRECTIONS,
)
from .neurodynamic import neurodynamic_search
from .grid_scanner import (
    ConvergenceStats,
    GridScanResult,
    build_price_grid,
    scan_price_grid,
)
from .threshold_regions import ThresholdRegion, detect_threshold_regions
from .optimizer import (
    BiddingOptimizationResult,
    optimize,
    optimize_from_settings,
)

__all__ = [
    "ForecastPoint",
    "ForecastSet",
    "CostParameters",
    "NeurodynamicParams",
    "SearchState",
    "SearchStatus",
    "OptimizationResult",
    "PriceSeededGenerator",
    "expected_revenue",
    "revenue_surface",
    "estimate_gradient",
    "competition_correction",
    "utilization_correction",
    "DEFAULT_CORRECTIONS",
    "neurodynamic_search",
    "ConvergenceStats",
    "GridScanResult",
    "build_price_grid",
    "scan_price_grid",
    "ThresholdRegion",
    "detect_threshold_regions",
    "BiddingOptimizationResult",
    "optimize",
    "optimize_from_settings",
]
