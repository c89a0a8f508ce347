"""
신경동역학 입찰 최적화
======================

여러 실시간 가격 예측이 주어졌을 때 발전기가 제출할 최적 일전
(가격, 출력) 쌍을 결정한다.

처리 흐름:
1. 가격 그리드 생성 (price_range, price_step)
2. 가격별 신경동역학 출력 탐색 (병렬 가능)
3. 수렴 지점 중 기대 수익 최대 지점 선택
4. 임계 전략 구간 탐지 (진단용)
5. 가격 × 출력 수익 행렬 생성
"""

import logging
from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from src.bidding.gradient import DEFAULT_CORRECTIONS, GradientCorrection
from src.bidding.grid_scanner import ConvergenceStats, build_price_grid, scan_price_grid
from src.bidding.revenue import revenue_surface
from src.bidding.threshold_regions import (
    DEFAULT_JUMP_THRESHOLD,
    ThresholdRegion,
    detect_threshold_regions,
)
from src.bidding.types import (
    CostParameters,
    ForecastSet,
    NeurodynamicParams,
    OptimizationResult,
    price_range_tuple,
)
from src.monitoring.logging_config import OptimizationMetricsLogger, log_execution
from src.utils.exceptions import InvalidInput

logger = logging.getLogger(__name__)

OPTIMIZATION_METHOD = 'neurodynamic_adaptive_grid'

# 수익 행렬 출력 축: [0.5·max_power, max_power], 2.5 간격
POWER_GRID_START_RATIO = 0.5
POWER_GRID_STEP = 2.5


def build_power_grid(
    max_power: float,
    start_ratio: float = POWER_GRID_START_RATIO,
    step: float = POWER_GRID_STEP
) -> List[float]:
    """수익 행렬용 출력 축"""
    start = max_power * start_ratio
    n_points = int(np.floor((max_power - start) / step + 1e-9)) + 1
    return [round(start + i * step, 10) for i in range(n_points)]


@dataclass
class BiddingOptimizationResult:
    """입찰 최적화 결과

    Attributes:
        optimal_price: 최적 일전 가격
        optimal_power: 최적 일전 출력
        expected_revenue: 최적점 기대 수익
        price_grid: 수렴한 그리드 가격 (오름차순)
        power_grid: 수익 행렬 출력 축
        revenue_matrix: (len(price_grid), len(power_grid)) 수익 행렬
        convergence_stats: 그리드 수렴 통계
        threshold_regions: 출력 급변 구간 (진단용)
        cost_params: 사용된 비용 파라미터
        market_stats: 예측 가격 통계
        strategy_details: 최적 가격의 탐색 결과
    """
    optimal_price: float
    optimal_power: float
    expected_revenue: float
    price_grid: List[float]
    power_grid: List[float]
    revenue_matrix: np.ndarray
    convergence_stats: ConvergenceStats
    threshold_regions: List[ThresholdRegion]
    cost_params: CostParameters
    market_stats: Dict[str, float]
    strategy_details: OptimizationResult
    optimization_method: str = OPTIMIZATION_METHOD
    grid_results: Tuple[OptimizationResult, ...] = ()
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def power_curve(self) -> Tuple[List[float], List[float]]:
        """수렴 지점의 (가격, 최적 출력) 곡선"""
        converged = sorted(
            (r for r in self.grid_results if r.converged),
            key=lambda r: r.day_ahead_price
        )
        return [r.day_ahead_price for r in converged], [r.power for r in converged]

    def to_dict(self) -> Dict[str, Any]:
        """직렬화용 딕셔너리 (금액/출력 소수점 2자리)"""
        return {
            'optimal_price': round(self.optimal_price, 2),
            'optimal_power': round(self.optimal_power, 2),
            'expected_revenue': round(self.expected_revenue, 2),
            'price_grid': list(self.price_grid),
            'power_grid': list(self.power_grid),
            'revenue_matrix': np.round(self.revenue_matrix, 2).tolist(),
            'cost_params': self.cost_params.to_dict(),
            'optimization_method': self.optimization_method,
            'convergence_stats': {
                **self.convergence_stats.to_dict(),
                'threshold_regions': len(self.threshold_regions),
            },
            'threshold_regions': [r.to_dict() for r in self.threshold_regions],
            'market_stats': {
                'avg_price': round(self.market_stats['avg_price'], 2),
                'price_range': [
                    round(self.market_stats['min_price'], 2),
                    round(self.market_stats['max_price'], 2),
                ],
            },
            'strategy_details': self.strategy_details.to_dict(),
            'created_at': self.created_at,
        }


@log_execution()
def optimize(
    forecast_set: ForecastSet,
    cost: CostParameters,
    params: NeurodynamicParams,
    price_range: Sequence[float],
    price_step: float,
    *,
    jump_threshold: float = DEFAULT_JUMP_THRESHOLD,
    corrections: Sequence[GradientCorrection] = DEFAULT_CORRECTIONS,
    executor: Optional[Executor] = None,
    max_workers: Optional[int] = None,
    deadline_s: Optional[float] = None,
) -> BiddingOptimizationResult:
    """
    최적 일전 입찰 계산

    Args:
        forecast_set: 실시간 가격 예측 (비어 있으면 안 됨)
        cost: 비용 파라미터
        params: 신경동역학 탐색 파라미터
        price_range: [최소, 최대] 일전 가격
        price_step: 가격 그리드 간격
        jump_threshold: 임계 구간 출력 급변 기준
        corrections: gradient 보정항
        executor: 그리드 map 단계 executor (선택)
        max_workers: 스레드 풀 크기 (executor가 없을 때)
        deadline_s: 그리드 스캔 시간 예산(초)

    Returns:
        BiddingOptimizationResult

    Raises:
        InvalidInput: 입력 검증 실패
        NoConvergence: 수렴한 그리드 지점이 없는 경우
    """
    if not isinstance(forecast_set, ForecastSet):
        raise InvalidInput(
            f"forecast_set must be a ForecastSet, got {type(forecast_set).__name__}"
        )

    price_min, price_max = price_range_tuple(price_range)
    grid = build_price_grid(price_min, price_max, price_step)

    scan = scan_price_grid(
        forecast_set,
        cost,
        params,
        grid,
        corrections=corrections,
        executor=executor,
        max_workers=max_workers,
        deadline_s=deadline_s,
    )

    prices, powers = scan.power_curve()
    regions = detect_threshold_regions(prices, powers, jump_threshold)

    power_grid = build_power_grid(cost.max_power)
    matrix = revenue_surface(prices, power_grid, forecast_set, cost)

    best = scan.best
    OptimizationMetricsLogger().log_convergence(scan.stats.to_dict())
    logger.info(
        f"Optimal bid: price={best.day_ahead_price:.2f}, power={best.power:.2f}, "
        f"revenue={best.objective:.2f}, threshold_regions={len(regions)}"
    )

    return BiddingOptimizationResult(
        optimal_price=best.day_ahead_price,
        optimal_power=best.power,
        expected_revenue=best.objective,
        price_grid=prices,
        power_grid=power_grid,
        revenue_matrix=matrix,
        convergence_stats=scan.stats,
        threshold_regions=regions,
        cost_params=cost,
        market_stats=forecast_set.stats(),
        strategy_details=best,
        grid_results=scan.results,
    )


def optimize_from_settings(forecast_set: ForecastSet, settings=None) -> BiddingOptimizationResult:
    """
    설정 값으로 optimize 실행

    Args:
        forecast_set: 실시간 가격 예측
        settings: OptimizationSettings (None이면 get_settings())
    """
    if settings is None:
        from src.config import get_settings
        settings = get_settings()

    return optimize(
        forecast_set,
        settings.cost_parameters(),
        settings.neurodynamic_params(),
        settings.price_range,
        settings.PRICE_GRID_STEP,
        jump_threshold=settings.JUMP_THRESHOLD,
        max_workers=settings.MAX_WORKERS,
        deadline_s=settings.SCAN_DEADLINE_S,
    )
