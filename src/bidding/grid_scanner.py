"""
일전 가격 그리드 스캔
=====================

고정 간격 가격 그리드의 각 지점에서 신경동역학 탐색을 수행하고
수렴한 지점 중 기대 수익이 최대인 지점을 전역 최적 입찰로 선택한다.

그리드 지점들은 서로 독립적이므로 map(병렬 가능) → reduce(순차) 구조로
계산한다. executor를 넘기면 해당 executor의 map을 사용한다.
"""

import logging
import math
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any, Dict, List, Optional, Sequence, Tuple

from src.bidding.gradient import DEFAULT_CORRECTIONS, GradientCorrection
from src.bidding.neurodynamic import neurodynamic_search
from src.bidding.revenue import ForecastLike, as_price_array
from src.bidding.types import (
    CostParameters,
    NeurodynamicParams,
    OptimizationResult,
    SearchStatus,
)
from src.monitoring.logging_config import LogContext
from src.utils.exceptions import InvalidInput, NoConvergence

logger = logging.getLogger(__name__)


def build_price_grid(price_min: float, price_max: float, step: float) -> Tuple[float, ...]:
    """
    [price_min, price_max] 고정 간격 그리드 (양 끝 포함)

    Example:
        >>> len(build_price_grid(350, 500, 2))
        76
    """
    if not (math.isfinite(price_min) and math.isfinite(price_max)):
        raise InvalidInput("price bounds must be finite")
    if not math.isfinite(step) or step <= 0:
        raise InvalidInput(f"price grid step must be positive, got {step}")
    if price_min > price_max:
        raise InvalidInput(f"price_min ({price_min}) exceeds price_max ({price_max})")

    n_points = int(math.floor((price_max - price_min) / step + 1e-9)) + 1
    return tuple(round(price_min + i * step, 10) for i in range(n_points))


@dataclass(frozen=True)
class ConvergenceStats:
    """그리드 수렴 통계"""
    total_points: int
    converged_points: int
    skipped_points: int = 0

    @property
    def converged_ratio(self) -> float:
        if self.total_points == 0:
            return 0.0
        return self.converged_points / self.total_points

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_points': self.total_points,
            'converged_points': self.converged_points,
            'converged_ratio': self.converged_ratio,
            'skipped_points': self.skipped_points,
        }


@dataclass(frozen=True)
class GridScanResult:
    """그리드 스캔 결과

    Attributes:
        results: 그리드 순서의 가격별 탐색 결과
        best: 수렴 지점 중 목적값 최대 결과
        stats: 수렴 통계
    """
    results: Tuple[OptimizationResult, ...]
    best: OptimizationResult
    stats: ConvergenceStats

    @property
    def converged_results(self) -> List[OptimizationResult]:
        return [r for r in self.results if r.converged]

    def power_curve(self) -> Tuple[List[float], List[float]]:
        """수렴 지점의 가격순 (가격, 출력) 곡선"""
        ordered = sorted(self.converged_results, key=lambda r: r.day_ahead_price)
        return [r.day_ahead_price for r in ordered], [r.power for r in ordered]


def _search_grid_point(
    day_ahead_price: float,
    forecast_set: ForecastLike,
    cost: CostParameters,
    params: NeurodynamicParams,
    corrections: Sequence[GradientCorrection],
    deadline: Optional[float],
    log_context: Dict[str, Any],
) -> OptimizationResult:
    if deadline is not None and time.monotonic() > deadline:
        return OptimizationResult(
            day_ahead_price=day_ahead_price,
            power=0.0,
            objective=float('-inf'),
            converged=False,
            iterations=0,
            status=SearchStatus.SKIPPED,
        )
    # 워커 스레드에는 호출 스레드의 로그 컨텍스트가 없으므로 다시 진입
    with LogContext.scope(**log_context):
        return neurodynamic_search(day_ahead_price, forecast_set, cost, params, corrections)


def scan_price_grid(
    forecast_set: ForecastLike,
    cost: CostParameters,
    params: NeurodynamicParams,
    price_grid: Sequence[float],
    corrections: Sequence[GradientCorrection] = DEFAULT_CORRECTIONS,
    executor: Optional[Executor] = None,
    max_workers: Optional[int] = None,
    deadline_s: Optional[float] = None,
) -> GridScanResult:
    """
    가격 그리드 전체 탐색

    Args:
        forecast_set: 실시간 가격 예측
        cost: 비용 파라미터
        params: 탐색 파라미터
        price_grid: 일전 가격 후보
        corrections: gradient 보정항
        executor: map 단계에 사용할 executor (선택)
        max_workers: executor가 없을 때 스레드 풀 크기 (1 이하면 순차)
        deadline_s: 스캔 시간 예산(초). 초과 후 시작되는 지점은 SKIPPED

    Returns:
        GridScanResult

    Raises:
        InvalidInput: 그리드가 비어 있는 경우
        NoConvergence: 수렴한 지점이 하나도 없는 경우
    """
    grid = [float(p) for p in price_grid]
    if not grid:
        raise InvalidInput("price grid is empty")

    prices = as_price_array(forecast_set)
    deadline = time.monotonic() + deadline_s if deadline_s is not None else None
    log_context = {**LogContext.get(), 'grid_size': len(grid), 'price_range': [grid[0], grid[-1]]}
    search = partial(
        _search_grid_point,
        forecast_set=prices,
        cost=cost,
        params=params,
        corrections=tuple(corrections),
        deadline=deadline,
        log_context=log_context,
    )

    with LogContext.scope(**log_context):
        started = time.monotonic()

        # map: 지점별 독립 탐색
        if executor is not None:
            results = list(executor.map(search, grid))
        elif max_workers is not None and max_workers > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                results = list(pool.map(search, grid))
        else:
            results = list(map(search, grid))

        # reduce: 수렴 지점 중 최대 목적값 (동률이면 낮은 가격 우선)
        converged = [r for r in results if r.converged]
        skipped = sum(1 for r in results if r.status is SearchStatus.SKIPPED)
        stats = ConvergenceStats(
            total_points=len(results),
            converged_points=len(converged),
            skipped_points=skipped,
        )

        elapsed = time.monotonic() - started
        if skipped:
            logger.warning(
                f"Grid scan deadline reached: {skipped}/{len(results)} points skipped"
            )
        logger.info(
            f"Grid scan finished in {elapsed:.2f}s: "
            f"{stats.converged_points}/{stats.total_points} converged"
        )

        if not converged:
            raise NoConvergence(
                f"No grid point converged ({stats.total_points} points, "
                f"{params.max_iter} max iterations)",
                convergence_stats=stats.to_dict(),
            )

        best = max(converged, key=lambda r: r.objective)

    return GridScanResult(results=tuple(results), best=best, stats=stats)
