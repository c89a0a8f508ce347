"""
가격 그리드 스캔 / 임계 구간 / 최적화 진입점 테스트
"""

import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import numpy as np
import pytest

# 프로젝트 루트 추가
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.bidding.grid_scanner import ConvergenceStats, build_price_grid, scan_price_grid
from src.bidding.optimizer import (
    OPTIMIZATION_METHOD,
    BiddingOptimizationResult,
    build_power_grid,
    optimize,
)
from src.bidding.threshold_regions import detect_threshold_regions, merge_windows
from src.bidding.types import CostParameters, ForecastSet, NeurodynamicParams, SearchStatus
from src.monitoring.logging_config import LogContext
from src.utils.exceptions import InvalidInput, NoConvergence


@pytest.fixture
def cost():
    return CostParameters(
        generation_cost=375.0,
        upward_cost=530.0,
        downward_cost=310.0,
        max_power=100.0,
    )


@pytest.fixture
def flat_forecast():
    """실시간 가격 500 고정"""
    return ForecastSet.from_prices([500.0] * 24)


@pytest.fixture
def pattern_forecast():
    hours = np.arange(24)
    return ForecastSet.from_prices((420 + 40 * np.sin(hours * np.pi / 12)).tolist())


# ============================================================
# 그리드 생성
# ============================================================

class TestPriceGrid:
    """가격/출력 그리드 테스트"""

    def test_default_grid_size(self):
        """350~500, 간격 2 → 76 지점"""
        grid = build_price_grid(350, 500, 2)

        assert len(grid) == 76
        assert grid[0] == 350
        assert grid[-1] == 500

    def test_partial_last_step(self):
        """마지막 간격이 모자라면 max 미포함"""
        assert build_price_grid(0, 1, 0.3) == (0.0, 0.3, 0.6, 0.9)

    def test_single_point(self):
        assert build_price_grid(400, 400, 2) == (400.0,)

    @pytest.mark.parametrize('args', [(350, 500, 0), (350, 500, -2), (500, 350, 2)])
    def test_invalid_grid(self, args):
        """잘못된 그리드 인자"""
        with pytest.raises(InvalidInput):
            build_price_grid(*args)

    def test_power_grid(self):
        """수익 행렬 출력 축: 50~100, 2.5 간격"""
        grid = build_power_grid(100)

        assert len(grid) == 21
        assert grid[0] == 50
        assert grid[-1] == 100


# ============================================================
# 그리드 스캔
# ============================================================

class TestGridScan:
    """scan_price_grid 테스트"""

    def test_best_is_max_converged(self, cost, pattern_forecast):
        """전역 최적 = 수렴 지점 중 목적값 최대"""
        grid = build_price_grid(380, 460, 10)
        scan = scan_price_grid(pattern_forecast, cost, NeurodynamicParams(), grid)

        assert scan.stats.total_points == len(grid)
        assert scan.stats.converged_points == len(scan.converged_results)
        assert scan.best.converged
        assert scan.best.objective == max(r.objective for r in scan.converged_results)

    def test_results_in_grid_order(self, cost, pattern_forecast):
        grid = build_price_grid(400, 420, 5)
        scan = scan_price_grid(pattern_forecast, cost, NeurodynamicParams(max_iter=200), grid)

        assert [r.day_ahead_price for r in scan.results] == list(grid)

    def test_no_convergence(self, cost, pattern_forecast):
        """max_iter = 0 이면 NoConvergence"""
        grid = build_price_grid(350, 500, 2)

        with pytest.raises(NoConvergence) as exc_info:
            scan_price_grid(pattern_forecast, cost, NeurodynamicParams(max_iter=0), grid)

        assert exc_info.value.convergence_stats['total_points'] == 76
        assert exc_info.value.convergence_stats['converged_points'] == 0

    def test_empty_grid(self, cost, pattern_forecast):
        with pytest.raises(InvalidInput):
            scan_price_grid(pattern_forecast, cost, NeurodynamicParams(), [])

    def test_executor_matches_sequential(self, cost, pattern_forecast):
        """executor 병렬 스캔 결과 = 순차 결과"""
        grid = build_price_grid(390, 450, 5)
        params = NeurodynamicParams()

        sequential = scan_price_grid(pattern_forecast, cost, params, grid)
        with ThreadPoolExecutor(max_workers=3) as pool:
            parallel = scan_price_grid(pattern_forecast, cost, params, grid, executor=pool)

        assert parallel.results == sequential.results
        assert parallel.best == sequential.best

    def test_max_workers_matches_sequential(self, cost, pattern_forecast):
        grid = build_price_grid(390, 450, 5)
        params = NeurodynamicParams()

        sequential = scan_price_grid(pattern_forecast, cost, params, grid)
        threaded = scan_price_grid(pattern_forecast, cost, params, grid, max_workers=4)

        assert threaded.results == sequential.results

    def test_log_context_in_workers(self, cost, flat_forecast):
        """워커 스레드 탐색에도 grid_size/price_range 컨텍스트 유지"""
        grid = build_price_grid(490, 500, 5)
        seen = []

        def record_context(day_ahead_price, power, cost_params):
            seen.append(LogContext.get())
            return 0.0

        scan_price_grid(
            flat_forecast, cost, NeurodynamicParams(), grid,
            corrections=(record_context,), max_workers=2,
        )

        assert seen
        assert all(ctx['grid_size'] == 3 for ctx in seen)
        assert all(ctx['price_range'] == [490.0, 500.0] for ctx in seen)
        assert 'grid_size' not in LogContext.get()

    def test_deadline_skips_points(self, cost, pattern_forecast):
        """deadline 초과 후 시작하는 지점은 SKIPPED"""
        grid = build_price_grid(400, 420, 5)

        with pytest.raises(NoConvergence) as exc_info:
            scan_price_grid(pattern_forecast, cost, NeurodynamicParams(), grid, deadline_s=0.0)

        stats = exc_info.value.convergence_stats
        assert stats['skipped_points'] == len(grid)
        assert stats['converged_points'] == 0

    def test_generous_deadline(self, cost, flat_forecast):
        """여유 있는 deadline이면 건너뛰는 지점 없음"""
        grid = build_price_grid(490, 500, 5)
        scan = scan_price_grid(flat_forecast, cost, NeurodynamicParams(), grid, deadline_s=600.0)

        assert scan.stats.skipped_points == 0
        assert all(r.status is not SearchStatus.SKIPPED for r in scan.results)


class TestConvergenceStats:
    """수렴 통계 테스트"""

    def test_ratio(self):
        stats = ConvergenceStats(total_points=76, converged_points=38)

        assert stats.converged_ratio == 0.5
        assert stats.to_dict()['skipped_points'] == 0

    def test_ratio_empty(self):
        assert ConvergenceStats(total_points=0, converged_points=0).converged_ratio == 0.0


# ============================================================
# 임계 전략 구간
# ============================================================

class TestThresholdRegions:
    """출력 급변 구간 탐지 테스트"""

    def test_smooth_curve_has_no_regions(self):
        """완만한 단조 곡선 → 구간 없음"""
        prices = [350 + 2 * i for i in range(20)]
        powers = [50 + 0.5 * i for i in range(20)]

        assert detect_threshold_regions(prices, powers, 5.0) == []

    def test_default_grid_monotone_curve(self):
        """76 지점 그리드 + 급변 없는 비감소 곡선 → 구간 없음"""
        prices = list(build_price_grid(350, 500, 2))
        powers = [min(100.0, 40 + 4.0 * i) for i in range(len(prices))]

        assert len(prices) == 76
        assert detect_threshold_regions(prices, powers) == []

    def test_single_jump_merged(self):
        """한 번의 급변 → 인접 창 두 개가 하나로 병합"""
        prices = [350 + 2 * i for i in range(10)]
        powers = [10.0] * 5 + [50.0] * 5

        regions = detect_threshold_regions(prices, powers, 5.0)

        assert len(regions) == 1
        assert regions[0].start == 354
        assert regions[0].end == 364
        assert regions[0].centers == (358, 360)

    def test_separate_jumps(self):
        """떨어진 급변 → 구간 두 개"""
        prices = list(range(20))
        powers = [10.0] * 5 + [50.0] * 10 + [10.0] * 5

        regions = detect_threshold_regions(prices, powers, 5.0)

        assert [(r.start, r.end) for r in regions] == [(2, 7), (12, 17)]

    def test_window_clamped_at_edges(self):
        """그리드 경계에서 창 클램프"""
        regions = detect_threshold_regions([0, 1, 2, 3], [0, 0, 20, 20], 5.0)

        assert regions[0].start == 0
        assert regions[0].end == 3

    def test_too_short(self):
        """내부 지점이 없으면 빈 결과"""
        assert detect_threshold_regions([1, 2], [0, 100], 5.0) == []

    def test_invalid_input(self):
        with pytest.raises(InvalidInput):
            detect_threshold_regions([1, 2, 3], [1, 2], 5.0)
        with pytest.raises(InvalidInput):
            detect_threshold_regions([3, 2, 1], [1, 2, 3], 5.0)

    def test_merge_touching_windows(self):
        """경계가 맞닿은 창도 병합"""
        regions = merge_windows([(3, 5, 4), (1, 3, 2)])

        assert len(regions) == 1
        assert (regions[0].start, regions[0].end) == (1, 5)
        assert regions[0].to_dict()['center'] == 2


# ============================================================
# 최적화 진입점
# ============================================================

class TestOptimize:
    """optimize 테스트"""

    def test_flat_forecast_scenario(self, cost, flat_forecast):
        """실시간 500 고정 → (500, 100) 입찰, 수익 12500"""
        result = optimize(flat_forecast, cost, NeurodynamicParams(), [490, 500], 5)

        assert isinstance(result, BiddingOptimizationResult)
        assert result.optimal_price == 500
        assert result.optimal_power == pytest.approx(100.0)
        assert result.expected_revenue == pytest.approx(12500.0)
        assert result.optimization_method == OPTIMIZATION_METHOD

    def test_result_shapes(self, cost, pattern_forecast):
        """수익 행렬 = 수렴 가격 × 출력 축"""
        result = optimize(pattern_forecast, cost, NeurodynamicParams(), [380, 460], 10)

        assert result.revenue_matrix.shape == (len(result.price_grid), len(result.power_grid))
        assert result.price_grid == sorted(result.price_grid)
        assert result.convergence_stats.total_points == 9
        assert result.strategy_details.day_ahead_price == result.optimal_price

        prices, powers = result.power_curve()
        assert prices == result.price_grid
        assert len(powers) == len(prices)

    def test_to_dict(self, cost, pattern_forecast):
        """직렬화 형식"""
        data = optimize(pattern_forecast, cost, NeurodynamicParams(), [400, 440], 10).to_dict()

        assert set(data) >= {
            'optimal_price', 'optimal_power', 'expected_revenue', 'price_grid',
            'power_grid', 'revenue_matrix', 'convergence_stats', 'threshold_regions',
            'market_stats', 'strategy_details', 'optimization_method',
        }
        assert data['optimal_power'] == round(data['optimal_power'], 2)
        assert 'threshold_regions' in data['convergence_stats']
        assert len(data['market_stats']['price_range']) == 2

    def test_requires_forecast_set(self, cost):
        with pytest.raises(InvalidInput):
            optimize([500.0, 500.0], cost, NeurodynamicParams(), [350, 500], 2)

    def test_invalid_price_range(self, cost, flat_forecast):
        with pytest.raises(InvalidInput):
            optimize(flat_forecast, cost, NeurodynamicParams(), [500, 350], 2)

    def test_no_convergence_propagates(self, cost, flat_forecast):
        """기본 입찰값으로 대체하지 않음"""
        with pytest.raises(NoConvergence):
            optimize(flat_forecast, cost, NeurodynamicParams(max_iter=0), [350, 500], 2)
