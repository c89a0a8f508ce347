"""
기대 수익 모델
==============

일전 (가격, 출력) 쌍에 대한 기대 수익 계산

각 예측 시점에 대해:
- 일전 수익 = daPrice·P − cost_g·P
- 실시간 가격 > daPrice: 상향 조정량 min(0.1·P, max_up) × (rt − cost_up)
- 실시간 가격 < daPrice: 하향 조정량 min(0.1·P, max_dn) × (cost_dn − rt)
- 같으면 조정 없음

결과는 전체 예측 시점의 산술 평균.
"""

from typing import Sequence, Union

import numpy as np

from src.bidding.types import CostParameters, ForecastSet
from src.utils.exceptions import InvalidInput

# 출력 대비 조정량 비율
REGULATION_SHARE = 0.1

ForecastLike = Union[ForecastSet, Sequence[float], np.ndarray]


def as_price_array(forecast_set: ForecastLike) -> np.ndarray:
    """ForecastSet 또는 가격 시퀀스를 가격 배열로 변환"""
    if isinstance(forecast_set, ForecastSet):
        return forecast_set.prices
    prices = np.asarray(forecast_set, dtype=float).flatten()
    if prices.size == 0:
        raise InvalidInput("forecast set is empty")
    return prices


def expected_revenue(
    day_ahead_price: float,
    power: float,
    forecast_set: ForecastLike,
    cost: CostParameters,
) -> float:
    """
    기대 수익 계산

    Args:
        day_ahead_price: 일전 입찰 가격
        power: 일전 입찰 출력
        forecast_set: 실시간 가격 예측
        cost: 비용 파라미터

    Returns:
        float: 예측 시점 평균 수익

    Raises:
        InvalidInput: 예측 집합이 비어 있는 경우
    """
    rt_prices = as_price_array(forecast_set)

    da_profit = day_ahead_price * power - cost.generation_cost * power

    up_quantity = min(power * REGULATION_SHARE, cost.max_up_regulation)
    down_quantity = min(power * REGULATION_SHARE, cost.max_down_regulation)

    adjustment = np.where(
        rt_prices > day_ahead_price,
        up_quantity * (rt_prices - cost.upward_cost),
        np.where(
            rt_prices < day_ahead_price,
            down_quantity * (cost.downward_cost - rt_prices),
            0.0,
        ),
    )

    return float(np.mean(da_profit + adjustment))


def revenue_surface(
    price_grid: Sequence[float],
    power_grid: Sequence[float],
    forecast_set: ForecastLike,
    cost: CostParameters,
) -> np.ndarray:
    """
    가격 × 출력 그리드 수익 행렬

    Returns:
        np.ndarray: (len(price_grid), len(power_grid)) 수익 행렬
    """
    rt_prices = as_price_array(forecast_set)
    matrix = np.empty((len(price_grid), len(power_grid)), dtype=float)
    for i, price in enumerate(price_grid):
        for j, power in enumerate(power_grid):
            matrix[i, j] = expected_revenue(price, power, rt_prices, cost)
    return matrix
