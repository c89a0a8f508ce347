"""
수익 gradient 추정
==================

출력에 대한 기대 수익의 중앙 차분 gradient와 보정항.

보정항:
1. 경쟁 효과 - daPrice > cost_g + 5 일 때 가격 의존적 압력
2. 출력 활용도 - 최소/최대 출력 부근의 코너 해를 회피

보정항은 (day_ahead_price, power, cost) -> float 호출 가능 객체로,
다른 페널티 함수로 교체할 수 있다.
"""

import math
from typing import Callable, Sequence

from src.bidding.revenue import ForecastLike, as_price_array, expected_revenue
from src.bidding.types import CostParameters

FINITE_DIFFERENCE_STEP = 0.01

GradientCorrection = Callable[[float, float, CostParameters], float]


def competition_correction(day_ahead_price: float, power: float, cost: CostParameters) -> float:
    """경쟁 효과 보정"""
    margin = day_ahead_price - cost.generation_cost - 5
    if margin <= 0:
        return 0.0
    return -0.1 * margin * math.sin(day_ahead_price / 10)


def utilization_correction(day_ahead_price: float, power: float, cost: CostParameters) -> float:
    """출력 활용도 보정

    ratio < 0.2 이면 출력을 올리는 방향, ratio > 0.8 이면 내리는 방향.
    """
    ratio = power / cost.max_power
    if ratio < 0.2:
        return 0.2 * (0.2 - ratio) * math.exp(-5 * ratio)
    if ratio > 0.8:
        return -0.15 * (ratio - 0.8) * (1 + math.sin(day_ahead_price / 8))
    return 0.0


DEFAULT_CORRECTIONS = (competition_correction, utilization_correction)


def estimate_gradient(
    day_ahead_price: float,
    power: float,
    forecast_set: ForecastLike,
    cost: CostParameters,
    corrections: Sequence[GradientCorrection] = DEFAULT_CORRECTIONS,
    step: float = FINITE_DIFFERENCE_STEP,
) -> float:
    """
    보정된 수익 gradient

    Args:
        day_ahead_price: 일전 가격
        power: 현재 출력
        forecast_set: 실시간 가격 예측
        cost: 비용 파라미터
        corrections: 보정항 목록 (빈 목록이면 순수 중앙 차분)
        step: 차분 간격 h

    Returns:
        float: (R(P+h) - R(P-h)) / 2h + Σ 보정항
    """
    prices = as_price_array(forecast_set)
    f_plus = expected_revenue(day_ahead_price, power + step, prices, cost)
    f_minus = expected_revenue(day_ahead_price, power - step, prices, cost)

    grad = (f_plus - f_minus) / (2 * step)
    for correction in corrections:
        grad += correction(day_ahead_price, power, cost)

    return grad
