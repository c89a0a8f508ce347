"""
신경동역학 출력 탐색
====================

고정된 일전 가격에서 기대 수익을 최대화하는 출력을 찾는 지역 최적화

- 모멘텀 + 적응 학습률 + 감쇠 노이즈
- 모든 난수는 일전 가격으로 시드된 PriceSeededGenerator에서 추출
- SearchState는 루프 안에서 값으로만 전달되며 공유되지 않음

상태 전이:
    INITIALIZING -> ITERATING -> {CONVERGED, STALLED, DIVERGED, EXHAUSTED}
"""

import logging
import math
from dataclasses import replace
from typing import List, Sequence, Tuple

from src.bidding.gradient import DEFAULT_CORRECTIONS, GradientCorrection, estimate_gradient
from src.bidding.revenue import ForecastLike, as_price_array, expected_revenue
from src.bidding.rng import PriceSeededGenerator
from src.bidding.types import (
    CostParameters,
    NeurodynamicParams,
    OptimizationResult,
    SearchState,
    SearchStatus,
)

logger = logging.getLogger(__name__)


def clamp_power(power: float, max_power: float) -> float:
    return max(0.0, min(power, max_power))


def initial_power(
    day_ahead_price: float,
    cost: CostParameters,
    rng: PriceSeededGenerator,
) -> Tuple[float, PriceSeededGenerator]:
    """
    초기 출력 휴리스틱

    - daPrice > cost_g + 20: max_power × [0.7, 0.9]
    - daPrice > cost_g:      max_power × [0.4, 0.7]
    - 그 외:                  max_power × [0.1, 0.3]

    이후 sin(daPrice/cost_g · π) · max_power · 0.1 섭동을 더하고 클램프.
    """
    if day_ahead_price > cost.generation_cost + 20:
        low, span = 0.7, 0.2
    elif day_ahead_price > cost.generation_cost:
        low, span = 0.4, 0.3
    else:
        low, span = 0.1, 0.2

    u, rng = rng.draw()
    power = cost.max_power * (low + span * u)

    price_ratio = day_ahead_price / cost.generation_cost
    power += math.sin(price_ratio * math.pi) * cost.max_power * 0.1

    return clamp_power(power, cost.max_power), rng


def adaptive_learning_rate(
    iteration: int,
    grad: float,
    day_ahead_price: float,
    params: NeurodynamicParams,
) -> float:
    """반복 횟수, gradient 크기, 가격에 따른 학습률"""
    grad_magnitude = abs(grad)
    eta = params.eta_base * math.exp(-iteration / 1000)

    if grad_magnitude > 1:
        eta *= 0.5
    elif grad_magnitude < 0.1:
        eta *= 1.5

    eta *= 0.8 + 0.4 * day_ahead_price / 400

    return max(eta, params.eta_min)


def exploration_noise(
    iteration: int,
    day_ahead_price: float,
    max_power: float,
    params: NeurodynamicParams,
    rng: PriceSeededGenerator,
) -> Tuple[float, PriceSeededGenerator]:
    """감쇠 랜덤 노이즈 + 가격 의존 결정론적 노이즈"""
    strength = params.noise_factor * max_power * math.sqrt(1 - iteration / params.max_iter)
    price_based = 0.01 * max_power * math.sin(day_ahead_price / 20) * math.cos(iteration / 50)

    u, rng = rng.draw()
    return (u - 0.5) * 2 * strength + price_based, rng


def neurodynamic_search(
    day_ahead_price: float,
    forecast_set: ForecastLike,
    cost: CostParameters,
    params: NeurodynamicParams,
    corrections: Sequence[GradientCorrection] = DEFAULT_CORRECTIONS,
    record_trajectory: bool = False,
) -> OptimizationResult:
    """
    단일 일전 가격에 대한 출력 최적화

    Args:
        day_ahead_price: 일전 가격
        forecast_set: 실시간 가격 예측
        cost: 비용 파라미터
        params: 탐색 파라미터
        corrections: gradient 보정항
        record_trajectory: 반복별 제안 출력 기록 여부

    Returns:
        OptimizationResult: 최선 출력/목적값 (마지막 반복값이 아닐 수 있음)
    """
    prices = as_price_array(forecast_set)
    rng = PriceSeededGenerator.from_price(day_ahead_price)

    power, rng = initial_power(day_ahead_price, cost, rng)
    state = SearchState(power=power, best_power=power)
    trajectory: List[float] = []

    status = SearchStatus.ITERATING
    iterations = 0

    for iteration in range(params.max_iter):
        iterations = iteration + 1

        grad = estimate_gradient(day_ahead_price, state.power, prices, cost, corrections)
        if not math.isfinite(grad):
            status = SearchStatus.DIVERGED
            break

        eta = adaptive_learning_rate(iteration, grad, day_ahead_price, params)
        noise, rng = exploration_noise(iteration, day_ahead_price, cost.max_power, params, rng)

        velocity = params.momentum * state.velocity + eta * grad
        proposed = clamp_power(state.power + velocity + noise, cost.max_power)
        if record_trajectory:
            trajectory.append(proposed)

        objective = expected_revenue(day_ahead_price, proposed, prices, cost)
        if not math.isfinite(objective):
            status = SearchStatus.DIVERGED
            break

        if objective > state.best_objective:
            state = replace(state, best_power=proposed, best_objective=objective, no_improve_count=0)
        else:
            state = replace(state, no_improve_count=state.no_improve_count + 1)

        step = abs(proposed - state.power)
        state = replace(state, power=proposed, velocity=velocity, iteration=iteration)

        if step < params.tolerance:
            status = SearchStatus.CONVERGED
            break

        if state.no_improve_count >= params.patience:
            status = SearchStatus.STALLED
            break

    if status is SearchStatus.ITERATING:
        status = SearchStatus.EXHAUSTED

    logger.debug(
        f"Search at da_price={day_ahead_price}: status={status.value}, "
        f"iterations={iterations}, power={state.best_power:.4f}, "
        f"objective={state.best_objective:.4f}"
    )

    return OptimizationResult(
        day_ahead_price=day_ahead_price,
        power=state.best_power,
        objective=state.best_objective,
        converged=status.is_converged,
        iterations=iterations,
        status=status,
        trajectory=tuple(trajectory),
    )
