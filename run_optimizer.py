#!/usr/bin/env python
"""
Neurodynamic Bidding Optimizer Runner
=====================================

패턴 기반 가격 예측으로 입찰 최적화를 실행하는 데모 스크립트

Usage:
------
# 기본 실행 (24시간, 설정값 사용)
python run_optimizer.py

# 모델 3개 앙상블 후 최적화
python run_optimizer.py --ensemble

# 병렬 스캔 + JSON 출력
python run_optimizer.py --workers 4 --json
"""

import argparse
import json
import sys
from datetime import datetime, timedelta
from typing import Dict

import numpy as np

from src.analysis import summarize_forecast
from src.bidding import ForecastSet, optimize_from_settings
from src.config import get_settings
from src.models import ForecastEnsembleCombiner, ModelPerformance
from src.monitoring import LogConfig, setup_logging
from src.utils.exceptions import NoConvergence


def hourly_price_pattern(hours: int, start_hour: int = 0) -> np.ndarray:
    """시간대별 기준 가격 패턴"""
    pattern = []
    for i in range(hours):
        hour = (start_hour + i) % 24
        price = 400.0
        if 8 <= hour <= 11:
            price += 50
        if 18 <= hour <= 21:
            price += 80
        if 0 <= hour <= 6:
            price -= 30
        if 13 <= hour <= 16:
            price += 30
        pattern.append(price)
    return np.array(pattern)


def synthetic_model_outputs(base: np.ndarray, rng: np.random.Generator) -> Dict[str, np.ndarray]:
    """성격이 다른 세 모델의 예측 (랜덤 노이즈, 주기 오차, 계단 오차)"""
    steps = np.arange(len(base))
    return {
        'random_forest': base + rng.uniform(-7.5, 7.5, len(base)),
        'xgboost': base + np.sin(steps * np.pi / 12) * 10,
        'linear_regression': base + (steps % 4 - 2) * 5,
    }


def main():
    parser = argparse.ArgumentParser(description='Neurodynamic Day-ahead Bidding Optimizer')
    parser.add_argument('--hours', type=int, default=24, help='Forecast horizon (hours)')
    parser.add_argument('--seed', type=int, default=None, help='Noise seed (default: current hour)')
    parser.add_argument('--ensemble', action='store_true', help='Blend three model variants first')
    parser.add_argument('--workers', type=int, default=None, help='Thread pool size for grid scan')
    parser.add_argument('--json', action='store_true', help='Print full result as JSON')
    parser.add_argument('--log-level', type=str, default=None, help='Override log level')
    args = parser.parse_args()

    settings = get_settings()
    if args.workers is not None:
        settings = settings.model_copy(update={'MAX_WORKERS': args.workers})

    log_config = settings.log_config()
    if args.log_level:
        log_config = LogConfig(level=args.log_level, format=log_config.format)
    setup_logging(log_config)

    base_time = datetime.now().replace(minute=0, second=0, microsecond=0)
    seed = args.seed if args.seed is not None else int(base_time.strftime("%Y%m%d%H"))
    rng = np.random.default_rng(seed=seed)

    base = hourly_price_pattern(args.hours, base_time.hour) + rng.normal(0, 5, args.hours)

    if args.ensemble:
        # 직전 구간을 검증 데이터로 사용
        history = hourly_price_pattern(args.hours, base_time.hour) + rng.normal(0, 5, args.hours)
        combiner = ForecastEnsembleCombiner(settings.ensemble_config())
        fitted = combiner.fit(synthetic_model_outputs(history, rng), history)
        performance = ModelPerformance.evaluate(history, fitted.blended_forecast)
        forecast = combiner.blend_to_forecast_set(
            synthetic_model_outputs(base, rng), start=base_time, freq=timedelta(hours=1)
        )
        print("Ensemble weights:")
        for name, weight in fitted.weights.items():
            print(f"   {name:20} {weight:.4f}")
    else:
        history = None
        performance = None
        forecast = ForecastSet.from_prices(base.tolist(), start=base_time, freq=timedelta(hours=1))

    summary = summarize_forecast(forecast, history, performance)

    try:
        result = optimize_from_settings(forecast, settings)
    except NoConvergence as e:
        print(f"Optimization failed: {e}", file=sys.stderr)
        print(f"Convergence stats: {e.convergence_stats}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps({
            'optimization': result.to_dict(),
            'analysis': summary.to_dict(),
        }, ensure_ascii=False, indent=2))
        return 0

    stats = result.convergence_stats
    print("=" * 60)
    print("Neurodynamic Bidding Optimization")
    print("=" * 60)
    print(f"Forecast avg price : {summary.avg_predicted_price:.2f}")
    print(f"Volatility / Risk  : {summary.volatility_level.value} / {summary.risk_level.value}")
    print(f"Optimal price      : {result.optimal_price:.2f}")
    print(f"Optimal power      : {result.optimal_power:.2f}")
    print(f"Expected revenue   : {result.expected_revenue:,.2f}")
    print(f"Converged points   : {stats.converged_points}/{stats.total_points} "
          f"({stats.converged_ratio:.1%})")
    print(f"Threshold regions  : {len(result.threshold_regions)}")
    for region in result.threshold_regions:
        print(f"   [{region.start:.1f}, {region.end:.1f}]")
    if summary.model_quality is not None:
        quality = summary.model_quality
        print(f"Model quality      : {quality.overall_score} "
              f"(MAE {quality.mae_performance.value}, R2 {quality.r2_performance.value})")
    for advice in summary.recommendations:
        print(f"- {advice}")
    for factor in summary.risk_factors:
        print(f"! {factor}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
