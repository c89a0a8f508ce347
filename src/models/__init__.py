"""
Models Module
=============
가격 예측 모델 결합

MODEL-011: Forecast Ensemble (simple/weighted average, voting, optimal)
"""

from .ensemble import (
    EnsembleConfig,
    EnsembleResult,
    ModelPerformance,
    ForecastEnsembleCombiner,
    combine_forecasts,
    simple_average_weights,
    inverse_mae_weights,
    voting_weights,
    optimal_weights,
)

__all__ = [
    'EnsembleConfig',
    'EnsembleResult',
    'ModelPerformance',
    'ForecastEnsembleCombiner',
    'combine_forecasts',
    'simple_average_weights',
    'inverse_mae_weights',
    'voting_weights',
    'optimal_weights',
]
