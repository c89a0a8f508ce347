"""
Evaluation Module
=================
앙상블 모델 평가 지표

주요 구성요소:
- 기본 지표: MAE, MSE, RMSE, MAPE, R²
- 방향 정확도
- 모델 비교표
"""

from .metrics import (
    # 기본 평가 지표
    mse,
    rmse,
    mae,
    mape,
    r2_score,
    direction_accuracy,

    # 통합 평가
    compute_all_metrics,

    # 모델 비교
    compare_models,
    metrics_table,
)

__all__ = [
    'mse',
    'rmse',
    'mae',
    'mape',
    'r2_score',
    'direction_accuracy',
    'compute_all_metrics',
    'compare_models',
    'metrics_table',
]
