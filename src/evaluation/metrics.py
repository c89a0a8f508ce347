"""
예측 평가 지표
==============

앙상블 모델 선택/가중치 계산에 쓰이는 예측 오차 지표

주요 지표:
1. 오차: MAE, MSE, RMSE, MAPE
2. 적합도: R²
3. 방향성: Direction Accuracy (연속 시점 변화 방향 일치율)

기능:
- 개별 지표 계산
- 통합 지표 계산
- 모델 비교표 생성 (pandas)
"""

import numpy as np
import pandas as pd
from typing import Dict, List, Tuple

# 0으로 나누기 방지용 기본값
DEFAULT_EPSILON = 1e-8


# ============================================================
# 기본 평가 지표
# ============================================================

def mse(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """
    Mean Squared Error (평균 제곱 오차)

    MSE = (1/n) * Σ(y_true - y_pred)²
    """
    y_true = np.asarray(y_true, dtype=float).flatten()
    y_pred = np.asarray(y_pred, dtype=float).flatten()
    return float(np.mean((y_true - y_pred) ** 2))


def rmse(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Root Mean Squared Error (평균 제곱근 오차)"""
    return float(np.sqrt(mse(y_true, y_pred)))


def mae(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """
    Mean Absolute Error (평균 절대 오차)

    MAE = (1/n) * Σ|y_true - y_pred|
    """
    y_true = np.asarray(y_true, dtype=float).flatten()
    y_pred = np.asarray(y_pred, dtype=float).flatten()
    return float(np.mean(np.abs(y_true - y_pred)))


def mape(y_true: np.ndarray, y_pred: np.ndarray, epsilon: float = DEFAULT_EPSILON) -> float:
    """
    Mean Absolute Percentage Error (평균 절대 비율 오차)

    MAPE = (1/n) * Σ|y_true - y_pred| / max(|y_true|, ε)

    Args:
        y_true: 실제값
        y_pred: 예측값
        epsilon: 분모 하한

    Returns:
        float: MAPE (비율, 0.05 = 5%)

    Note:
        - 실제값이 0인 시점도 제외하지 않고 ε로 나눈다
    """
    y_true = np.asarray(y_true, dtype=float).flatten()
    y_pred = np.asarray(y_pred, dtype=float).flatten()
    denominator = np.maximum(np.abs(y_true), epsilon)
    return float(np.mean(np.abs(y_true - y_pred) / denominator))


def r2_score(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """
    R² Score (결정계수)

    R² = 1 - (SS_res / SS_tot)

    Returns:
        float: R² 값 (1이면 완벽한 예측, 음수 가능)
    """
    y_true = np.asarray(y_true, dtype=float).flatten()
    y_pred = np.asarray(y_pred, dtype=float).flatten()

    ss_res = np.sum((y_true - y_pred) ** 2)
    ss_tot = np.sum((y_true - np.mean(y_true)) ** 2)

    # 분산이 0인 경우 (모든 값이 동일)
    if ss_tot == 0:
        return 1.0 if ss_res == 0 else 0.0

    return float(1 - (ss_res / ss_tot))


def direction_accuracy(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """
    방향 정확도

    연속 시점 사이 예측 변화량의 부호가 실제 변화량의 부호와 같은 비율.
    길이가 1 이하이면 0.

    Example:
        >>> direction_accuracy([1, 2, 1], [1, 3, 0])
        1.0
    """
    y_true = np.asarray(y_true, dtype=float).flatten()
    y_pred = np.asarray(y_pred, dtype=float).flatten()

    if len(y_true) <= 1:
        return 0.0

    true_direction = np.sign(np.diff(y_true))
    pred_direction = np.sign(np.diff(y_pred))
    return float(np.mean(true_direction == pred_direction))


# ============================================================
# 통합 평가 함수
# ============================================================

def compute_all_metrics(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    epsilon: float = DEFAULT_EPSILON
) -> Dict[str, float]:
    """
    모든 평가 지표를 계산합니다.

    Returns:
        Dict[str, float]: MAE, MSE, RMSE, R2, MAPE, DirectionAccuracy

    Example:
        >>> metrics = compute_all_metrics(y_true, y_pred)
        >>> print(f"RMSE: {metrics['RMSE']:.2f}")
    """
    squared = mse(y_true, y_pred)
    return {
        'MAE': mae(y_true, y_pred),
        'MSE': squared,
        'RMSE': float(np.sqrt(squared)),
        'R2': r2_score(y_true, y_pred),
        'MAPE': mape(y_true, y_pred, epsilon),
        'DirectionAccuracy': direction_accuracy(y_true, y_pred),
    }


# ============================================================
# 모델 비교 함수
# ============================================================

# 높을수록 좋은 지표
HIGHER_IS_BETTER = ('R2', 'DirectionAccuracy')


def compare_models(
    results: Dict[str, Tuple[np.ndarray, np.ndarray]],
    metric_names: List[str] = None
) -> pd.DataFrame:
    """
    여러 모델의 성능을 비교합니다.

    Args:
        results: {모델명: (y_true, y_pred)} 딕셔너리
        metric_names: 비교할 지표 이름 리스트

    Returns:
        pd.DataFrame: 모델별 성능 비교표 (지표별 순위 포함)
    """
    rows = {
        model_name: compute_all_metrics(y_true, y_pred)
        for model_name, (y_true, y_pred) in results.items()
    }
    return metrics_table(rows, metric_names)


def metrics_table(
    metrics_by_model: Dict[str, Dict[str, float]],
    metric_names: List[str] = None
) -> pd.DataFrame:
    """이미 계산된 {모델명: 지표} 딕셔너리로 비교표 생성"""
    if metric_names is None:
        metric_names = ['MAE', 'RMSE', 'R2', 'MAPE', 'DirectionAccuracy']

    comparison = []
    for model_name, metrics in metrics_by_model.items():
        row = {'Model': model_name}
        for name in metric_names:
            row[name] = metrics.get(name, np.nan)
        comparison.append(row)

    df = pd.DataFrame(comparison, columns=['Model'] + list(metric_names))

    for name in metric_names:
        df[f'{name}_rank'] = df[name].rank(ascending=name not in HIGHER_IS_BETTER)

    return df
