"""
예측 앙상블 결합기
==================

여러 가격 예측 모델의 원시 예측을 검증 실측값과 비교해 성능을 평가하고,
모델을 선택한 뒤 성능 기반 가중 평균으로 하나의 예측을 만든다.

주요 기능:
1. 모델별 성능 평가 - MAE, RMSE, R², MAPE, 방향 정확도
2. 모델 선택 - all / threshold / top_k (+ 최소 모델 수 보장)
3. 가중치 계산 - simple_average / weighted_average / voting / optimal
4. 학습된 가중치로 미래 예측 결합 → ForecastSet

개별 예측 모델의 학습은 다루지 않는다 (숫자 시퀀스를 내는 블랙박스).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.optimize import minimize

from src.bidding.types import DEFAULT_CONFIDENCE_MARGIN, ForecastSet
from src.evaluation.metrics import DEFAULT_EPSILON, compute_all_metrics, metrics_table
from src.monitoring.logging_config import LogContext, OptimizationMetricsLogger, log_execution
from src.utils.exceptions import InvalidInput

logger = logging.getLogger(__name__)

SELECTION_METHODS = ('all', 'threshold', 'top_k')
ENSEMBLE_METHODS = ('simple_average', 'weighted_average', 'voting', 'optimal')


@dataclass(frozen=True)
class EnsembleConfig:
    """앙상블 설정

    Attributes:
        selection_method: all, threshold, top_k
        ensemble_method: simple_average, weighted_average, voting, optimal
        top_k: top_k 선택 시 모델 수
        max_mae: threshold 선택 MAE 상한 (None이면 제한 없음)
        max_rmse: threshold 선택 RMSE 상한
        min_r2: threshold 선택 R² 하한
        exclude_models: 후보에서 제외할 모델
        min_models: 최소 선택 모델 수 (미달 시 MAE 상위 모델로 대체)
        epsilon: 0으로 나누기 방지
    """
    selection_method: str = 'all'
    ensemble_method: str = 'weighted_average'
    top_k: int = 3
    max_mae: Optional[float] = None
    max_rmse: Optional[float] = None
    min_r2: Optional[float] = None
    exclude_models: Tuple[str, ...] = ()
    min_models: int = 1
    epsilon: float = DEFAULT_EPSILON

    def __post_init__(self):
        if self.selection_method not in SELECTION_METHODS:
            raise InvalidInput(f"Unknown selection method: {self.selection_method}")
        if self.ensemble_method not in ENSEMBLE_METHODS:
            raise InvalidInput(f"Unknown ensemble method: {self.ensemble_method}")
        if self.top_k < 1:
            raise InvalidInput(f"top_k must be >= 1, got {self.top_k}")
        if self.min_models < 1:
            raise InvalidInput(f"min_models must be >= 1, got {self.min_models}")
        if self.epsilon <= 0:
            raise InvalidInput("epsilon must be positive")
        object.__setattr__(self, 'exclude_models', tuple(self.exclude_models))


@dataclass(frozen=True)
class ModelPerformance:
    """검증 구간 모델 성능"""
    mae: float
    mse: float
    rmse: float
    r2: float
    mape: float
    direction_accuracy: float

    @classmethod
    def evaluate(
        cls,
        y_true: np.ndarray,
        y_pred: np.ndarray,
        epsilon: float = DEFAULT_EPSILON
    ) -> 'ModelPerformance':
        metrics = compute_all_metrics(y_true, y_pred, epsilon)
        return cls(
            mae=metrics['MAE'],
            mse=metrics['MSE'],
            rmse=metrics['RMSE'],
            r2=metrics['R2'],
            mape=metrics['MAPE'],
            direction_accuracy=metrics['DirectionAccuracy'],
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            'MAE': self.mae,
            'MSE': self.mse,
            'RMSE': self.rmse,
            'R2': self.r2,
            'MAPE': self.mape,
            'DirectionAccuracy': self.direction_accuracy,
        }


@dataclass
class EnsembleResult:
    """앙상블 학습 결과"""
    selected_models: List[str]
    weights: Dict[str, float]
    performance_per_model: Dict[str, ModelPerformance]
    blended_forecast: np.ndarray
    ensemble_method: str = 'weighted_average'
    used_fallback: bool = False
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def performance_table(self) -> pd.DataFrame:
        """모델별 성능 비교표 (선택 여부, 가중치 포함)"""
        df = metrics_table({
            name: perf.to_dict() for name, perf in self.performance_per_model.items()
        })
        df['selected'] = df['Model'].isin(self.selected_models)
        df['weight'] = df['Model'].map(self.weights).fillna(0.0)
        return df

    def to_dict(self) -> Dict[str, Any]:
        return {
            'selected_models': list(self.selected_models),
            'weights': dict(self.weights),
            'performance_per_model': {
                name: perf.to_dict() for name, perf in self.performance_per_model.items()
            },
            'blended_forecast': self.blended_forecast.tolist(),
            'ensemble_method': self.ensemble_method,
            'used_fallback': self.used_fallback,
            'created_at': self.created_at,
        }


# ============================================================
# 입력 검증
# ============================================================

def _as_series(name: str, values: Sequence[float]) -> np.ndarray:
    array = np.asarray(values, dtype=float)
    if array.ndim != 1:
        array = array.flatten()
    if array.size == 0:
        raise InvalidInput(f"{name} is empty")
    if not np.all(np.isfinite(array)):
        raise InvalidInput(f"{name} contains non-finite values")
    return array


def _prepare_predictions(
    model_predictions: Mapping[str, Sequence[float]],
    expected_length: Optional[int] = None,
) -> Dict[str, np.ndarray]:
    if not model_predictions:
        raise InvalidInput("at least one model prediction is required")

    predictions = {}
    for name, values in model_predictions.items():
        series = _as_series(f"predictions of '{name}'", values)
        if expected_length is None:
            expected_length = len(series)
        elif len(series) != expected_length:
            raise InvalidInput(
                f"predictions of '{name}' have length {len(series)}, expected {expected_length}"
            )
        predictions[name] = series
    return predictions


# ============================================================
# 가중치 계산
# ============================================================

def _normalize(weights: np.ndarray) -> np.ndarray:
    weights = np.clip(np.asarray(weights, dtype=float), 0.0, None)
    total = weights.sum()
    if total <= 0:
        return np.full(len(weights), 1.0 / len(weights))
    return weights / total


def simple_average_weights(n_models: int) -> np.ndarray:
    """균등 가중치 1/n"""
    return np.full(n_models, 1.0 / n_models)


def inverse_mae_weights(maes: Sequence[float], epsilon: float = DEFAULT_EPSILON) -> np.ndarray:
    """가중치 ∝ 1/(MAE + ε) (오차가 작은 모델이 우세)"""
    inverse = 1.0 / (np.asarray(maes, dtype=float) + epsilon)
    return _normalize(inverse)


def voting_weights(preds_array: np.ndarray, targets: np.ndarray) -> np.ndarray:
    """
    각 시점에서 절대 오차가 가장 작은 모델에 한 표

    동률이면 앞 순서 모델이 표를 가져간다.

    Args:
        preds_array: (n_models, n_samples) 예측
        targets: (n_samples,) 실측값
    """
    errors = np.abs(preds_array - targets.reshape(1, -1))
    winners = np.argmin(errors, axis=0)
    votes = np.bincount(winners, minlength=preds_array.shape[0])
    return votes / votes.sum()


def optimal_weights(preds_array: np.ndarray, targets: np.ndarray) -> np.ndarray:
    """
    검증 MSE를 최소화하는 비음수 가중치 (합 = 1, SLSQP)
    """
    n_models = preds_array.shape[0]

    def objective(weights):
        ensemble_pred = (preds_array * weights.reshape(-1, 1)).sum(axis=0)
        return np.mean((ensemble_pred - targets) ** 2)

    constraints = {'type': 'eq', 'fun': lambda w: np.sum(w) - 1}
    bounds = [(0, 1) for _ in range(n_models)]

    result = minimize(
        objective,
        x0=np.ones(n_models) / n_models,
        method='SLSQP',
        bounds=bounds,
        constraints=constraints
    )
    if not result.success:
        logger.warning(f"Weight optimization did not converge: {result.message}")

    return _normalize(result.x)


# ============================================================
# 결합기
# ============================================================

class ForecastEnsembleCombiner:
    """
    성능 기반 예측 앙상블 결합기

    Example:
        >>> combiner = ForecastEnsembleCombiner(EnsembleConfig(selection_method='top_k', top_k=2))
        >>> result = combiner.fit({'rf': rf_val, 'xgb': xgb_val, 'lr': lr_val}, y_val)
        >>> result.weights
        {'rf': 0.58, 'xgb': 0.42}
        >>> forecast = combiner.blend({'rf': rf_next, 'xgb': xgb_next, 'lr': lr_next})
    """

    def __init__(self, config: Optional[EnsembleConfig] = None):
        self.config = config or EnsembleConfig()
        self.weights_: Dict[str, float] = {}
        self._is_fitted = False
        self._metrics_logger = OptimizationMetricsLogger()

    @property
    def is_fitted(self) -> bool:
        return self._is_fitted

    def evaluate_models(
        self,
        model_predictions: Mapping[str, Sequence[float]],
        validation_truth: Sequence[float]
    ) -> Dict[str, ModelPerformance]:
        """모델별 검증 성능 계산"""
        truth = _as_series('validation truth', validation_truth)
        predictions = _prepare_predictions(model_predictions, len(truth))
        return {
            name: ModelPerformance.evaluate(truth, pred, self.config.epsilon)
            for name, pred in predictions.items()
        }

    def select_models(self, performance: Mapping[str, ModelPerformance]) -> Tuple[List[str], bool]:
        """
        선택 정책 적용

        Returns:
            (선택된 모델 이름 리스트, 최소 모델 수 대체 여부)
        """
        cfg = self.config
        candidates = [name for name in performance if name not in cfg.exclude_models]
        if not candidates:
            raise InvalidInput("every candidate model is excluded")

        ranked = sorted(candidates, key=lambda name: performance[name].mae)

        if cfg.selection_method == 'top_k':
            keep = set(ranked[:cfg.top_k])
        elif cfg.selection_method == 'threshold':
            keep = {
                name for name in candidates
                if (cfg.max_mae is None or performance[name].mae <= cfg.max_mae)
                and (cfg.max_rmse is None or performance[name].rmse <= cfg.max_rmse)
                and (cfg.min_r2 is None or performance[name].r2 >= cfg.min_r2)
            }
        else:
            keep = set(candidates)

        used_fallback = len(keep) < cfg.min_models
        if used_fallback:
            logger.info(
                f"Selection '{cfg.selection_method}' kept {len(keep)} model(s), "
                f"below min_models={cfg.min_models}; using lowest-MAE models"
            )
            keep = set(ranked[:cfg.min_models])

        return [name for name in candidates if name in keep], used_fallback

    def compute_weights(
        self,
        selected: Sequence[str],
        predictions: Mapping[str, np.ndarray],
        truth: np.ndarray,
        performance: Mapping[str, ModelPerformance]
    ) -> Dict[str, float]:
        """선택된 모델의 가중치 (합 = 1)"""
        method = self.config.ensemble_method

        if method == 'simple_average':
            weights = simple_average_weights(len(selected))
        elif method == 'weighted_average':
            weights = inverse_mae_weights(
                [performance[name].mae for name in selected], self.config.epsilon
            )
        elif method == 'voting':
            preds_array = np.stack([predictions[name] for name in selected], axis=0)
            weights = voting_weights(preds_array, truth)
        else:
            preds_array = np.stack([predictions[name] for name in selected], axis=0)
            weights = optimal_weights(preds_array, truth)

        return {name: float(w) for name, w in zip(selected, weights)}

    def fit(
        self,
        model_predictions: Mapping[str, Sequence[float]],
        validation_truth: Sequence[float]
    ) -> EnsembleResult:
        """
        검증 데이터로 모델 선택과 가중치 학습

        Args:
            model_predictions: {모델명: 검증 구간 예측}
            validation_truth: 검증 구간 실측값

        Returns:
            EnsembleResult

        Raises:
            InvalidInput: 모델 없음, 길이 불일치, 비유한 값 등
        """
        truth = _as_series('validation truth', validation_truth)
        predictions = _prepare_predictions(model_predictions, len(truth))

        with LogContext.scope(ensemble_method=self.config.ensemble_method,
                              selection_method=self.config.selection_method):
            performance = {
                name: ModelPerformance.evaluate(truth, pred, self.config.epsilon)
                for name, pred in predictions.items()
            }
            selected, used_fallback = self.select_models(performance)
            weights = self.compute_weights(selected, predictions, truth, performance)

            blended = np.zeros_like(truth)
            for name in selected:
                blended += weights[name] * predictions[name]

            logger.info(f"Ensemble fitted: {len(selected)}/{len(predictions)} models selected")
            self._metrics_logger.log_ensemble_weights(weights, self.config.ensemble_method)

        self.weights_ = weights
        self._is_fitted = True

        return EnsembleResult(
            selected_models=selected,
            weights=weights,
            performance_per_model=performance,
            blended_forecast=blended,
            ensemble_method=self.config.ensemble_method,
            used_fallback=used_fallback,
        )

    def blend(self, model_predictions: Mapping[str, Sequence[float]]) -> np.ndarray:
        """
        학습된 가중치로 새 예측 결합

        선택된 모든 모델의 예측이 있어야 하며 선택되지 않은 모델은 무시한다.
        """
        if not self._is_fitted:
            raise RuntimeError("Ensemble is not fitted. Call fit() first.")

        missing = [name for name in self.weights_ if name not in model_predictions]
        if missing:
            raise InvalidInput(f"missing predictions for selected models: {missing}")

        predictions = _prepare_predictions(
            {name: model_predictions[name] for name in self.weights_}
        )
        length = len(next(iter(predictions.values())))
        blended = np.zeros(length)
        for name, weight in self.weights_.items():
            blended += weight * predictions[name]
        return blended

    def blend_to_forecast_set(
        self,
        model_predictions: Mapping[str, Sequence[float]],
        start: Optional[datetime] = None,
        freq: timedelta = timedelta(minutes=15),
        confidence_margin: Optional[float] = DEFAULT_CONFIDENCE_MARGIN,
    ) -> ForecastSet:
        """결합 예측을 입찰 최적화 입력(ForecastSet)으로 변환"""
        blended = self.blend(model_predictions)
        return ForecastSet.from_prices(
            blended.tolist(), start=start, freq=freq, confidence_margin=confidence_margin
        )


@log_execution()
def combine_forecasts(
    model_predictions: Mapping[str, Sequence[float]],
    validation_truth: Sequence[float],
    config: Optional[EnsembleConfig] = None
) -> EnsembleResult:
    """
    예측 앙상블 함수

    Args:
        model_predictions: {모델명: 예측 시퀀스} (모두 같은 길이)
        validation_truth: 같은 길이의 검증 실측값
        config: 앙상블 설정

    Returns:
        EnsembleResult: selected_models, weights, performance_per_model, blended_forecast

    Example:
        >>> result = combine_forecasts(
        ...     {'a': [10, 12], 'b': [11, 13]}, [10, 13],
        ...     EnsembleConfig(ensemble_method='simple_average')
        ... )
        >>> result.blended_forecast
        array([10.5, 12.5])
    """
    return ForecastEnsembleCombiner(config).fit(model_predictions, validation_truth)
