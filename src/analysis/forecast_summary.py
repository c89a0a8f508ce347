"""
가격 예측 요약 분석
===================

결합된 실시간 가격 예측의 추세, 변동성, 리스크를 요약하고
입찰 권고를 생성한다.

- 추세: 과거 평균 대비 예측 평균 변화율
- 변동성: 예측 표준편차 (< 15 낮음, < 30 중간, 그 외 높음)
- 신뢰도 점수: 1 − std / mean
- 리스크: 신뢰도 > 0.8 낮음, > 0.6 중간, 그 외 높음
- 모델 품질 (검증 성능이 주어진 경우):
  종합 점수 = round((R²·0.4 + (1 − MAPE)·0.3 + 신뢰도·0.3)·100),
  MAE 등급 (< 10 우수, < 20 양호), R² 등급 (> 0.8 우수, > 0.6 양호)
"""

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from src.bidding.types import ForecastSet
from src.models.ensemble import ModelPerformance
from src.utils.exceptions import InvalidInput

LOW_VOLATILITY_STD = 15.0
MEDIUM_VOLATILITY_STD = 30.0
PRICE_UP_ADVICE_PCT = 5.0

# MAPE는 비율 (0.10 = 10%)
HIGH_ERROR_MAPE = 0.10
HIGH_ERROR_RISK_FACTOR = '예측 오차가 큽니다'


class Level(Enum):
    """변동성/리스크 수준"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Grade(Enum):
    """모델 성능 등급"""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"


@dataclass
class ModelQuality:
    """검증 성능 기반 모델 품질"""
    overall_score: int
    mae_performance: Grade
    r2_performance: Grade

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overall_score': self.overall_score,
            'mae_performance': self.mae_performance.value,
            'r2_performance': self.r2_performance.value,
        }


@dataclass
class ForecastSummary:
    """예측 요약

    Attributes:
        avg_predicted_price: 예측 평균 가격
        price_std: 예측 표준편차
        trend_direction: up / down / flat (과거 데이터 없으면 unknown)
        change_percentage: 과거 평균 대비 변화율 (%)
        avg_historical_price: 과거 평균 가격
        volatility_level: 변동성 수준
        confidence_score: 1 - std/mean
        risk_level: 리스크 수준
        recommendations: 입찰 권고
        risk_factors: 리스크 요인 (검증 MAPE > 10% 이면 예측 오차)
        model_quality: 모델 품질 (검증 성능이 없으면 None)
    """
    avg_predicted_price: float
    price_std: float
    trend_direction: str
    change_percentage: Optional[float]
    avg_historical_price: Optional[float]
    volatility_level: Level
    confidence_score: float
    risk_level: Level
    recommendations: List[str] = field(default_factory=list)
    risk_factors: List[str] = field(default_factory=list)
    model_quality: Optional[ModelQuality] = None

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result['volatility_level'] = self.volatility_level.value
        result['risk_level'] = self.risk_level.value
        result['model_quality'] = self.model_quality.to_dict() if self.model_quality else None
        return result


def volatility_level(price_std: float) -> Level:
    if price_std < LOW_VOLATILITY_STD:
        return Level.LOW
    if price_std < MEDIUM_VOLATILITY_STD:
        return Level.MEDIUM
    return Level.HIGH


def risk_level(confidence_score: float) -> Level:
    if confidence_score > 0.8:
        return Level.LOW
    if confidence_score > 0.6:
        return Level.MEDIUM
    return Level.HIGH


def mae_grade(mae: float) -> Grade:
    if mae < 10:
        return Grade.EXCELLENT
    if mae < 20:
        return Grade.GOOD
    return Grade.FAIR


def r2_grade(r2: float) -> Grade:
    if r2 > 0.8:
        return Grade.EXCELLENT
    if r2 > 0.6:
        return Grade.GOOD
    return Grade.FAIR


def assess_model_quality(performance: ModelPerformance, confidence_score: float) -> ModelQuality:
    """
    모델 품질 평가

    Args:
        performance: 결합 예측(또는 단일 모델)의 검증 성능
        confidence_score: 예측 신뢰도 점수

    Returns:
        ModelQuality
    """
    raw = performance.r2 * 0.4 + (1 - performance.mape) * 0.3 + confidence_score * 0.3
    # .5는 올림
    overall = int(math.floor(raw * 100 + 0.5))
    return ModelQuality(
        overall_score=overall,
        mae_performance=mae_grade(performance.mae),
        r2_performance=r2_grade(performance.r2),
    )


def summarize_forecast(
    forecast_set: ForecastSet,
    historical_prices: Optional[Sequence[float]] = None,
    performance: Optional[ModelPerformance] = None
) -> ForecastSummary:
    """
    예측 요약 분석

    Args:
        forecast_set: 결합된 가격 예측
        historical_prices: 최근 실측 가격 (선택, 추세 계산용)
        performance: 검증 구간 성능 (선택, 리스크 요인/모델 품질 계산용)

    Returns:
        ForecastSummary
    """
    prices = forecast_set.prices
    avg_price = float(np.mean(prices))
    price_std = float(np.std(prices))

    confidence = 1 - price_std / avg_price if avg_price != 0 else 0.0

    avg_historical = None
    change_pct = None
    direction = 'unknown'
    if historical_prices is not None:
        history = np.asarray(historical_prices, dtype=float)
        if history.size == 0:
            raise InvalidInput("historical_prices is empty")
        avg_historical = float(np.mean(history))
        if avg_historical == 0:
            raise InvalidInput("historical average price is zero")
        change_pct = (avg_price - avg_historical) / avg_historical * 100
        if change_pct > 0:
            direction = 'up'
        elif change_pct < 0:
            direction = 'down'
        else:
            direction = 'flat'

    volatility = volatility_level(price_std)

    recommendations = []
    if change_pct is not None and change_pct > PRICE_UP_ADVICE_PCT:
        recommendations.append('가격 상승이 예상됩니다. 입찰 가격을 적절히 높이는 것을 권장합니다.')
    else:
        recommendations.append('가격이 안정적으로 예상됩니다. 현재 전략 유지를 권장합니다.')
    if volatility is Level.HIGH:
        recommendations.append('시장 변동성이 큽니다. 보수적인 입찰 전략을 권장합니다.')
    else:
        recommendations.append('시장 변동성이 적정 수준입니다. 적극적인 전략도 가능합니다.')

    risk_factors = []
    quality = None
    if performance is not None:
        if performance.mape > HIGH_ERROR_MAPE:
            risk_factors.append(HIGH_ERROR_RISK_FACTOR)
        quality = assess_model_quality(performance, confidence)

    return ForecastSummary(
        avg_predicted_price=avg_price,
        price_std=price_std,
        trend_direction=direction,
        change_percentage=change_pct,
        avg_historical_price=avg_historical,
        volatility_level=volatility,
        confidence_score=confidence,
        risk_level=risk_level(confidence),
        recommendations=recommendations,
        risk_factors=risk_factors,
        model_quality=quality,
    )
