"""
Analysis Module
===============
가격 예측 요약 분석

- forecast_summary: 추세, 변동성, 리스크, 모델 품질 요약 및 입찰 권고
"""

from .forecast_summary import (
    Grade,
    Level,
    ForecastSummary,
    ModelQuality,
    assess_model_quality,
    summarize_forecast,
    volatility_level,
    risk_level,
)

__all__ = [
    'Grade',
    'Level',
    'ForecastSummary',
    'ModelQuality',
    'assess_model_quality',
    'summarize_forecast',
    'volatility_level',
    'risk_level',
]
