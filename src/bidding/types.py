"""
입찰 최적화 데이터 모델
=======================

예측 집합, 비용 파라미터, 신경동역학 탐색 파라미터와 결과 타입.

모든 타입은 불변(frozen) dataclass이며 한 번의 최적화 호출 동안
변경되지 않는다. 검증 실패 시 InvalidInput을 발생시킨다.
"""

import math
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from src.utils.exceptions import InvalidInput

# 기본 신뢰구간 폭 (예측가의 ±8%)
DEFAULT_CONFIDENCE_MARGIN = 0.08


def _require_finite(name: str, value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidInput(f"{name} must be finite, got {value}")
    return value


@dataclass(frozen=True)
class ForecastPoint:
    """단일 시점 실시간 가격 예측

    Attributes:
        timestamp: 예측 시점 (없을 수 있음)
        predicted_price: 예측 실시간 가격
        confidence_upper: 신뢰구간 상한 (선택)
        confidence_lower: 신뢰구간 하한 (선택)
    """
    timestamp: Optional[datetime]
    predicted_price: float
    confidence_upper: Optional[float] = None
    confidence_lower: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(
            self, 'predicted_price',
            _require_finite('predicted_price', self.predicted_price)
        )
        if (
            self.confidence_upper is not None
            and self.confidence_lower is not None
            and self.confidence_lower > self.confidence_upper
        ):
            raise InvalidInput("confidence_lower must not exceed confidence_upper")

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        if self.timestamp is not None:
            result['timestamp'] = self.timestamp.isoformat()
        return result


@dataclass(frozen=True)
class ForecastSet:
    """입찰 구간 전체를 덮는 예측 시퀀스 (비어 있으면 안 됨)"""
    points: Tuple[ForecastPoint, ...]
    _prices: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        points = tuple(self.points)
        if not points:
            raise InvalidInput("ForecastSet requires at least one forecast point")
        object.__setattr__(self, 'points', points)

        prices = np.array([p.predicted_price for p in points], dtype=float)
        prices.setflags(write=False)
        object.__setattr__(self, '_prices', prices)

    @classmethod
    def from_prices(
        cls,
        prices: Sequence[float],
        timestamps: Optional[Sequence[datetime]] = None,
        start: Optional[datetime] = None,
        freq: timedelta = timedelta(minutes=15),
        confidence_margin: Optional[float] = DEFAULT_CONFIDENCE_MARGIN,
    ) -> 'ForecastSet':
        """가격 시퀀스로부터 ForecastSet 생성

        Args:
            prices: 예측 가격 시퀀스
            timestamps: 시점 시퀀스 (주어지면 prices와 길이가 같아야 함)
            start: timestamps가 없을 때 시작 시점 (None이면 시점 없음)
            freq: start 기준 시점 간격
            confidence_margin: 예측가 대비 신뢰구간 비율 (None이면 생략)
        """
        prices = list(prices)
        if timestamps is not None:
            timestamps = list(timestamps)
            if len(timestamps) != len(prices):
                raise InvalidInput(
                    f"timestamps length {len(timestamps)} != prices length {len(prices)}"
                )
        elif start is not None:
            timestamps = [start + freq * i for i in range(len(prices))]
        else:
            timestamps = [None] * len(prices)

        points = []
        for ts, price in zip(timestamps, prices):
            price = _require_finite('predicted_price', price)
            if confidence_margin is None:
                upper = lower = None
            else:
                margin = abs(price) * confidence_margin
                upper, lower = price + margin, price - margin
            points.append(ForecastPoint(ts, price, upper, lower))

        return cls(tuple(points))

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> 'ForecastSet':
        """예측 레코드(dict) 리스트로부터 생성

        각 레코드는 'predicted_price'를 반드시 포함하고
        'time'/'timestamp', 'confidence_upper', 'confidence_lower'는 선택.
        """
        points = []
        for i, record in enumerate(records):
            if 'predicted_price' not in record:
                raise InvalidInput(f"record {i} has no 'predicted_price'")
            raw_ts = record.get('timestamp', record.get('time'))
            timestamp = pd.Timestamp(raw_ts).to_pydatetime() if raw_ts is not None else None
            points.append(ForecastPoint(
                timestamp=timestamp,
                predicted_price=record['predicted_price'],
                confidence_upper=record.get('confidence_upper'),
                confidence_lower=record.get('confidence_lower'),
            ))
        return cls(tuple(points))

    @property
    def prices(self) -> np.ndarray:
        """읽기 전용 가격 배열"""
        return self._prices

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self):
        return iter(self.points)

    def stats(self) -> Dict[str, float]:
        """평균/최소/최대 예측 가격"""
        return {
            'avg_price': float(np.mean(self._prices)),
            'min_price': float(np.min(self._prices)),
            'max_price': float(np.max(self._prices)),
        }


@dataclass(frozen=True)
class CostParameters:
    """발전 비용 및 조정 파라미터

    Attributes:
        generation_cost: 발전 단가 (cost_g)
        upward_cost: 상향 조정 비용 (cost_up)
        downward_cost: 하향 조정 비용 (cost_dn)
        max_power: 최대 출력
        max_up_regulation: 상향 조정량 상한
        max_down_regulation: 하향 조정량 상한
    """
    generation_cost: float
    upward_cost: float
    downward_cost: float
    max_power: float
    max_up_regulation: float = 3.0
    max_down_regulation: float = 3.0

    def __post_init__(self):
        for name in (
            'generation_cost', 'upward_cost', 'downward_cost',
            'max_power', 'max_up_regulation', 'max_down_regulation',
        ):
            value = _require_finite(name, getattr(self, name))
            if value <= 0:
                raise InvalidInput(f"{name} must be positive, got {value}")
            object.__setattr__(self, name, value)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class NeurodynamicParams:
    """신경동역학 탐색 파라미터"""
    eta_base: float = 0.05
    eta_min: float = 0.0005
    max_iter: int = 500
    tolerance: float = 1e-5
    patience: int = 50
    noise_factor: float = 0.05
    momentum: float = 0.85

    def __post_init__(self):
        if self.eta_base <= 0 or self.eta_min <= 0:
            raise InvalidInput("eta_base and eta_min must be positive")
        if self.eta_min > self.eta_base:
            raise InvalidInput(
                f"eta_min ({self.eta_min}) must not exceed eta_base ({self.eta_base})"
            )
        if int(self.max_iter) != self.max_iter or self.max_iter < 0:
            raise InvalidInput(f"max_iter must be a non-negative integer, got {self.max_iter}")
        if int(self.patience) != self.patience or self.patience < 1:
            raise InvalidInput(f"patience must be a positive integer, got {self.patience}")
        if self.tolerance < 0:
            raise InvalidInput("tolerance must be non-negative")
        if self.noise_factor < 0:
            raise InvalidInput("noise_factor must be non-negative")
        if not 0 <= self.momentum < 1:
            raise InvalidInput(f"momentum must be in [0, 1), got {self.momentum}")
        object.__setattr__(self, 'max_iter', int(self.max_iter))
        object.__setattr__(self, 'patience', int(self.patience))

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


class SearchStatus(Enum):
    """단일 가격 탐색 상태"""
    INITIALIZING = "initializing"
    ITERATING = "iterating"
    CONVERGED = "converged"    # |ΔP| < tolerance
    STALLED = "stalled"        # patience 초과, 최선값 반환
    DIVERGED = "diverged"      # 비유한 gradient/objective
    EXHAUSTED = "exhausted"    # max_iter 도달
    SKIPPED = "skipped"        # 스캔 deadline 초과로 미실행

    @property
    def is_converged(self) -> bool:
        return self in (SearchStatus.CONVERGED, SearchStatus.STALLED)


@dataclass(frozen=True)
class SearchState:
    """탐색 루프 상태 (한 번의 탐색 호출 안에서만 존재)"""
    power: float
    velocity: float = 0.0
    best_power: float = 0.0
    best_objective: float = float('-inf')
    iteration: int = 0
    no_improve_count: int = 0


@dataclass(frozen=True)
class OptimizationResult:
    """단일 일전 가격에 대한 탐색 결과

    power는 항상 [0, max_power] 범위에 있다.
    """
    day_ahead_price: float
    power: float
    objective: float
    converged: bool
    iterations: int
    status: SearchStatus = SearchStatus.EXHAUSTED
    trajectory: Tuple[float, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'day_ahead_price': self.day_ahead_price,
            'power': self.power,
            'objective': self.objective,
            'converged': self.converged,
            'iterations': self.iterations,
            'status': self.status.value,
        }


def price_range_tuple(price_range: Sequence[float]) -> Tuple[float, float]:
    """[min, max] 가격 범위 검증"""
    values: List[float] = list(price_range)
    if len(values) != 2:
        raise InvalidInput(f"price_range must have two bounds, got {price_range!r}")
    low = _require_finite('price_range[0]', values[0])
    high = _require_finite('price_range[1]', values[1])
    if low > high:
        raise InvalidInput(f"price_range min ({low}) exceeds max ({high})")
    return low, high
