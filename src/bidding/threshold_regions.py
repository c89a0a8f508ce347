"""
임계 전략 구간 탐지
===================

가격 → 최적 출력 곡선에서 출력이 급변하는 가격 구간을 찾는다.
진단용 결과이며 최적화에 다시 사용되지 않는다.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from src.utils.exceptions import InvalidInput

DEFAULT_JUMP_THRESHOLD = 5.0
WINDOW_HALF_WIDTH = 2


@dataclass(frozen=True)
class ThresholdRegion:
    """출력 급변 가격 구간

    Attributes:
        start: 구간 시작 가격
        end: 구간 끝 가격
        centers: 구간에 포함된 급변 지점 가격
    """
    start: float
    end: float
    centers: Tuple[float, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start': self.start,
            'end': self.end,
            'center': self.centers[0],
            'centers': list(self.centers),
        }


def detect_threshold_regions(
    prices: Sequence[float],
    powers: Sequence[float],
    jump_threshold: float = DEFAULT_JUMP_THRESHOLD,
) -> List[ThresholdRegion]:
    """
    출력 급변 구간 탐지

    내부 지점 i에서 |P[i]-P[i-1]| 또는 |P[i+1]-P[i]|가 jump_threshold를
    넘으면 [price[i-2], price[i+2]] (그리드 경계로 클램프) 구간을 표시하고,
    겹치는 구간은 합집합으로 병합한다.

    Args:
        prices: 가격순으로 정렬된 그리드 가격
        powers: 각 가격의 최적 출력
        jump_threshold: 출력 급변 임계값

    Returns:
        List[ThresholdRegion]: 병합된 구간 (가격 오름차순)
    """
    if len(prices) != len(powers):
        raise InvalidInput(
            f"prices length {len(prices)} != powers length {len(powers)}"
        )
    if any(b < a for a, b in zip(prices, prices[1:])):
        raise InvalidInput("prices must be sorted in ascending order")

    n = len(prices)
    windows = []
    for i in range(1, n - 1):
        change_prev = abs(powers[i] - powers[i - 1])
        change_next = abs(powers[i + 1] - powers[i])
        if change_prev > jump_threshold or change_next > jump_threshold:
            windows.append((
                prices[max(0, i - WINDOW_HALF_WIDTH)],
                prices[min(n - 1, i + WINDOW_HALF_WIDTH)],
                prices[i],
            ))

    return merge_windows(windows)


def merge_windows(windows: Sequence[Tuple[float, float, float]]) -> List[ThresholdRegion]:
    """(start, end, center) 구간들의 합집합"""
    merged: List[List[Any]] = []
    for start, end, center in sorted(windows):
        if merged and start <= merged[-1][1]:
            merged[-1][1] = max(merged[-1][1], end)
            merged[-1][2].append(center)
        else:
            merged.append([start, end, [center]])

    return [
        ThresholdRegion(start=float(s), end=float(e), centers=tuple(float(c) for c in cs))
        for s, e, cs in merged
    ]
