"""
입찰 최적화 / 예측 앙상블 예외 정의
"""

from typing import Any, Dict, Optional


class BiddingOptimizationError(Exception):
    """입찰 최적화 시스템 기본 예외"""
    pass


class InvalidInput(BiddingOptimizationError, ValueError):
    """입력 검증 실패 (빈 예측 집합, 길이 불일치, 잘못된 파라미터 등)"""
    pass


class NoConvergence(BiddingOptimizationError):
    """가격 그리드의 어떤 지점도 수렴하지 않음

    기본 입찰값으로 대체하지 않는다. 그리드 확장, max_iter 증가 등
    대응은 호출자가 결정한다.
    """

    def __init__(self, message: str, convergence_stats: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.convergence_stats = convergence_stats or {}
