"""
일전 가격 기반 결정론적 난수 생성기

같은 일전 가격이면 항상 같은 난수열을 만든다. 생성기는 불변 값으로,
draw()는 (난수, 다음 생성기)를 반환한다. 전역 난수 상태를 쓰지 않는다.
"""

import math
from dataclasses import dataclass
from typing import Tuple

# 선형 합동 생성기 계수
_MULTIPLIER = 9301
_INCREMENT = 49297
_MODULUS = 233280


@dataclass(frozen=True)
class PriceSeededGenerator:
    """선형 합동 생성기 상태"""
    state: int

    @classmethod
    def from_price(cls, day_ahead_price: float) -> 'PriceSeededGenerator':
        """seed = floor((price * 1000) mod 2^32)"""
        seed = math.floor(math.fmod(day_ahead_price * 1000, 2 ** 32))
        return cls(state=int(seed))

    def draw(self) -> Tuple[float, 'PriceSeededGenerator']:
        """[0, 1) 균등 난수와 다음 상태 반환"""
        next_state = (self.state * _MULTIPLIER + _INCREMENT) % _MODULUS
        return next_state / _MODULUS, PriceSeededGenerator(next_state)
