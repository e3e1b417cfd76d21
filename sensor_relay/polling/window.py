"""
    폴링 시간 범위 계산
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..exceptions import ConfigurationError


@dataclass(frozen=True)
class TimeWindow:
    """쿼리 범위 [lower, upper)"""
    lower: datetime
    upper: datetime

    def __post_init__(self):
        if not self.lower < self.upper:
            raise ValueError(f"잘못된 시간 범위: {self.lower} >= {self.upper}")

    def contains(self, moment: datetime) -> bool:
        return self.lower <= moment < self.upper

    def as_dict(self) -> dict:
        return {
            "lower": self.lower.isoformat(),
            "upper": self.upper.isoformat()
        }


def compute_window(lookback: timedelta, forward_skew: timedelta, now: Optional[datetime] = None) -> TimeWindow:
    """
    현재 시각 기준 범위 계산
    - upper: now + forward_skew (폴러와 DB 사이 시계 오차 허용)
    - lower: now - lookback
    """
    if now is None:
        now = datetime.now()
    return TimeWindow(lower=now - lookback, upper=now + forward_skew)


class TimeWindowCalculator:
    """사이클마다 한 번 호출 - 같은 사이클의 두 스트림은 같은 범위를 사용"""

    def __init__(self, lookback: timedelta, forward_skew: timedelta, clock: Callable[[], datetime] = datetime.now):
        if lookback <= timedelta(0):
            raise ConfigurationError(f"lookback은 0보다 커야 합니다: {lookback}")
        if forward_skew < timedelta(0):
            raise ConfigurationError(f"forward_skew는 음수일 수 없습니다: {forward_skew}")
        self.lookback = lookback
        self.forward_skew = forward_skew
        self.clock = clock

    def now(self) -> TimeWindow:
        return compute_window(self.lookback, self.forward_skew, now=self.clock())
