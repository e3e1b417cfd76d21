"""
Polling 모듈 - 시간 범위 계산 및 폴링 스케줄링
"""
from .scheduler import PollingScheduler, SchedulerState
from .window import TimeWindow, TimeWindowCalculator, compute_window

# Public API
__all__ = [
    "PollingScheduler",
    "SchedulerState",
    "TimeWindow",
    "TimeWindowCalculator",
    "compute_window",
]
