"""시간 어댑터"""
from datetime import datetime, timedelta

from dropship_sync.core.ports.clock_port import ClockPort


class ClockAdapter(ClockPort):
    """시간 어댑터 구현체"""

    def now(self) -> datetime:
        """현재 시간 반환"""
        return datetime.now()


class FixedClock(ClockPort):
    """고정 시각 (테스트 / 재처리용)"""

    def __init__(self, at: datetime):
        self.at = at

    def now(self) -> datetime:
        return self.at

    def advance(self, **kwargs) -> None:
        self.at = self.at + timedelta(**kwargs)
