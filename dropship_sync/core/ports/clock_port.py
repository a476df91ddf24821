"""시간 포트 (인터페이스)"""
from abc import ABC, abstractmethod
from datetime import datetime, date, timedelta


class ClockPort(ABC):
    """시간 인터페이스"""

    @abstractmethod
    def now(self) -> datetime:
        """현재 시간 반환"""
        pass

    def today(self) -> date:
        """오늘 날짜 반환"""
        return self.now().date()

    def add_days(self, days: int) -> date:
        """오늘에 일자 추가"""
        return self.today() + timedelta(days=days)

    def minutes_ago(self, minutes: int) -> datetime:
        """현재 시간에서 분 단위로 뺀 시각"""
        return self.now() - timedelta(minutes=minutes)
