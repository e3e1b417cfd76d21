"""
    데이터 소스 추상화 - 폴링 스케줄러가 필요로 하는 인터페이스만 정의
"""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..polling.window import TimeWindow


class DataSource(ABC):
    """스트림별 최신 레코드 조회 인터페이스"""

    @abstractmethod
    def fetch_latest(self, stream: str, window: "TimeWindow") -> Optional[dict]:
        """
        window 범위 [lower, upper) 안의 가장 최근 레코드 1건 조회 (없으면 None)
        - 실패 시 DataSourceError, 재시도는 하지 않음
        """
        ...

    def health_check(self) -> dict:
        return {"is_connected": True}

    def disconnect(self) -> None:
        ...
