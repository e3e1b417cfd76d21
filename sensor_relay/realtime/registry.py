"""
    구독자 레지스트리 - 현재 열려 있는 구독자 관리
"""
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)

_handle_counter = itertools.count(1)


class Subscriber(ABC):
    """실시간 구독자 (서버 -> 클라이언트 단방향 전송)"""

    def __init__(self, handle: Optional[str] = None):
        self.handle = handle or f"subscriber-{next(_handle_counter)}"

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    async def send(self, message: str) -> None:
        ...

    async def close(self) -> None:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.handle}>"


AdmitHook = Callable[[Subscriber], Awaitable[None]]


class SubscriberRegistry:
    """
    열린 구독자 집합
    - 이벤트 루프 하나에서만 변경/순회하므로 별도 락 없음
    - 순회는 스냅샷 기준, 전송 직전에 is_open 다시 확인
    """

    def __init__(self, on_admit: Optional[AdmitHook] = None):
        self._subscribers: Set[Subscriber] = set()
        self.on_admit = on_admit

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, subscriber: Subscriber) -> bool:
        return subscriber in self._subscribers

    async def admit(self, subscriber: Subscriber) -> None:
        """구독자 등록 후 즉시 동기화 - 동기화 실패해도 등록은 유지"""
        self._subscribers.add(subscriber)
        logger.info(f"구독자 등록: {subscriber.handle} (현재 {len(self._subscribers)}명)")
        if self.on_admit is None:
            return
        try:
            await self.on_admit(subscriber)
        except Exception as e:
            logger.error(f"구독자 {subscriber.handle} 초기 동기화 실패: {e}")

    def remove(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.discard(subscriber)
            logger.info(f"구독자 해제: {subscriber.handle} (현재 {len(self._subscribers)}명)")

    async def for_each(self, fn: Callable[[Subscriber], Awaitable[None]]) -> int:
        """
        열린 구독자마다 fn 실행, 실행한 수 반환
        - 순회 중 닫히거나 해제된 구독자는 건너뜀 (오류 없음)
        """
        count = 0
        for subscriber in list(self._subscribers):
            if subscriber not in self._subscribers:
                continue
            if not subscriber.is_open:
                self.remove(subscriber)
                continue
            await fn(subscriber)
            count += 1
        return count

    async def close_all(self) -> None:
        """종료 시 모든 구독자 연결 종료"""
        for subscriber in list(self._subscribers):
            try:
                await subscriber.close()
            except Exception as e:
                logger.warning(f"구독자 {subscriber.handle} 종료 실패: {e}")
            self.remove(subscriber)
