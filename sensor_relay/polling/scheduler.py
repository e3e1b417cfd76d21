"""
    폴링 스케줄러
"""
import asyncio
import enum
import logging
from datetime import datetime
from typing import Dict, Optional

from fastapi.concurrency import run_in_threadpool

from ..database.base import DataSource
from ..database.config import STREAM_KINDS
from ..realtime.broadcaster import Broadcaster, UpdateEvent
from .window import TimeWindow, TimeWindowCalculator

logger = logging.getLogger(__name__)


class SchedulerState(str, enum.Enum):
    IDLE = "idle"
    POLLING = "polling"


class PollingScheduler:
    def __init__(
        self,
        data_source: DataSource,
        broadcaster: Broadcaster,
        calculator: TimeWindowCalculator,
        stream_tables: Dict[str, Optional[str]],
        poll_interval: float = 60,
    ):
        """폴링 스케줄러 초기화"""
        self.data_source = data_source
        self.broadcaster = broadcaster
        self.calculator = calculator
        # 비활성 스트림(None)은 조회하지 않음
        self.stream_tables = {kind: stream_tables.get(kind) for kind in STREAM_KINDS}
        self.poll_interval = poll_interval
        self.is_running = False
        self.last_check: Optional[datetime] = None
        self.cycles = 0
        self.failures = 0
        self._active_cycles = 0
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        logger.info(f"폴링 스케줄러 초기화 완료 (주기 {poll_interval}초, 스트림 {self.enabled_streams})")

    @property
    def enabled_streams(self) -> list:
        return [kind for kind, table in self.stream_tables.items() if table]

    @property
    def state(self) -> SchedulerState:
        return SchedulerState.POLLING if self._active_cycles else SchedulerState.IDLE

    def start(self) -> None:
        """주기 폴링 시작 (실행 중인 이벤트 루프 안에서 호출)"""
        if self.is_running:
            logger.warning("폴링 스케줄러가 이미 실행중입니다.")
            return
        self.is_running = True
        self._stop_event.clear()
        self._task = asyncio.create_task(self._polling_loop(), name="polling-scheduler")
        logger.info("폴링 스케줄러 시작 완료")

    async def stop(self) -> None:
        """폴링 중지 - 진행 중인 사이클은 끝까지 실행"""
        if not self.is_running:
            return
        self.is_running = False
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        logger.info("폴링 스케줄러 종료 완료")

    def get_status(self) -> dict:
        """폴링 상태 조회"""
        return {
            "is_running": self.is_running,
            "state": self.state.value,
            "last_check": self.last_check.isoformat() if self.last_check else None,
            "poll_interval": self.poll_interval,
            "cycles": self.cycles,
            "failures": self.failures,
            "enabled_streams": self.enabled_streams
        }

    async def _polling_loop(self) -> None:
        """사이클 완료 후 poll_interval 만큼 기다렸다가 다음 사이클 실행 (사이클 겹침 없음)"""
        # 첫 사이클도 시작 후 한 주기 뒤에 실행 (연결 직후 동기화는 ConnectionLifecycleHandler 담당)
        while await self._wait_next_tick():
            try:
                await self.run_cycle(trigger="timer")
            except Exception as e:
                logger.error(f"폴링 루프 오류: {e}")

    async def _wait_next_tick(self) -> bool:
        """poll_interval 대기 - stop 신호가 오면 False"""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            return True
        return False

    async def run_cycle(self, trigger: str = "timer") -> dict:
        """
        폴링 사이클 1회
        1. 범위 계산 (사이클당 한 번)
        2. temperature 스트림 조회 후 레코드 있으면 브로드캐스트
        3. id 스트림 조회 후 레코드 있으면 브로드캐스트
        스트림 조회/전송 오류는 여기서 처리하고 밖으로 던지지 않음
        """
        self._active_cycles += 1
        try:
            self.last_check = datetime.now()
            window = self.calculator.now()
            logger.debug(f"폴링 시작 ({trigger}): {window.as_dict()}")

            broadcasts = {}
            for kind in STREAM_KINDS:
                broadcasts[kind] = await self._poll_stream(kind, window)
            self.cycles += 1
            return {
                "trigger": trigger,
                "window": window.as_dict(),
                "broadcasts": broadcasts
            }
        finally:
            self._active_cycles -= 1

    async def _poll_stream(self, kind: str, window: TimeWindow) -> Optional[int]:
        """스트림 하나 조회 및 전송 - 전송한 구독자 수, 레코드 없거나 실패면 None"""
        table = self.stream_tables.get(kind)
        if not table:
            return None
        try:
            record = await run_in_threadpool(self.data_source.fetch_latest, table, window)
            if record is None:
                logger.debug(f"{kind} 스트림: 새 레코드 없음")
                return None
            return await self.broadcaster.broadcast(UpdateEvent(kind=kind, payload=record))
        except Exception as e:
            self.failures += 1
            logger.error(f"{kind} 스트림 폴링 실패: {e}")
            return None
