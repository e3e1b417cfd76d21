"""
    프로세스 전역 컨텍스트 - 시작 시 한 번 생성해서 스케줄러/레지스트리에 전달
"""
import logging
from dataclasses import dataclass
from typing import Optional

from .database.base import DataSource
from .database.config import Config
from .database.postgres_client import create_postgresql_client
from .polling.scheduler import PollingScheduler
from .polling.window import TimeWindowCalculator
from .realtime.broadcaster import Broadcaster
from .realtime.connection import ConnectionLifecycleHandler
from .realtime.registry import SubscriberRegistry

logger = logging.getLogger(__name__)


@dataclass
class RelayContext:
    config: Config
    data_source: DataSource
    registry: SubscriberRegistry
    broadcaster: Broadcaster
    scheduler: PollingScheduler
    connection_handler: ConnectionLifecycleHandler

    async def shutdown(self) -> None:
        """스케줄러 중지 -> 구독자 연결 종료 -> DB 연결 종료"""
        await self.scheduler.stop()
        await self.registry.close_all()
        self.data_source.disconnect()
        logger.info("릴레이 리소스 정리 완료")


def build_context(config: Config, data_source: Optional[DataSource] = None) -> RelayContext:
    """구성 요소 연결 - data_source를 주면 그대로 사용 (테스트용 대체 가능)"""
    if data_source is None:
        data_source = create_postgresql_client(config)

    registry = SubscriberRegistry()
    broadcaster = Broadcaster(registry, send_timeout=config.SEND_TIMEOUT_SECONDS)
    scheduler = PollingScheduler(
        data_source=data_source,
        broadcaster=broadcaster,
        calculator=TimeWindowCalculator(config.lookback, config.forward_skew),
        stream_tables=config.stream_tables(),
        poll_interval=config.POLL_INTERVAL_SECONDS,
    )
    connection_handler = ConnectionLifecycleHandler(scheduler)
    registry.on_admit = connection_handler.on_connect

    return RelayContext(
        config=config,
        data_source=data_source,
        registry=registry,
        broadcaster=broadcaster,
        scheduler=scheduler,
        connection_handler=connection_handler,
    )
