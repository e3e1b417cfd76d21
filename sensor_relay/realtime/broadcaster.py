"""
    업데이트 이벤트 팬아웃
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict

from fastapi.encoders import jsonable_encoder

from ..database.config import DEFAULT_SEND_TIMEOUT_SECONDS
from ..exceptions import DeliveryError
from .registry import Subscriber, SubscriberRegistry

logger = logging.getLogger(__name__)

# 스트림 종류 -> 메시지 type
MESSAGE_TYPES: Dict[str, str] = {
    "temperature": "temperature_update",
    "id": "id_update",
}


@dataclass(frozen=True)
class UpdateEvent:
    """스케줄러가 만들고 브로드캐스터가 소비하는 업데이트"""
    kind: str
    payload: Dict[str, Any]

    def __post_init__(self):
        if self.kind not in MESSAGE_TYPES:
            raise ValueError(f"알 수 없는 업데이트 종류: {self.kind}")

    def to_message(self) -> str:
        """{"type": "temperature_update" | "id_update", "data": <레코드>} JSON 문자열"""
        return json.dumps(
            {"type": MESSAGE_TYPES[self.kind], "data": jsonable_encoder(self.payload)},
            ensure_ascii=False,
        )


class Broadcaster:
    """
    열린 구독자 모두에게 전송 - 구독자별로 실패 격리, 재시도/확인 응답 없음
    - 전송이 send_timeout 안에 끝나지 않으면 실패로 보고 해당 구독자 제거
    """

    def __init__(self, registry: SubscriberRegistry, send_timeout: float = DEFAULT_SEND_TIMEOUT_SECONDS):
        self.registry = registry
        self.send_timeout = send_timeout
        self.delivery_failures = 0

    async def broadcast(self, event: UpdateEvent) -> int:
        """전송 성공한 구독자 수 반환"""
        if not len(self.registry):
            logger.debug(f"{event.kind} 업데이트: 구독자 없음")
            return 0

        message = event.to_message()
        delivered = 0

        async def _deliver(subscriber: Subscriber) -> None:
            nonlocal delivered
            try:
                logger.debug(f"{event.kind} 업데이트 전송 -> {subscriber.handle}")
                await asyncio.wait_for(subscriber.send(message), timeout=self.send_timeout)
                delivered += 1
            except asyncio.TimeoutError:
                self._evict(subscriber, TimeoutError(f"{self.send_timeout}초 안에 전송 완료되지 않음"))
            except Exception as e:
                self._evict(subscriber, e)

        await self.registry.for_each(_deliver)
        return delivered

    def _evict(self, subscriber: Subscriber, cause: Exception) -> None:
        """전송 실패한 구독자는 레지스트리에서 제거"""
        error = DeliveryError(subscriber.handle, cause)
        self.delivery_failures += 1
        logger.warning(str(error))
        self.registry.remove(subscriber)
