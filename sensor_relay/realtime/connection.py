"""
    웹소켓 연결 처리
"""
import logging
from typing import Optional

from fastapi import WebSocket
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from .registry import Subscriber, SubscriberRegistry

logger = logging.getLogger(__name__)


class WebSocketSubscriber(Subscriber):
    """FastAPI WebSocket 어댑터"""

    def __init__(self, websocket: WebSocket, handle: Optional[str] = None):
        if handle is None and websocket.client is not None:
            handle = f"{websocket.client.host}:{websocket.client.port}"
        super().__init__(handle)
        self.websocket = websocket

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, message: str) -> None:
        await self.websocket.send_text(message)

    async def close(self) -> None:
        if self.is_open:
            await self.websocket.close(code=1001)


class ConnectionLifecycleHandler:
    """신규 구독자 등록 시 다음 주기를 기다리지 않고 바로 폴링 사이클 실행"""

    def __init__(self, scheduler):
        self.scheduler = scheduler

    async def on_connect(self, subscriber: Subscriber) -> None:
        # 초기 동기화 실패는 여기서 끝냄 - 구독자는 다음 주기 전송 대상으로 남음
        try:
            await self.scheduler.run_cycle(trigger="connect")
        except Exception as e:
            logger.error(f"구독자 {subscriber.handle} 연결 직후 동기화 실패: {e}")


async def serve_subscriber(websocket: WebSocket, registry: SubscriberRegistry) -> None:
    """
    웹소켓 구독자 한 명 처리
    - 수신 메시지(텍스트/바이너리)는 무시하고 연결 종료 감지용으로만 읽음
    """
    await websocket.accept()
    subscriber = WebSocketSubscriber(websocket)
    await registry.admit(subscriber)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug(f"구독자 연결 종료: {subscriber.handle} (code={message.get('code')})")
                break
    except WebSocketDisconnect:
        logger.debug(f"구독자 연결 종료: {subscriber.handle}")
    finally:
        registry.remove(subscriber)
