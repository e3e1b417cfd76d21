"""
Realtime 모듈 - 구독자 관리 및 업데이트 팬아웃
"""
from .broadcaster import Broadcaster, UpdateEvent
from .connection import ConnectionLifecycleHandler, WebSocketSubscriber, serve_subscriber
from .registry import Subscriber, SubscriberRegistry

# Public API
__all__ = [
    "Broadcaster",
    "UpdateEvent",
    "ConnectionLifecycleHandler",
    "WebSocketSubscriber",
    "serve_subscriber",
    "Subscriber",
    "SubscriberRegistry",
]
