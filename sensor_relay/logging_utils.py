"""로깅 설정"""
import logging

from .database.config import Config

LOG_FORMAT = "%(asctime)s %(levelname)s:%(name)s:%(message)s"


def configure_logging(config: Config) -> None:
    """LOG_LEVEL 적용, DEBUG=true면 디버그 로그(범위/조회 결과/전송 대상)까지 출력"""
    level = logging.DEBUG if config.DEBUG else getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("sensor_relay").setLevel(level)
