"""
애플리케이션 설정 파일 - .env 파일 기반
"""
import logging
import math
import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Mapping, Optional, Union

from dotenv import load_dotenv

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# 쿼리 대상으로 허용되는 테이블 목록 (이 외의 이름은 절대 SQL에 들어가지 않음)
ALLOWED_STREAM_TABLES = frozenset({
    "temperatures",
    "temperature_readings",
    "ids",
    "id_scans",
})

STREAM_KINDS = ("temperature", "id")

DEFAULT_LOOKBACK_SECONDS = 30 * 24 * 60 * 60  # 30일
DEFAULT_FORWARD_SKEW_SECONDS = 60
DEFAULT_POLL_INTERVAL_SECONDS = 60
DEFAULT_SEND_TIMEOUT_SECONDS = 5
DEFAULT_WEBSOCKET_PORT = 8080


def parse_number(value: Union[None, int, float, str], default: Optional[float] = None) -> Optional[float]:
    """
    숫자 파싱 - 실패하면 default 반환
    예) "100" -> 100.0, "hellothere" -> default, None -> default
    """
    if value is None:
        return default
    if isinstance(value, str) and not value.strip():
        return default
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(parsed):
        return default
    return parsed


def _env_bool(env: Mapping[str, str], name: str, default: str = "false") -> bool:
    return env.get(name, default).strip().lower() == "true"


def validate_stream_name(name: str) -> str:
    """허용 목록 검사 - 통과한 이름만 반환"""
    if name not in ALLOWED_STREAM_TABLES:
        raise ConfigurationError(f"허용되지 않은 스트림 테이블: {name!r}")
    return name


def resolve_stream_table(kind: str, raw_name: Optional[str]) -> Optional[str]:
    """설정된 테이블 이름 확인 - 없거나 허용되지 않으면 해당 스트림 비활성화(None)"""
    if raw_name is None or not raw_name.strip():
        logger.warning(f"{kind} 스트림 테이블이 설정되지 않음 - 스트림 비활성화")
        return None
    try:
        return validate_stream_name(raw_name.strip())
    except ConfigurationError as e:
        logger.warning(f"{kind} 스트림 비활성화: {e}")
        return None


@dataclass(frozen=True)
class Config:
    """애플리케이션 설정 클래스"""
    # === 웹소켓 서버 설정 ===
    WEBSOCKET_HOST: str = "0.0.0.0"
    WEBSOCKET_PORT: int = DEFAULT_WEBSOCKET_PORT

    # === 데이터베이스 (읽기 전용) 설정 ===
    DATABASE_READ_HOST: str = "localhost"
    DATABASE_READ_PORT: int = 5432
    DATABASE_READ_USER: str = ""
    DATABASE_READ_PASSWORD: str = ""
    DATABASE_READ_DATABASE: str = ""

    # === CloudSQL Connector 설정 ===
    CLOUDSQL_CONNECTION_NAME: str = ""
    CLOUDSQL_USE_PROXY: bool = False
    DATABASE_USE_IAM: bool = False
    GOOGLE_APPLICATION_CREDENTIALS: str = ""

    # === 스트림 설정 (허용 목록 통과한 이름만, 아니면 None) ===
    TEMPERATURE_TABLE: Optional[str] = None
    IDS_TABLE: Optional[str] = None

    # === 폴링 설정 ===
    LOOKBACK_SECONDS: float = DEFAULT_LOOKBACK_SECONDS
    FORWARD_SKEW_SECONDS: float = DEFAULT_FORWARD_SKEW_SECONDS
    POLL_INTERVAL_SECONDS: float = DEFAULT_POLL_INTERVAL_SECONDS
    SEND_TIMEOUT_SECONDS: float = DEFAULT_SEND_TIMEOUT_SECONDS

    # === 로깅 설정 ===
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    def __post_init__(self):
        if self.LOOKBACK_SECONDS <= 0:
            raise ConfigurationError(f"LOOKBACK_SECONDS는 0보다 커야 합니다: {self.LOOKBACK_SECONDS}")
        if self.FORWARD_SKEW_SECONDS < 0:
            raise ConfigurationError(f"FORWARD_SKEW_SECONDS는 음수일 수 없습니다: {self.FORWARD_SKEW_SECONDS}")
        if self.POLL_INTERVAL_SECONDS <= 0:
            raise ConfigurationError(f"POLL_INTERVAL_SECONDS는 0보다 커야 합니다: {self.POLL_INTERVAL_SECONDS}")
        if self.SEND_TIMEOUT_SECONDS <= 0:
            raise ConfigurationError(f"SEND_TIMEOUT_SECONDS는 0보다 커야 합니다: {self.SEND_TIMEOUT_SECONDS}")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, *, dotenv: bool = True) -> "Config":
        """환경변수(.env 포함)에서 설정 생성"""
        if env is None:
            if dotenv:
                load_dotenv()
            env = os.environ

        return cls(
            WEBSOCKET_HOST=env.get("WEBSOCKET_HOST", "0.0.0.0"),
            WEBSOCKET_PORT=int(parse_number(env.get("WEBSOCKET_PORT"), DEFAULT_WEBSOCKET_PORT)),
            DATABASE_READ_HOST=env.get("DATABASE_READ_HOST", "localhost"),
            DATABASE_READ_PORT=int(parse_number(env.get("DATABASE_READ_PORT"), 5432)),
            DATABASE_READ_USER=env.get("DATABASE_READ_USER", ""),
            DATABASE_READ_PASSWORD=env.get("DATABASE_READ_PASSWORD", ""),
            DATABASE_READ_DATABASE=env.get("DATABASE_READ_DATABASE", ""),
            CLOUDSQL_CONNECTION_NAME=env.get("CLOUDSQL_CONNECTION_NAME", ""),
            CLOUDSQL_USE_PROXY=_env_bool(env, "CLOUDSQL_USE_PROXY"),
            DATABASE_USE_IAM=_env_bool(env, "DATABASE_USE_IAM"),
            GOOGLE_APPLICATION_CREDENTIALS=env.get("GOOGLE_APPLICATION_CREDENTIALS", ""),
            TEMPERATURE_TABLE=resolve_stream_table("temperature", env.get("TEMPERATURE_TABLE")),
            IDS_TABLE=resolve_stream_table("id", env.get("IDS_TABLE")),
            LOOKBACK_SECONDS=parse_number(env.get("LOOKBACK_SECONDS"), DEFAULT_LOOKBACK_SECONDS),
            FORWARD_SKEW_SECONDS=parse_number(env.get("FORWARD_SKEW_SECONDS"), DEFAULT_FORWARD_SKEW_SECONDS),
            POLL_INTERVAL_SECONDS=parse_number(env.get("POLL_INTERVAL_SECONDS"), DEFAULT_POLL_INTERVAL_SECONDS),
            SEND_TIMEOUT_SECONDS=parse_number(env.get("SEND_TIMEOUT_SECONDS"), DEFAULT_SEND_TIMEOUT_SECONDS),
            DEBUG=_env_bool(env, "DEBUG"),
            LOG_LEVEL=env.get("LOG_LEVEL", "INFO"),
        )

    @property
    def lookback(self) -> timedelta:
        return timedelta(seconds=self.LOOKBACK_SECONDS)

    @property
    def forward_skew(self) -> timedelta:
        return timedelta(seconds=self.FORWARD_SKEW_SECONDS)

    def stream_tables(self) -> Dict[str, Optional[str]]:
        """스트림 종류별 테이블 (비활성 스트림은 None)"""
        return {
            "temperature": self.TEMPERATURE_TABLE,
            "id": self.IDS_TABLE,
        }


def get_postgres_config(config: Config) -> dict:
    """PostgreSQL 연결 설정 반환"""
    # CloudSQL Connector 사용 시 특별한 설정
    if config.CLOUDSQL_USE_PROXY and config.CLOUDSQL_CONNECTION_NAME:
        return {
            "connection_name": config.CLOUDSQL_CONNECTION_NAME,
            "database": config.DATABASE_READ_DATABASE,
            "user": config.DATABASE_READ_USER,
            "password": config.DATABASE_READ_PASSWORD,
            "use_proxy": True,
            "use_iam": config.DATABASE_USE_IAM,
            "credentials_path": config.GOOGLE_APPLICATION_CREDENTIALS
        }
    else:
        return {
            "host": config.DATABASE_READ_HOST,
            "port": config.DATABASE_READ_PORT,
            "database": config.DATABASE_READ_DATABASE,
            "user": config.DATABASE_READ_USER,
            "password": config.DATABASE_READ_PASSWORD
        }
