"""
Database 모듈 - 데이터 소스 인터페이스, PostgreSQL 클라이언트 및 설정 관리
"""
from .base import DataSource
from .config import (
    ALLOWED_STREAM_TABLES,
    Config,
    get_postgres_config,
    parse_number,
    validate_stream_name,
)
from .postgres_client import PostgreSQLClient, create_postgresql_client

# Public API
__all__ = [
    # Data source
    "DataSource",
    "PostgreSQLClient",
    "create_postgresql_client",

    # Config
    "ALLOWED_STREAM_TABLES",
    "Config",
    "get_postgres_config",
    "parse_number",
    "validate_stream_name",
]
