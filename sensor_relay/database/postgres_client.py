import psycopg2
import psycopg2.extras # RealDictCursor : 결과가 딕셔너리 {'id': 1, 'created_at': ...}로 나옴 -> 컬럼명 그대로 구독자에게 전달
from psycopg2.pool import ThreadedConnectionPool  # 연결 풀 (스레드풀 워커에서 공유)
import logging
import os
import threading
from typing import List, Optional, Tuple
from datetime import datetime

from google.cloud.sql.connector import Connector
from sqlalchemy import create_engine, text
from sqlalchemy.pool import NullPool

from .base import DataSource
from .config import ALLOWED_STREAM_TABLES, Config, get_postgres_config, validate_stream_name
from ..exceptions import DataSourceError

logger = logging.getLogger(__name__)

__all__ = [
    "ALLOWED_STREAM_TABLES",
    "PostgreSQLClient",
    "build_latest_query",
    "create_postgresql_client",
    "to_named_params",
]


def build_latest_query(table: str) -> str:
    """
    범위 내 최신 레코드 1건 조회 쿼리
    - 테이블 이름은 허용 목록 검사를 통과한 것만 사용, 시간 범위는 바인딩 파라미터로만 전달
    """
    table = validate_stream_name(table)
    return (
        f'SELECT * FROM "{table}" '
        "WHERE created_at >= %s AND created_at < %s "
        "ORDER BY created_at DESC LIMIT 1"
    )


def to_named_params(query: str, params: Tuple) -> Tuple[str, dict]:
    """%s 스타일 파라미터를 SQLAlchemy text()용 :param0, :param1 스타일로 변환"""
    param_names = [f"param{i}" for i in range(len(params))]
    converted_query = query
    for param_name in param_names:
        converted_query = converted_query.replace('%s', f':{param_name}', 1)
    return converted_query, dict(zip(param_names, params))


class PostgreSQLClient(DataSource):
    def __init__(self, connection_config: dict):
        """PostgreSQL 클라이언트 초기화 (CloudSQL Connector 지원)"""
        self.use_proxy = bool(connection_config.get("use_proxy", False))
        self.connection_pool = None
        self._pool_lock = threading.Lock()

        if self.use_proxy:
            self._init_cloudsql_proxy(connection_config)
        else:
            self.connection_params = {
                "host": connection_config["host"],
                "port": connection_config["port"],
                "user": connection_config["user"],
                "password": connection_config["password"],
                "database": connection_config["database"]
            }
            self._initialize_connection_pool()

    def _init_cloudsql_proxy(self, config: dict) -> None:
        """Cloud SQL Connector 연결 초기화"""
        try:
            # 서비스 계정 키 파일 설정
            credentials_path = config.get("credentials_path")
            if credentials_path and os.path.exists(credentials_path):
                os.environ['GOOGLE_APPLICATION_CREDENTIALS'] = credentials_path
            self.connector = Connector()

            def getconn():
                return self.connector.connect(
                    config["connection_name"],
                    "pg8000",
                    user=config["user"],
                    password=config["password"],
                    db=config["database"],
                    enable_iam_auth=config.get("use_iam", False)
                )
            self.engine = create_engine(
                "postgresql+pg8000://",
                creator=getconn,
                poolclass=NullPool, # Connector가 연결 관리
            )
            self.connection_params = {"type": "cloudsql_proxy", "connection_name": "masked"}
            logger.info("Cloud SQL Connector 연결 초기화 완료")
        except Exception as e:
            logger.error(f"Cloud SQL Connector 초기화 실패 : {e}")
            raise DataSourceError(f"Cloud SQL Connector 초기화 실패: {e}") from e

    def _initialize_connection_pool(self) -> None:
        """PostgreSQL 연결 풀 초기화 - 실패하면 다음 조회 때 다시 시도"""
        try:
            self.connection_pool = ThreadedConnectionPool(
                minconn=1,
                maxconn=10,
                **self.connection_params
            )
            logger.info("PostgreSQL 연결 풀 초기화 완료")
        except Exception as e:
            logger.error(f"PostgreSQL 연결 풀 초기화 실패: {e}")
            self.connection_pool = None

    def _get_connection(self):
        """연결 가져오기 (Connector 또는 연결 풀)"""
        if self.use_proxy:
            return self.engine.connect()
        if not self.connection_pool:
            with self._pool_lock:
                if not self.connection_pool:
                    self._initialize_connection_pool()
        if not self.connection_pool:
            raise DataSourceError("PostgreSQL 연결 풀이 초기화되지 않음")
        return self.connection_pool.getconn()

    def _return_connection(self, conn, discard: bool = False) -> None:
        """연결 반환 - 오류가 난 연결은 풀에서 버림"""
        if self.use_proxy:
            conn.close()
        elif self.connection_pool and conn:
            self.connection_pool.putconn(conn, close=discard)

    def fetch_latest(self, stream: str, window) -> Optional[dict]:
        """스트림 테이블에서 window 범위 내 최신 레코드 조회"""
        query = build_latest_query(stream)
        rows = self.execute_query(query, (window.lower, window.upper))
        logger.debug(f"{stream} 조회 결과: {rows}")
        return rows[0] if rows else None

    def execute_query(self, query: str, params: Tuple = ()) -> List[dict]:
        """SELECT 쿼리 실행하고 결과 반환 (CloudSQL Connector 지원)"""
        conn = None
        cursor = None
        failed = False
        try:
            conn = self._get_connection()

            if self.use_proxy:
                # SQLAlchemy 연결 사용 (CloudSQL Connector)
                converted_query, param_dict = to_named_params(query, params)
                result = conn.execute(text(converted_query), param_dict)
                return [dict(row._mapping) for row in result]
            else:
                cursor = conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
                cursor.execute(query, params or None)
                return [dict(row) for row in cursor.fetchall()]
        except DataSourceError:
            failed = True
            raise
        except Exception as e:
            failed = True
            if conn and not self.use_proxy:
                try:
                    conn.rollback()
                except psycopg2.Error:
                    pass  # 끊어진 연결은 아래에서 버림
            logger.error(f"쿼리 실행 실패: {e}")
            raise DataSourceError(f"쿼리 실행 실패: {e}") from e
        finally:
            if cursor is not None:
                cursor.close()
            if conn:
                self._return_connection(conn, discard=failed)

    def health_check(self) -> dict:
        """데이터베이스 연결 상태 확인"""
        try:
            rows = self.execute_query("SELECT 1 AS ok")
            is_connected = bool(rows) and rows[0].get("ok") == 1
            return {
                "is_connected": is_connected,
                "connection_info": self._masked_connection_info(),
                "checked_at": datetime.now().isoformat()
            }
        except DataSourceError as e:
            logger.error(f"PostgreSQL 헬스체크 실패: {e}")
            return {
                "is_connected": False,
                "connection_info": self._masked_connection_info(),
                "error": str(e),
                "checked_at": datetime.now().isoformat()
            }

    def _masked_connection_info(self) -> dict:
        return {k: ("***" if k == "password" else v) for k, v in self.connection_params.items()}

    def disconnect(self) -> None:
        """PostgreSQL 연결 종료"""
        try:
            if self.use_proxy:
                self.engine.dispose()
                self.connector.close()
                logger.info("CloudSQL Connector 연결 종료 완료")
            else:
                if self.connection_pool:
                    self.connection_pool.closeall()
                    self.connection_pool = None
                logger.info("PostgreSQL 연결 종료 완료")
        except Exception as e:
            logger.error(f"PostgreSQL 연결 종료 실패: {e}")


def create_postgresql_client(config: Config) -> PostgreSQLClient:
    """설정에서 PostgreSQL 클라이언트 생성"""
    return PostgreSQLClient(get_postgres_config(config))
