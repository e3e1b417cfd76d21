"""
  FastAPI 메인 애플리케이션 - 센서 데이터 실시간 릴레이
  - 웹소켓: 연결된 구독자에게 temperature / id 업데이트 푸시
  - 백그라운드: 주기 폴링으로 스트림별 최신 레코드 조회 후 팬아웃
"""
from fastapi import FastAPI, HTTPException, Request, WebSocket
from fastapi.concurrency import run_in_threadpool
from contextlib import asynccontextmanager
import logging
from datetime import datetime
from typing import Optional

from .context import RelayContext, build_context
from .database.base import DataSource
from .database.config import Config
from .logging_utils import configure_logging
from .realtime.connection import serve_subscriber

logger = logging.getLogger(__name__)


def create_app(config: Optional[Config] = None, data_source: Optional[DataSource] = None) -> FastAPI:
    """앱 생성 - config/data_source를 주지 않으면 환경변수와 PostgreSQL 사용"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        애플리케이션 생명주기 관리
        """
        relay_config = config or Config.from_env()
        configure_logging(relay_config)
        try:
            logger.info("애플리케이션 시작 - 리소스 초기화")
            context = build_context(relay_config, data_source)
            app.state.context = context

            context.scheduler.start()
            logger.info(f"폴링 스케줄러 시작 완료 ({relay_config.POLL_INTERVAL_SECONDS}초 주기)")
            logger.info(f"- 활성 스트림: {context.scheduler.enabled_streams}")
        except Exception as e:
            logger.error(f"❌ 서버 초기화 실패: {e}")
            raise
        yield # yield 이전: 앱 시작 시 실행 (리소스 초기화) , yield 이후: 앱 종료 시 실행 (리소스 정리)

        try:
            await context.shutdown()
            logger.info("✅ 릴레이 서버 종료")
        except Exception as e:
            logger.error(f"❌ 서버 종료 중 오류: {e}")

    app = FastAPI(
        title="Sensor Relay",
        description="""
        **센서 데이터 실시간 릴레이**

        ## 주요 특징
        - 🔄 주기 폴링: temperature / id 스트림의 최신 레코드 조회
        - 🚀 웹소켓 푸시: 연결된 모든 구독자에게 업데이트 전송
        - ⚡ 연결 직후 동기화: 새 구독자는 다음 주기를 기다리지 않음
        """,
        version="1.0.0",
        lifespan=lifespan
    )

    def get_context(request: Request) -> RelayContext:
        context = getattr(request.app.state, "context", None)
        if context is None:
            raise HTTPException(status_code=503, detail="릴레이가 초기화되지 않았습니다.")
        return context

    @app.get("/", tags=["시스템"])
    async def root(request: Request):
        """루트 엔드포인트"""
        context = get_context(request)
        return {
            "service": "Sensor Relay",
            "status": "running",
            "subscribers": len(context.registry),
            "poll_interval": context.scheduler.poll_interval,
            "timestamp": datetime.now().isoformat()
        }

    @app.get("/health", tags=["monitoring"])
    async def health_check(request: Request):
        """
        헬스체크 엔드포인트
        - 데이터베이스 연결 상태
        - 폴링 스케줄러 상태
        - 구독자 수
        """
        context = get_context(request)
        try:
            database_status = await run_in_threadpool(context.data_source.health_check)
            polling_status = context.scheduler.get_status()

            overall_healthy = (
                database_status.get("is_connected", False) and
                polling_status.get("is_running", False)
            )

            return {
                "status": "healthy" if overall_healthy else "unhealthy",
                "timestamp": datetime.now().isoformat(),
                "services": {
                    "database": database_status,
                    "polling_scheduler": polling_status,
                    "subscribers": {
                        "connected": len(context.registry),
                        "delivery_failures": context.broadcaster.delivery_failures
                    }
                },
                "version": app.version
            }
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Health check failed: {str(e)}")

    @app.websocket("/")
    async def subscribe(websocket: WebSocket):
        """업데이트 구독 (서버 -> 클라이언트 단방향)"""
        await serve_subscriber(websocket, websocket.app.state.context.registry)

    return app


app = create_app()


def run() -> None:
    """uvicorn으로 실행 - 로깅 설정은 lifespan에서, SIGINT/SIGTERM 시 lifespan 종료 단계에서 리소스 정리"""
    import uvicorn

    config = Config.from_env()
    uvicorn.run(create_app(config), host=config.WEBSOCKET_HOST, port=config.WEBSOCKET_PORT)


if __name__ == "__main__":
    run()
