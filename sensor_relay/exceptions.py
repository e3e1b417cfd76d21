"""
    릴레이 예외 정의
    - 정상 운영 중 발생하는 오류는 모두 로그로만 남기고 프로세스를 종료하지 않는다.
"""


class RelayError(Exception):
    """릴레이 공통 예외"""


class ConfigurationError(RelayError):
    """허용 목록에 없는 스트림 이름 등 잘못된 설정 (해당 스트림 비활성화로 처리)"""


class DataSourceError(RelayError):
    """데이터베이스 연결/쿼리 실패 (해당 폴링 사이클은 no-op 처리)"""


class DeliveryError(RelayError):
    """특정 구독자에게 전송 실패 (해당 구독자에게만 영향)"""

    def __init__(self, handle: str, cause: Exception):
        super().__init__(f"구독자 {handle} 전송 실패: {cause}")
        self.handle = handle
        self.cause = cause
