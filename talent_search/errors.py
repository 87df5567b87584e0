"""검색 엔진 예외 계층.

서버 계층은 이 예외 타입만 보고 HTTP 상태 코드를 결정한다.
드라이버 예외(httpx, psycopg)는 발생 지점에서 아래 타입으로 감싼다.
"""


class TalentSearchError(Exception):
    """모든 도메인 예외의 기반 클래스."""


class EmbeddingError(TalentSearchError):
    """임베딩 서비스 실패 (타임아웃, non-2xx, 잘못된 응답, 빈 입력).

    client_error가 True이면 외부 서비스를 호출하지 않고 입력 단계에서 거부된 것이다.
    """

    def __init__(self, message: str, client_error: bool = False):
        super().__init__(message)
        self.client_error = client_error


class RetrievalError(TalentSearchError):
    """콘텐츠 저장소 장애. 부분 결과 없이 검색 실패로 처리한다."""


class ValidationError(TalentSearchError):
    """요청 파라미터 오류. 검색 단계에 도달하기 전에 거부한다."""


class HistoryPermissionError(TalentSearchError):
    """다른 사용자의 검색 기록에 접근하려 한 경우."""


class NotFoundError(TalentSearchError):
    """존재하지 않는 검색 기록."""


class SearchCancelledError(TalentSearchError):
    """호출자가 연결을 끊어 진행 중인 검색을 중단한 경우."""
