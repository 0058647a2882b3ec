class IntraopError(Exception):
    """수술 중 기록 예외의 기본 클래스"""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class NotFoundError(IntraopError):
    """케이스 또는 기록이 저장소에 없을 때 발생"""

    def __init__(self, message: str) -> None:
        super().__init__("INTRAOP_NOT_FOUND", message)


class ValidationError(IntraopError):
    """필수 필드 누락 또는 생리학적 범위 위반 시 발생"""

    def __init__(self, field: str, message: str, code: str = "INTRAOP_VALIDATION") -> None:
        super().__init__(code, f"{field}: {message}")
        self.field = field


class ParseError(ValidationError):
    """파싱 또는 정규화 실패 시 발생"""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(field, message, code="INTRAOP_PARSE")


class StoreFailure(IntraopError):
    """기록 저장소 호출 실패 시 발생"""

    def __init__(self, message: str) -> None:
        super().__init__("STORE_FAILURE", message)
