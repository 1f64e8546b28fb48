"""Domain errors raised by the services and mapped to HTTP responses in catchpac.main."""

from enum import Enum
from typing import Optional


class CatchpacError(Exception):
    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(CatchpacError):
    status_code = 404
    code = "not_found"


class AuthenticationRequiredError(CatchpacError):
    status_code = 401
    code = "authentication_required"

    def __init__(self, message: str = "로그인이 필요합니다"):
        super().__init__(message)


class PermissionDeniedError(CatchpacError):
    status_code = 403
    code = "permission_denied"


class ConflictError(CatchpacError):
    status_code = 409
    code = "conflict"


class RequestClosedError(ConflictError):
    code = "request_closed"

    def __init__(self, request_id: int):
        super().__init__("마감된 견적 요청입니다")
        self.request_id = request_id


class DuplicateResponseError(ConflictError):
    code = "duplicate_response"

    def __init__(self, request_id: int, seller_id: str):
        super().__init__("이미 견적을 제출하셨습니다")
        self.request_id = request_id
        self.seller_id = seller_id


class RegistrationValidationError(CatchpacError):
    code = "invalid_registration"


class IdentityErrorCode(str, Enum):
    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    EMAIL_IN_USE = "EMAIL_IN_USE"
    INVALID_EMAIL = "INVALID_EMAIL"


IDENTITY_ERROR_MESSAGES = {
    IdentityErrorCode.INVALID_CREDENTIAL: "이메일 또는 비밀번호가 올바르지 않습니다",
    IdentityErrorCode.USER_NOT_FOUND: "등록되지 않은 이메일입니다",
    IdentityErrorCode.WEAK_PASSWORD: "비밀번호가 너무 약합니다",
    IdentityErrorCode.EMAIL_IN_USE: "이미 사용 중인 이메일입니다",
    IdentityErrorCode.INVALID_EMAIL: "올바른 이메일 형식이 아닙니다",
}

# Legacy provider rejection for a wrong password on a known email; same code as INVALID_CREDENTIAL
WRONG_PASSWORD_MESSAGE = "비밀번호가 올바르지 않습니다"

LOGIN_FALLBACK_MESSAGE = "로그인 중 오류가 발생했습니다"
REGISTER_FALLBACK_MESSAGE = "회원가입 중 오류가 발생했습니다"


class IdentityError(CatchpacError):
    """
    Rejection from the identity provider.

    `identity_code` is None when the provider failed in a way that has no
    dedicated message; the caller then shows the fallback for its flow.
    """

    def __init__(
        self,
        identity_code: Optional[IdentityErrorCode],
        provider_message: str = "",
        message: Optional[str] = None,
    ):
        super().__init__(message or IDENTITY_ERROR_MESSAGES.get(identity_code, LOGIN_FALLBACK_MESSAGE))
        self.identity_code = identity_code
        self.provider_message = provider_message
        self.code = identity_code.value if identity_code else "identity_error"
        if identity_code in (IdentityErrorCode.INVALID_CREDENTIAL, IdentityErrorCode.USER_NOT_FOUND):
            self.status_code = 401
        elif identity_code is None:
            self.status_code = 502

    def with_fallback(self, fallback_message: str) -> "IdentityError":
        if self.identity_code is None:
            self.message = fallback_message
        return self
