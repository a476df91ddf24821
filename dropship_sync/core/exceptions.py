"""드랍십 연동 예외 처리"""
from typing import Any, Optional

from fastapi import HTTPException


class DropshippingError(Exception):
    """드랍십핑 기본 예외"""

    code = "DROPSHIPPING_ERROR"
    retryable = False

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        code: Optional[str] = None,
        details: Any = None
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        if code:
            self.code = code
        self.details = details


class InvalidTenantError(DropshippingError):
    """테넌트 식별자 오류 (작업 시작 전에 발견되는 설정 오류)"""
    code = "INVALID_TENANT"

    def __init__(self, tenant_id: Any):
        super().__init__(f"유효하지 않은 테넌트: {tenant_id!r}", details={"tenant_id": tenant_id})


class ProviderError(DropshippingError):
    """공급사 호출 관련 예외"""
    code = "PROVIDER_ERROR"


class ProviderUnconfiguredError(ProviderError):
    """인증 정보가 없어 공급사를 사용할 수 없음 (기본값으로 대체)"""
    code = "PROVIDER_UNCONFIGURED"

    def __init__(self, provider: str):
        super().__init__(f"{provider} 공급사가 설정되지 않았습니다", provider=provider)


class ProviderUnreachableError(ProviderError):
    """네트워크 오류 / 타임아웃 / 5xx"""
    code = "PROVIDER_UNREACHABLE"
    retryable = True


class ProviderAuthError(ProviderError):
    """인증 실패 (운영자 개입 전까지 재시도하지 않음)"""
    code = "PROVIDER_AUTH"


class ProviderRateLimitedError(ProviderError):
    """요청 한도 초과"""
    code = "RATE_LIMIT"
    retryable = True

    def __init__(self, provider: str, retry_after: Optional[float] = None):
        super().__init__(
            f"Rate limit exceeded for {provider}",
            provider=provider,
            details={"retry_after": retry_after}
        )
        self.retry_after = retry_after


class ProviderDataError(ProviderError):
    """응답 형식 오류 (해당 레코드만 건너뜀)"""
    code = "PROVIDER_DATA"


class ProviderOrderError(ProviderError):
    """공급사 주문 생성 실패"""
    code = "ORDER_CREATION_FAILED"

    def __init__(self, provider: str, reason: str, details: Any = None):
        super().__init__(
            f"Failed to create order on {provider}: {reason}",
            provider=provider,
            details=details
        )
        self.reason = reason


class IdempotencyConflictError(DropshippingError):
    """멱등성 키 충돌 - 데이터 모델 버그이므로 절대 삼키지 않는다"""
    code = "IDEMPOTENCY_CONFLICT"


_STATUS_CODES = {
    InvalidTenantError: 400,
    ProviderUnconfiguredError: 404,
    ProviderAuthError: 502,
    ProviderRateLimitedError: 429,
    ProviderUnreachableError: 503,
    ProviderDataError: 502,
    ProviderOrderError: 502,
    IdempotencyConflictError: 409,
}


def create_http_exception(error) -> HTTPException:
    """HTTP 예외 생성"""
    if isinstance(error, str):
        return HTTPException(status_code=500, detail=error)

    if isinstance(error, DropshippingError):
        status_code = 500
        for error_type, code in _STATUS_CODES.items():
            if isinstance(error, error_type):
                status_code = code
                break
        return HTTPException(
            status_code=status_code,
            detail={"code": error.code, "message": error.message, "provider": error.provider}
        )

    return HTTPException(status_code=500, detail=str(error))
