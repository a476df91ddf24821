"""공급사 공통 HTTP 클라이언트

재시도 / 백오프 / 타임아웃 / 오류 분류를 한 곳에서 처리하고
각 공급사 어댑터는 이 클라이언트를 감싸서 사용한다.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from dropship_sync.core.exceptions import (
    ProviderAuthError,
    ProviderDataError,
    ProviderRateLimitedError,
    ProviderUnreachableError,
)
from dropship_sync.shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RetryPolicy:
    """재시도 정책"""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class ProviderHttpClient:
    """httpx.AsyncClient 래퍼 (공급사 단위)"""

    def __init__(
        self,
        provider: str,
        base_url: str,
        timeout: float = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.provider = provider
        self.base_url = base_url.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._backoff = wait_exponential(
            multiplier=self.retry_policy.base_delay,
            max=self.retry_policy.max_delay
        )
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    def _wait(self, retry_state) -> float:
        """지수 백오프, 429 는 Retry-After 이상 대기"""
        delay = self._backoff(retry_state)
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(error, ProviderRateLimitedError) and error.retry_after:
            delay = max(delay, error.retry_after)
        return delay

    def _before_sleep(self, retry_state) -> None:
        logger.warning(
            f"{self.provider} API 재시도 중... ({retry_state.attempt_number}회째): "
            f"{retry_state.outcome.exception()}"
        )

    async def request_json(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        validate: Optional[Callable[[Dict[str, Any]], None]] = None
    ) -> Dict[str, Any]:
        """요청 실행 후 JSON 반환 (일시적 오류는 재시도)

        validate 는 HTTP 200 응답 본문의 공급사 오류를 예외로 바꾸는 검사 함수.
        재시도 안에서 호출되므로 본문으로 알려주는 요청 한도 초과도 재시도된다.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_policy.max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type((ProviderUnreachableError, ProviderRateLimitedError)),
            before_sleep=self._before_sleep,
            sleep=self._sleep,
            reraise=True
        )

        async for attempt in retrying:
            with attempt:
                payload = await self._send(method, path, data, json_body, params, headers)
                if validate is not None:
                    validate(payload)
                return payload

    async def _send(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, Any]],
        json_body: Optional[Dict[str, Any]],
        params: Optional[Dict[str, Any]],
        headers: Optional[Dict[str, str]]
    ) -> Dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = await self.client.request(
                method,
                url,
                data=data,
                json=json_body,
                params=params,
                headers=headers
            )
        except httpx.TimeoutException as e:
            raise ProviderUnreachableError(f"{self.provider} 요청 시간 초과: {e}", provider=self.provider)
        except httpx.RequestError as e:
            raise ProviderUnreachableError(f"{self.provider} 요청 실패: {e}", provider=self.provider)

        self._raise_for_status(response)

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderDataError(
                f"{self.provider} 응답 JSON 파싱 실패: {e}",
                provider=self.provider,
                details={"body": response.text[:500]}
            )

        if not isinstance(payload, dict):
            raise ProviderDataError(
                f"{self.provider} 응답 형식 오류: {type(payload).__name__}",
                provider=self.provider
            )
        return payload

    def _raise_for_status(self, response: httpx.Response) -> None:
        """HTTP 상태 코드를 오류 종류로 분류"""
        status_code = response.status_code
        if status_code < 400:
            return

        body = response.text[:500]
        if status_code in (401, 403):
            raise ProviderAuthError(
                f"{self.provider} 인증 실패: {status_code}",
                provider=self.provider,
                details={"status_code": status_code, "body": body}
            )
        if status_code == 429:
            raise ProviderRateLimitedError(
                self.provider,
                retry_after=_parse_retry_after(response.headers.get("Retry-After"))
            )
        if status_code >= 500 or status_code == 408:
            raise ProviderUnreachableError(
                f"{self.provider} 서버 오류: {status_code}",
                provider=self.provider,
                details={"status_code": status_code, "body": body}
            )
        raise ProviderDataError(
            f"{self.provider} 요청 거부: {status_code}",
            provider=self.provider,
            details={"status_code": status_code, "body": body}
        )
