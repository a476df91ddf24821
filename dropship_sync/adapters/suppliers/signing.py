"""공급사 요청 서명

서명 방식은 공급사마다 다르므로 어댑터 생성 시 주입한다.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict
import hashlib
import hmac
import json


def stringify_param(value: Any) -> str:
    """서명/전송용 파라미터 문자열 변환 (중첩 구조는 JSON)"""
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), sort_keys=True)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class RequestSigner(ABC):
    """요청 서명 인터페이스"""

    @abstractmethod
    def sign(self, url_path: str, params: Dict[str, str]) -> str:
        """url_path 와 문자열화된 파라미터로 서명 생성"""
        pass


class AlibabaHmacSigner(RequestSigner):
    """1688 오픈 API 서명

    HMAC-SHA1(app_secret, url_path + 정렬된 key+value 연결) 의 대문자 16진수
    """

    def __init__(self, app_secret: str):
        self._secret = app_secret.encode("utf-8")

    def sign(self, url_path: str, params: Dict[str, str]) -> str:
        factor = url_path + "".join(f"{key}{params[key]}" for key in sorted(params))
        digest = hmac.new(self._secret, factor.encode("utf-8"), hashlib.sha1)
        return digest.hexdigest().upper()
