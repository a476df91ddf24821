"""테넌트 식별자 검증"""
import re

from dropship_sync.core.exceptions import InvalidTenantError

_TENANT_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")


def ensure_tenant(tenant_id: str) -> str:
    """모든 진입점에서 작업 시작 전에 호출"""
    if not isinstance(tenant_id, str) or not _TENANT_ID_PATTERN.match(tenant_id):
        raise InvalidTenantError(tenant_id)
    return tenant_id
