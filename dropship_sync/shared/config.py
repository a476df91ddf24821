"""애플리케이션 설정"""
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field
import os


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # 데이터베이스
    database_url: str = Field(default="sqlite+aiosqlite:///./dropship_sync.db")

    # 로깅
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # API 설정
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_reload: bool = Field(default=False)

    # 공급사 설정 (인증 정보가 없으면 해당 공급사는 등록되지 않음)
    alibaba_api_url: str = Field(default="https://gw.open.1688.com/openapi")
    alibaba_api_key: Optional[str] = Field(default=None)
    alibaba_app_secret: Optional[str] = Field(default=None)
    alibaba_access_token: Optional[str] = Field(default=None)

    # 요청 설정
    request_timeout: int = Field(default=30)
    max_retries: int = Field(default=3)
    retry_base_delay: float = Field(default=1.0)

    # 동시성 / 요청 한도 (테넌트+공급사 단위)
    max_concurrent_requests: int = Field(default=3)
    provider_rate_per_second: float = Field(default=2.0)
    provider_burst: int = Field(default=5)

    # 비즈니스 규칙
    default_markup_factor: float = Field(default=1.3)
    low_stock_threshold: int = Field(default=10)

    # 카탈로그 수집
    import_limit: int = Field(default=50)
    import_page_size: int = Field(default=20)
    import_category_count: int = Field(default=5)

    # 재고 동기화
    inventory_refresh_minutes: int = Field(default=60)
    inventory_batch_size: int = Field(default=200)

    class Config:
        # .env 파일이 있는 경우에만 읽기
        env_file = ".env" if os.path.exists(".env") else None
        case_sensitive = False


# 전역 설정 인스턴스
settings = Settings()


def get_settings() -> Settings:
    """설정 인스턴스 반환"""
    return settings
