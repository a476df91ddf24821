"""구조화된 로깅 유틸리티"""
import logging
import logging.config
from typing import Optional
import sys

_configured_level: Optional[str] = None


def configure_logging(level: str = "INFO", fmt: Optional[str] = None) -> None:
    """루트 로거 설정 (레벨이 바뀔 때만 다시 적용)"""
    global _configured_level

    if _configured_level == level:
        return

    log_config = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'simple': {
                'format': fmt or '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            }
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'simple',
                'stream': sys.stdout
            }
        },
        'root': {
            'handlers': ['console'],
            'level': level
        }
    }

    logging.config.dictConfig(log_config)
    _configured_level = level


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """로거 인스턴스 반환"""
    configure_logging(level or _configured_level or "INFO")
    return logging.getLogger(name)


def log_product_sync(logger: logging.Logger, action: str, product_id: str, details: Optional[dict] = None):
    """상품 동기화 로그"""
    log_data = {
        'action': action,
        'product_id': product_id,
    }

    if details:
        log_data.update(details)

    logger.info(f"Product sync: {action} {product_id}", extra={'sync': log_data})


def log_api_request(logger: logging.Logger, method: str, endpoint: str, status_code: int, duration: float):
    """API 요청 로그"""
    log_data = {
        'http_method': method,
        'endpoint': endpoint,
        'status_code': status_code,
        'duration_ms': duration * 1000
    }

    logger.info(f"API Request: {method} {endpoint} - {status_code}", extra=log_data)
