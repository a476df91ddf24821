"""Result/Either 패턴 (상태 전이처럼 예외 대신 결과를 돌려주는 경로에서 사용)"""
from typing import TypeVar, Generic, Union, Optional
from dataclasses import dataclass

T = TypeVar('T')


@dataclass
class Success(Generic[T]):
    """성공 결과"""
    value: T

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def get_value(self) -> T:
        return self.value

    def get_error(self) -> None:
        return None


@dataclass
class Failure(Generic[T]):
    """실패 결과

    code 는 호출자가 분기할 수 있는 짧은 식별자 (예: "not_found", "invalid_transition")
    """
    error: str
    code: str = "error"
    value: Optional[T] = None

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    def get_value(self) -> Optional[T]:
        return self.value

    def get_error(self) -> str:
        return self.error


# Union type for type hints
Result = Union[Success[T], Failure[T]]
