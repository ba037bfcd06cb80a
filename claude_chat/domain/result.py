"""显式的成功/失败结果封装。

发起请求的操作统一返回 RequestResult，而不是返回 None 或直接抛异常：

- RequestResult.success(value)
- RequestResult.failure(error, exception=None, status_code=None)

两个分支互斥，调用方通过 is_success / match 区分。
"""

from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class RequestResult(Generic[T]):
    """请求结果。

    Attributes:
        is_success: 是否成功。
        value: 成功时的返回值，失败时为 None。
        error: 失败时的可读错误信息。
        exception: 失败原因（可选）。
        status_code: 失败时的 HTTP 状态码（若有）。
    """

    is_success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    exception: Optional[BaseException] = None
    status_code: Optional[int] = None

    @classmethod
    def success(cls, value: T) -> "RequestResult[T]":
        return cls(is_success=True, value=value)

    @classmethod
    def failure(
        cls,
        error: str,
        exception: Optional[BaseException] = None,
        status_code: Optional[int] = None,
    ) -> "RequestResult[T]":
        return cls(is_success=False, error=error, exception=exception, status_code=status_code)

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    def match(
        self,
        on_success: Optional[Callable[[T], None]] = None,
        on_failure: Optional[Callable[[str], None]] = None,
    ) -> None:
        """根据结果分支调用对应回调。"""

        if self.is_success:
            if on_success:
                on_success(self.value)
        elif on_failure:
            on_failure(self.error or "")

    def get_value_or_default(self, default: Optional[T] = None) -> Optional[T]:
        return self.value if self.is_success else default

    def map(self, mapper: Callable[[T], U]) -> "RequestResult[U]":
        """对成功值做转换；失败原样传递，mapper 抛出的异常转为失败结果。"""

        if self.is_failure:
            return RequestResult.failure(self.error or "", self.exception, self.status_code)
        try:
            return RequestResult.success(mapper(self.value))
        except Exception as e:
            return RequestResult.failure(str(e), e)
