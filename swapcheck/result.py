from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from swapcheck.errors import ServiceError, TransportError

T = TypeVar("T")

KIND_SERVICE = "service"
KIND_TRANSPORT = "transport"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def succeeded(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: str
    kind: str = KIND_TRANSPORT
    status: int = 0

    @property
    def succeeded(self) -> bool:
        return False

    @property
    def retryable(self) -> bool:
        return self.kind == KIND_TRANSPORT

    def raise_for_error(self) -> None:
        details = {"status": self.status}
        if self.kind == KIND_SERVICE:
            raise ServiceError(self.error, details)
        raise TransportError(self.error, details)

    def unwrap(self):
        self.raise_for_error()


Result = Union[Ok[T], Err]
