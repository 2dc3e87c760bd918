"""Application error types raised at the API boundary."""

import inspect
from enum import Enum, IntEnum
from uuid import uuid4


class AppErrorCode(str, Enum):
    E_INTERNAL_ERROR = "E_INTERNAL"
    E_NOT_FOUND = "E_NOT_FOUND"
    E_ALREADY_EXISTS = "E_ALREADY_EXISTS"


class HttpStatusCode(IntEnum):
    NOT_FOUND = 404
    CONFLICT = 409
    INTERNAL_ERROR = 500


class AppError(Exception):
    """Error carrying an API error code, HTTP status and the raising call site."""

    def __init__(
        self,
        errcode: AppErrorCode | str = AppErrorCode.E_INTERNAL_ERROR,
        errmesg: str = "We are sorry, an error occurred.",
        status_code: HttpStatusCode | int = HttpStatusCode.INTERNAL_ERROR,
    ):
        super().__init__(errmesg)
        self.errcode = errcode.value if isinstance(errcode, AppErrorCode) else errcode
        self.errmesg = errmesg
        self.status_code = int(status_code)
        self.erresid = uuid4().hex[:10]

        caller_frame = inspect.stack()[1]
        module = inspect.getmodule(caller_frame.frame)
        module_name = (
            module.__name__ if module and getattr(module, "__name__", None) else caller_frame.filename
        )
        self.caller_info = f"{module_name}:{caller_frame.function}:{caller_frame.lineno}"

    def __str__(self) -> str:
        return f"{self.errcode}: {self.errmesg}"
