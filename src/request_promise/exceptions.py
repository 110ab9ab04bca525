"""Rejection reasons produced by request promises."""

from __future__ import annotations

import json
from typing import Any, Mapping


class RequestPromiseError(Exception):
    """Base exception for all rejections created by the dispatcher."""

    def __init__(
        self,
        message: str,
        *,
        error: object = None,
        options: Mapping[str, Any] | None = None,
        response: Any = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.options = dict(options) if options is not None else {}
        self.response = response
        self.status_code = status_code
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def message(self) -> str:
        return str(self.args[0])


class RequestError(RequestPromiseError):
    """Raised when no response could be obtained (DNS, TCP, invalid URL...)."""

    def __init__(self, cause: BaseException, *, options: Mapping[str, Any] | None = None) -> None:
        super().__init__(str(cause) or type(cause).__name__, error=cause, options=options, cause=cause)


class StatusCodeError(RequestPromiseError):
    """Raised for responses outside the 2xx range while ``simple`` is on."""

    def __init__(
        self,
        status_code: int,
        body: object,
        *,
        options: Mapping[str, Any] | None = None,
        response: Any = None,
    ) -> None:
        rendered = body if isinstance(body, str) else _render_body(body)
        super().__init__(
            f"{status_code} - {rendered}",
            error=body,
            options=options,
            response=response,
            status_code=status_code,
        )


def _render_body(body: object) -> str:
    if isinstance(body, (bytes, bytearray)):
        return bytes(body).decode("utf-8", errors="replace")
    try:
        return json.dumps(body)
    except (TypeError, ValueError):
        return repr(body)
