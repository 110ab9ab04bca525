"""Response model handed to callbacks, transforms and full-response consumers."""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict


class Response(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    status_code: int
    headers: httpx.Headers
    body: Any = None
    request: httpx.Request
    url: str

    @classmethod
    def from_httpx(cls, response: httpx.Response, body: Any) -> "Response":
        return cls(
            status_code=response.status_code,
            headers=response.headers,
            body=body,
            request=response.request,
            url=str(response.url),
        )

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code <= 299
