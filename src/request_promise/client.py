"""Dispatcher that returns a promise and still honours callbacks."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Mapping

import httpx

from .engine import Request, RequestEngine
from .exceptions import RequestError, StatusCodeError
from .models import Response
from .promise import Promise
from .request_options import (
    EMPTY_CHAIN,
    DefaultsChain,
    OptionsLayer,
    RequestOptions,
    extend_chain,
    normalize_options,
)

logger = logging.getLogger(__name__)

RequestCallback = Callable[[BaseException | None, Response | None, Any], Any]


def _status_error(response: Response, body: Any, options: RequestOptions) -> StatusCodeError | None:
    if not options.simple or response.is_success:
        return None
    return StatusCodeError(response.status_code, body, options=options.describe(), response=response)


def _transform_arity(transform: Callable[..., Any]) -> int:
    try:
        signature = inspect.signature(transform)
    except (TypeError, ValueError):
        return 2
    positional = 0
    for parameter in signature.parameters.values():
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            return 2
        if parameter.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            positional += 1
    return min(positional, 2)


def _call_transform(transform: Callable[..., Any], body: Any, response: Response) -> Any:
    """Call ``transform(body, response)``, or ``transform(body)`` for one-argument callables."""
    arguments = (body, response)
    return transform(*arguments[: _transform_arity(transform)])


class RequestPromise:
    """Promise for one exchange that also exposes the engine request.

    Attributes that are not part of the promise API (``on``, ``once``,
    ``pipe``, ``listeners``...) are looked up on the underlying
    :class:`~request_promise.engine.Request`.
    """

    def __init__(self, options: RequestOptions) -> None:
        self.options = options
        self._callback: RequestCallback | None = options.callback if callable(options.callback) else None
        self._promise = Promise(muted=self._callback is not None)
        self._request: Request | None = None

    def __getattr__(self, name: str) -> Any:
        request = self.__dict__.get("_request")
        if request is None or name.startswith("_"):
            raise AttributeError(name)
        return getattr(request, name)

    @property
    def request(self) -> Request | None:
        return self._request

    def then(self, on_fulfilled: Callable[[Any], Any] | None = None, on_rejected: Callable[[BaseException], Any] | None = None) -> Promise:
        return self._promise.then(on_fulfilled, on_rejected)

    def catch(self, *args: Any) -> Promise:
        return self._promise.catch(*args)

    def finally_(self, handler: Callable[[], Any]) -> Promise:
        return self._promise.finally_(handler)

    def promise(self) -> Promise:
        self._promise._muted = False
        return self._promise

    def __await__(self):
        return self._promise.__await__()

    def _bind(self, request: Request) -> None:
        self._request = request

    def _on_complete(self, error: BaseException | None, response: Response | None, body: Any) -> None:
        if self._callback is not None:
            try:
                self._callback(error, response, body)
            except Exception as exc:
                self._promise.future.get_loop().call_exception_handler(
                    {
                        "message": "Unhandled error in request callback",
                        "exception": exc,
                        "request_promise": self,
                    }
                )

        if error is not None:
            self._promise._reject(RequestError(error, options=self.options.describe()))
            return
        assert response is not None

        failure = _status_error(response, body, self.options)
        if failure is not None:
            self._promise._reject(failure)
            return

        if self.options.has_transform:
            try:
                value = _call_transform(self.options.transform, body, response)
            except Exception as exc:
                self._promise._reject(exc)
                return
        elif self.options.resolve_with_full_response:
            value = response
        else:
            value = body
        self._promise._resolve(value)

    def __repr__(self) -> str:
        return f"<RequestPromise {self.options.method or 'GET'} {self.options.uri} {self._promise!r}>"


class Dispatcher:
    """Issues requests and returns :class:`RequestPromise` handles.

    ``dispatcher(uri_or_options, options=None, callback=None)`` accepts a URI
    string or an options mapping, optional extra options and an optional
    node-style callback ``callback(error, response, body)``. A callable passed
    as ``options`` is taken as the callback.
    """

    def __init__(
        self,
        engine: RequestEngine | None = None,
        *,
        httpx_client: httpx.AsyncClient | None = None,
        defaults: DefaultsChain = EMPTY_CHAIN,
    ) -> None:
        self._engine = engine or RequestEngine(httpx_client)
        self._defaults: DefaultsChain = tuple(defaults)

    @property
    def engine(self) -> RequestEngine:
        return self._engine

    @property
    def defaults_chain(self) -> DefaultsChain:
        return self._defaults

    def defaults(self, overrides: OptionsLayer) -> "Dispatcher":
        return Dispatcher(self._engine, defaults=extend_chain(self._defaults, overrides))

    def __call__(
        self,
        uri_or_options: OptionsLayer | None,
        options: Mapping[str, Any] | RequestCallback | None = None,
        callback: RequestCallback | None = None,
    ) -> RequestPromise:
        return self._dispatch(uri_or_options, options, callback)

    def get(self, uri_or_options: OptionsLayer | None, options: Any = None, callback: RequestCallback | None = None) -> RequestPromise:
        return self._dispatch(uri_or_options, options, callback, method="GET")

    def head(self, uri_or_options: OptionsLayer | None, options: Any = None, callback: RequestCallback | None = None) -> RequestPromise:
        return self._dispatch(uri_or_options, options, callback, method="HEAD")

    def post(self, uri_or_options: OptionsLayer | None, options: Any = None, callback: RequestCallback | None = None) -> RequestPromise:
        return self._dispatch(uri_or_options, options, callback, method="POST")

    def put(self, uri_or_options: OptionsLayer | None, options: Any = None, callback: RequestCallback | None = None) -> RequestPromise:
        return self._dispatch(uri_or_options, options, callback, method="PUT")

    def patch(self, uri_or_options: OptionsLayer | None, options: Any = None, callback: RequestCallback | None = None) -> RequestPromise:
        return self._dispatch(uri_or_options, options, callback, method="PATCH")

    def delete(self, uri_or_options: OptionsLayer | None, options: Any = None, callback: RequestCallback | None = None) -> RequestPromise:
        return self._dispatch(uri_or_options, options, callback, method="DELETE")

    del_ = delete

    def _dispatch(
        self,
        uri_or_options: OptionsLayer | None,
        options: Any,
        callback: RequestCallback | None,
        *,
        method: str | None = None,
    ) -> RequestPromise:
        if callback is None and callable(options):
            callback, options = options, None
        effective = normalize_options(self._defaults, uri_or_options, options, callback=callback, method=method)
        request_promise = RequestPromise(effective)
        logger.debug("dispatching %s %s", effective.method or "GET", effective.uri)
        request = self._engine.request(effective.engine_options(), request_promise._on_complete)
        request_promise._bind(request)
        return request_promise
