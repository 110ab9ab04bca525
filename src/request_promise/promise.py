"""Chainable handle over :class:`asyncio.Future`.

``Promise`` adds ``then``/``catch``/``finally_`` chaining on top of an asyncio
future and reports rejections nobody consumed. The report goes through
``loop.call_exception_handler`` one loop iteration after the rejection, so a
handler attached synchronously (or within the same iteration) always wins.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Generator, Tuple, Type, Union

ExceptionFilter = Union[Type[BaseException], Tuple[Type[BaseException], ...], Callable[[BaseException], Any]]


class Promise:
    def __init__(self, *, loop: asyncio.AbstractEventLoop | None = None, muted: bool = False) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._future: asyncio.Future[Any] = self._loop.create_future()
        self._future.add_done_callback(self._on_settled)
        self._handled = False
        self._muted = muted

    @classmethod
    def resolved(cls, value: Any) -> "Promise":
        promise = cls()
        promise._resolve(value)
        return promise

    @classmethod
    def rejected(cls, exc: BaseException) -> "Promise":
        promise = cls()
        promise._reject(exc)
        return promise

    @property
    def future(self) -> asyncio.Future[Any]:
        return self._future

    def done(self) -> bool:
        return self._future.done()

    def promise(self) -> "Promise":
        return self

    def then(
        self,
        on_fulfilled: Callable[[Any], Any] | None = None,
        on_rejected: Callable[[BaseException], Any] | None = None,
    ) -> "Promise":
        self._handled = True
        child = Promise(loop=self._loop)

        def propagate(future: asyncio.Future[Any]) -> None:
            if future.cancelled():
                child._future.cancel()
                return
            exc = future.exception()
            if exc is None:
                if on_fulfilled is None:
                    child._resolve(future.result())
                    return
                handler, argument = on_fulfilled, future.result()
            else:
                if on_rejected is None:
                    child._reject(exc)
                    return
                handler, argument = on_rejected, exc
            try:
                result = handler(argument)
            except Exception as err:
                child._reject(err)
                return
            child._resolve(result)

        self._future.add_done_callback(propagate)
        return child

    def catch(self, *args: Any) -> "Promise":
        """``catch(handler)`` or ``catch(exc_class_or_predicate, handler)``."""
        if len(args) == 1:
            predicate, handler = None, args[0]
        elif len(args) == 2:
            predicate, handler = args
        else:
            raise TypeError("catch() takes a handler, optionally preceded by a filter")

        def on_rejected(exc: BaseException) -> Any:
            if predicate is None or _matches(predicate, exc):
                return handler(exc)
            raise exc

        return self.then(None, on_rejected)

    def finally_(self, handler: Callable[[], Any]) -> "Promise":
        def on_fulfilled(value: Any) -> Any:
            result = handler()
            if inspect.isawaitable(result):
                return _await_then_return(result, value)
            return value

        def on_rejected(exc: BaseException) -> Any:
            result = handler()
            if inspect.isawaitable(result):
                return _await_then_raise(result, exc)
            raise exc

        return self.then(on_fulfilled, on_rejected)

    def __await__(self) -> Generator[Any, None, Any]:
        self._handled = True
        return self._future.__await__()

    def _resolve(self, value: Any) -> None:
        if self._future.done():
            return
        if value is self:
            self._reject(TypeError("a promise cannot be resolved with itself"))
        elif isinstance(value, Promise):
            value._handled = True
            value._future.add_done_callback(self._adopt)
        elif inspect.isawaitable(value):
            asyncio.ensure_future(value, loop=self._loop).add_done_callback(self._adopt)
        else:
            self._future.set_result(value)

    def _reject(self, exc: BaseException) -> None:
        if not self._future.done():
            self._future.set_exception(exc)

    def _adopt(self, future: asyncio.Future[Any]) -> None:
        if future.cancelled():
            self._future.cancel()
            return
        exc = future.exception()
        if exc is not None:
            self._reject(exc)
        else:
            self._resolve(future.result())

    def _on_settled(self, future: asyncio.Future[Any]) -> None:
        if not future.cancelled() and future.exception() is not None:
            self._loop.call_soon(self._check_unhandled)

    def _check_unhandled(self) -> None:
        exc = self._future.exception()
        if self._handled or self._muted:
            return
        self._loop.call_exception_handler(
            {
                "message": "Unhandled rejection",
                "exception": exc,
                "promise": self,
            }
        )

    def __repr__(self) -> str:
        if not self._future.done():
            state = "pending"
        elif self._future.cancelled():
            state = "cancelled"
        elif self._future.exception() is not None:
            state = "rejected"
        else:
            state = "fulfilled"
        return f"<{type(self).__name__} {state}>"


def _matches(predicate: ExceptionFilter, exc: BaseException) -> bool:
    if isinstance(predicate, tuple) or (isinstance(predicate, type) and issubclass(predicate, BaseException)):
        return isinstance(exc, predicate)
    return bool(predicate(exc))


async def _await_then_return(awaitable: Awaitable[Any], value: Any) -> Any:
    await awaitable
    return value


async def _await_then_raise(awaitable: Awaitable[Any], exc: BaseException) -> Any:
    await awaitable
    raise exc
