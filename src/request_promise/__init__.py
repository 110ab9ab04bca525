"""Promise-returning HTTP requests that keep callback and event interfaces."""

from .client import Dispatcher, RequestPromise
from .engine import EventEmitter, Request, RequestEngine
from .exceptions import RequestError, RequestPromiseError, StatusCodeError
from .models import Response
from .promise import Promise
from .request_options import RequestOptions

rp = Dispatcher()

defaults = rp.defaults
get = rp.get
head = rp.head
post = rp.post
put = rp.put
patch = rp.patch
delete = rp.delete

__all__ = [
    "Dispatcher",
    "EventEmitter",
    "Promise",
    "Request",
    "RequestEngine",
    "RequestError",
    "RequestOptions",
    "RequestPromise",
    "RequestPromiseError",
    "Response",
    "StatusCodeError",
    "defaults",
    "delete",
    "get",
    "head",
    "patch",
    "post",
    "put",
    "rp",
]
