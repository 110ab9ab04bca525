"""Per-call options and the defaults chain they are merged from."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Callable, Mapping, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator

OptionsLayer = Union[str, Mapping[str, Any]]
DefaultsChain = Tuple[Mapping[str, Any], ...]

EMPTY_CHAIN: DefaultsChain = ()

_CONTROL_FIELDS = frozenset({"simple", "resolve_with_full_response", "transform", "callback"})


class RequestOptions(BaseModel):
    """Effective options of a single call.

    Known fields are validated; everything else is kept as an extra and
    forwarded to the engine untouched.
    """

    model_config = ConfigDict(extra="allow", frozen=True, arbitrary_types_allowed=True)

    uri: str | None = None
    method: str | None = None
    simple: bool = True
    resolve_with_full_response: bool = False
    transform: Any = None
    callback: Any = None

    @field_validator("uri", mode="before")
    @classmethod
    def _stringify_uri(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value

    @field_validator("simple", mode="before")
    @classmethod
    def _simple_or_default(cls, value: Any) -> bool:
        return value if isinstance(value, bool) else True

    @field_validator("resolve_with_full_response", mode="before")
    @classmethod
    def _full_response_or_default(cls, value: Any) -> bool:
        return value if isinstance(value, bool) else False

    @property
    def extras(self) -> dict[str, Any]:
        return dict(self.model_extra or {})

    @property
    def has_transform(self) -> bool:
        return callable(self.transform)

    def engine_options(self) -> dict[str, Any]:
        options = {key: value for key, value in self.extras.items() if key not in _CONTROL_FIELDS}
        options["uri"] = self.uri
        if self.method is not None:
            options["method"] = self.method
        return options

    def describe(self) -> dict[str, Any]:
        """Options as attached to rejections, without the callback."""
        described = {"uri": self.uri, "method": self.method, "transform": self.transform}
        described = {key: value for key, value in described.items() if value is not None}
        described["simple"] = self.simple
        described["resolve_with_full_response"] = self.resolve_with_full_response
        described.update(self.extras)
        return described


def _coerce_layer(layer: OptionsLayer | None) -> dict[str, Any]:
    if layer is None:
        return {}
    if isinstance(layer, str):
        return {"uri": layer}
    if not isinstance(layer, Mapping):
        raise TypeError(f"options must be a mapping or a URI string, not {type(layer).__name__}")
    coerced: dict[str, Any] = {}
    for key, value in layer.items():
        coerced[str(key)] = dict(value) if isinstance(value, Mapping) else value
    if "url" in coerced:
        url = coerced.pop("url")
        coerced.setdefault("uri", url)
    return coerced


def freeze_layer(layer: OptionsLayer) -> Mapping[str, Any]:
    return MappingProxyType(_coerce_layer(layer))


def extend_chain(chain: DefaultsChain, layer: OptionsLayer) -> DefaultsChain:
    return chain + (freeze_layer(layer),)


def merge_layers(chain: DefaultsChain, *layers: OptionsLayer | None) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for layer in (*chain, *layers):
        merged.update(_coerce_layer(layer))
    return merged


def require_uri(options: Mapping[str, Any]) -> None:
    if not options.get("uri") and not options.get("url"):
        raise ValueError("options.uri is a required argument")


def normalize_options(
    chain: DefaultsChain,
    uri_or_options: OptionsLayer | None,
    options: Mapping[str, Any] | None = None,
    *,
    callback: Callable[..., Any] | None = None,
    method: str | None = None,
) -> RequestOptions:
    merged = merge_layers(chain, uri_or_options, options)
    if callback is not None:
        merged["callback"] = callback
    if method is not None:
        merged["method"] = method
    if not callable(merged.get("callback")):
        merged.pop("callback", None)
        require_uri(merged)
    return RequestOptions.model_validate(merged)
