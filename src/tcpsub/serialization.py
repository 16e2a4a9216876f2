"""Payload serialization for decoded frame reads.

Provides the ``Serializer`` protocol, the ``serializable`` marker for
dataclasses, and two concrete serializers: ``JsonSerializer`` (the
default) and ``MsgpackSerializer``. Both convert values to plain
structures first and rebuild typed values from the target type's hints,
so ``deserialize(data, Point)`` returns a ``Point``.
"""

from __future__ import annotations

import dataclasses
import enum
import json
import logging
import types
from typing import Any, Literal, Protocol, Union, cast, get_args, get_origin, get_type_hints, runtime_checkable

import msgpack

from tcpsub.errors import DecodeError, NotSerializableError

__all__ = [
    "JsonSerializer",
    "MsgpackSerializer",
    "Serializer",
    "SerializerKind",
    "from_plain",
    "get_serializer",
    "is_serializable",
    "serializable",
    "to_plain",
]

logger = logging.getLogger("tcpsub.serialization")

type SerializerKind = Literal["json", "msgpack"]

_BUILTIN_TYPES: frozenset[type] = frozenset(
    {str, int, float, bool, bytes, list, dict, tuple, type(None)}
)


def serializable[C](cls: type[C]) -> type[C]:
    """Mark a dataclass as eligible for decoded reads.

    Examples
    --------
    >>> from dataclasses import dataclass
    >>> @serializable
    ... @dataclass(frozen=True)
    ... class Quote:
    ...     symbol: str
    ...     price: float
    >>> is_serializable(Quote)
    True
    """
    if not dataclasses.is_dataclass(cls):
        msg = f"{cls.__name__} must be a dataclass"
        raise TypeError(msg)

    type_name = f"{cls.__module__}.{cls.__qualname__}"
    cls.__serializable_type__ = type_name  # type: ignore[attr-defined]
    return cls


def is_serializable(cls: object) -> bool:
    """Return whether values of *cls* can be decoded from a frame."""
    if not isinstance(cls, type):
        return False
    if cls in _BUILTIN_TYPES or issubclass(cls, enum.Enum):
        return True
    # Subclasses of a marked dataclass are not marked themselves.
    return "__serializable_type__" in vars(cls)


def to_plain(value: Any) -> Any:
    """Convert *value* into nested builtins understood by JSON and msgpack."""
    match value:
        case enum.Enum():
            return value.value
        case None | bool() | int() | float() | str() | bytes():
            return value
        case list() | tuple():
            return [to_plain(item) for item in cast(list[Any], value)]
        case dict():
            return {to_plain(k): to_plain(v) for k, v in cast(dict[Any, Any], value).items()}
        case _ if dataclasses.is_dataclass(value) and not isinstance(value, type):
            if not is_serializable(type(value)):
                raise NotSerializableError(type(value))
            return {
                f.name: to_plain(getattr(value, f.name))
                for f in dataclasses.fields(value)
            }
        case _:
            raise NotSerializableError(type(value))


def _field_types(cls: type) -> dict[str, Any]:
    try:
        return get_type_hints(cls)
    except NameError:
        # Forward references that cannot be resolved fall back to raw annotations.
        return {f.name: f.type for f in dataclasses.fields(cls)}


def _mismatch(value: Any, expected: Any) -> DecodeError:
    return DecodeError(f"expected {expected!r}, got {type(value).__name__}")


def from_plain[T](value: Any, tp: type[T]) -> T:
    """Rebuild a value of type *tp* from the plain structure *value*.

    Raises
    ------
    DecodeError
        If *value* does not fit *tp*.
    """
    return cast(T, _from_plain(value, tp))


def _from_plain(value: Any, tp: Any) -> Any:
    if tp is Any:
        return value

    origin = get_origin(tp)
    args = get_args(tp)

    if origin is Union or origin is types.UnionType:
        if value is None and type(None) in args:
            return None
        for arg in args:
            if arg is type(None):
                continue
            try:
                return _from_plain(value, arg)
            except DecodeError:
                continue
        raise _mismatch(value, tp)

    if origin is list:
        if not isinstance(value, list):
            raise _mismatch(value, tp)
        return [_from_plain(item, args[0]) for item in value] if args else value

    if origin is tuple:
        if not isinstance(value, (list, tuple)):
            raise _mismatch(value, tp)
        if len(args) == 2 and args[1] is Ellipsis:
            return tuple(_from_plain(item, args[0]) for item in value)
        if len(args) != len(value):
            msg = f"expected {len(args)} items for {tp!r}, got {len(value)}"
            raise DecodeError(msg)
        return tuple(_from_plain(item, t) for item, t in zip(value, args))

    if origin is dict:
        if not isinstance(value, dict):
            raise _mismatch(value, tp)
        if not args:
            return value
        key_type, value_type = args
        return {
            _from_plain(_coerce_key(k, key_type), key_type): _from_plain(v, value_type)
            for k, v in value.items()
        }

    if tp is None or tp is type(None):
        if value is not None:
            raise _mismatch(value, None)
        return None

    if not isinstance(tp, type):
        return value

    if issubclass(tp, enum.Enum):
        try:
            return tp(value)
        except ValueError as e:
            raise DecodeError(f"{value!r} is not a valid {tp.__name__}") from e

    if dataclasses.is_dataclass(tp):
        return _dataclass_from_plain(value, tp)

    match value:
        case bool() if tp is bool:
            return value
        case bool():
            raise _mismatch(value, tp)
        case int() if tp is float:
            return float(value)
        case list() if tp is tuple:
            return tuple(value)
        case _ if isinstance(value, tp):
            return value
        case _:
            raise _mismatch(value, tp)


def _coerce_key(key: Any, key_type: Any) -> Any:
    # JSON object keys are always strings.
    if not isinstance(key, str) or key_type is str or not isinstance(key_type, type):
        return key
    if issubclass(key_type, enum.Enum):
        for member in key_type:
            if str(member.value) == key:
                return member.value
        return key
    if key_type is int or key_type is float:
        try:
            return key_type(key)
        except ValueError as e:
            raise DecodeError(f"{key!r} is not a valid {key_type.__name__} key") from e
    return key


def _dataclass_from_plain(value: Any, cls: type) -> Any:
    if not isinstance(value, dict):
        raise _mismatch(value, cls)

    hints = _field_types(cls)
    data = cast(dict[str, Any], value)
    kwargs: dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        if not f.init or f.name not in data:
            continue
        kwargs[f.name] = _from_plain(data[f.name], hints.get(f.name, Any))

    try:
        return cls(**kwargs)
    except TypeError as e:
        raise DecodeError(f"cannot build {cls.__name__}: {e}") from e


@runtime_checkable
class Serializer(Protocol):
    """Bytes-to-typed-value codec used by ``FramedReader.read_decoded``.

    Any object with these three methods satisfies this protocol.
    """

    def serialize(self, obj: Any) -> bytes: ...

    def deserialize[T](self, data: bytes, cls: type[T]) -> T: ...

    def supports(self, cls: type) -> bool: ...


class JsonSerializer:
    """UTF-8 JSON serializer.

    JSON has no binary type, so ``bytes`` is not supported.

    Examples
    --------
    >>> ser = JsonSerializer()
    >>> ser.deserialize(ser.serialize({"key": "value"}), dict)
    {'key': 'value'}
    """

    def serialize(self, obj: Any) -> bytes:
        return json.dumps(to_plain(obj), separators=(",", ":")).encode("utf-8")

    def deserialize[T](self, data: bytes, cls: type[T]) -> T:
        try:
            payload: object = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as e:
            logger.debug("Invalid JSON payload for %s: %s", cls, e)
            raise DecodeError(f"invalid JSON payload: {e}") from e
        return from_plain(payload, cls)

    def supports(self, cls: type) -> bool:
        return cls is not bytes and is_serializable(cls)


class MsgpackSerializer:
    """MessagePack serializer.

    Examples
    --------
    >>> ser = MsgpackSerializer()
    >>> ser.deserialize(ser.serialize(b"raw"), bytes)
    b'raw'
    """

    def serialize(self, obj: Any) -> bytes:
        return cast(bytes, msgpack.packb(to_plain(obj), use_bin_type=True))

    def deserialize[T](self, data: bytes, cls: type[T]) -> T:
        try:
            payload: object = msgpack.unpackb(data, raw=False, strict_map_key=False)
        except ValueError as e:
            # msgpack's ExtraData, FormatError and StackError are ValueErrors too.
            logger.debug("Invalid msgpack payload for %s: %s", cls, e)
            raise DecodeError(f"invalid msgpack payload: {e}") from e
        return from_plain(payload, cls)

    def supports(self, cls: type) -> bool:
        return is_serializable(cls)


def get_serializer(kind: SerializerKind) -> Serializer:
    """Return a new serializer for *kind* (``"json"`` or ``"msgpack"``)."""
    match kind:
        case "json":
            return JsonSerializer()
        case "msgpack":
            return MsgpackSerializer()
        case _:
            msg = f"Unknown serializer: {kind!r}"
            raise ValueError(msg)
