from __future__ import annotations

import enum
from dataclasses import dataclass, field

import msgpack
import pytest

from tcpsub.errors import DecodeError, NotSerializableError
from tcpsub.serialization import (
    JsonSerializer,
    MsgpackSerializer,
    Serializer,
    from_plain,
    get_serializer,
    is_serializable,
    serializable,
    to_plain,
)


class Side(enum.Enum):
    BUY = "buy"
    SELL = "sell"


@serializable
@dataclass(frozen=True)
class Quote:
    symbol: str
    price: float
    tags: list[str] = field(default_factory=list)


@serializable
@dataclass(frozen=True)
class Order:
    quote: Quote
    side: Side
    size: int
    venue: tuple[str, int]
    note: str | None = None


@serializable
@dataclass(frozen=True)
class Book:
    levels: dict[int, str]
    sides: dict[Side, float] = field(default_factory=dict)


@dataclass
class Unmarked:
    value: int


class TestSerializableMarker:
    def test_marks_dataclass(self):
        assert is_serializable(Quote)
        assert Quote.__serializable_type__.endswith("Quote")

    def test_rejects_non_dataclass(self):
        with pytest.raises(TypeError):

            @serializable
            class NotADataclass:
                pass

    def test_unmarked_dataclass_is_not_serializable(self):
        assert not is_serializable(Unmarked)

    def test_builtins_and_enums_are_serializable(self):
        for cls in (str, int, float, bool, bytes, list, dict, tuple, type(None), Side):
            assert is_serializable(cls)

    def test_arbitrary_classes_are_not_serializable(self):
        assert not is_serializable(object)
        assert not is_serializable(set)
        assert not is_serializable("str")


class TestPlainConversion:
    def test_dataclass_to_plain(self):
        order = Order(Quote("ACME", 1.5), Side.BUY, 10, ("xnys", 1))
        assert to_plain(order) == {
            "quote": {"symbol": "ACME", "price": 1.5, "tags": []},
            "side": "buy",
            "size": 10,
            "venue": ["xnys", 1],
            "note": None,
        }

    def test_unmarked_dataclass_rejected(self):
        with pytest.raises(NotSerializableError):
            to_plain(Unmarked(1))

    def test_from_plain_rebuilds_nested_types(self):
        plain = {
            "quote": {"symbol": "ACME", "price": 2, "tags": ["a"]},
            "side": "sell",
            "size": 3,
            "venue": ["xnys", 7],
        }
        order = from_plain(plain, Order)
        assert order == Order(Quote("ACME", 2.0, ["a"]), Side.SELL, 3, ("xnys", 7))

    def test_from_plain_ignores_unknown_keys(self):
        assert from_plain({"symbol": "X", "price": 1.0, "extra": 1}, Quote) == Quote("X", 1.0)

    def test_from_plain_missing_field(self):
        with pytest.raises(DecodeError):
            from_plain({"symbol": "X"}, Quote)

    def test_from_plain_type_mismatch(self):
        with pytest.raises(DecodeError):
            from_plain({"symbol": 1, "price": 1.0}, Quote)

    def test_bool_is_not_an_int(self):
        with pytest.raises(DecodeError):
            from_plain(True, int)

    def test_invalid_enum_value(self):
        with pytest.raises(DecodeError):
            from_plain("hold", Side)

    def test_optional_accepts_none(self):
        assert from_plain(None, str | None) is None

    def test_tuple_length_mismatch(self):
        with pytest.raises(DecodeError):
            from_plain(["a"], tuple[str, int])

    def test_homogeneous_tuple(self):
        assert from_plain([1, 2, 3], tuple[int, ...]) == (1, 2, 3)

    def test_typed_dict(self):
        assert from_plain({"a": 1}, dict[str, int]) == {"a": 1}


@pytest.mark.parametrize("serializer", [JsonSerializer(), MsgpackSerializer()])
class TestSerializers:
    def test_satisfies_protocol(self, serializer):
        assert isinstance(serializer, Serializer)

    def test_dataclass_roundtrip(self, serializer):
        order = Order(Quote("ACME", 9.25, ["hot"]), Side.BUY, 100, ("xnas", 2), note="x")
        assert serializer.deserialize(serializer.serialize(order), Order) == order

    def test_primitive_roundtrip(self, serializer):
        assert serializer.deserialize(serializer.serialize([1, 2]), list) == [1, 2]

    def test_garbage_raises_decode_error(self, serializer):
        with pytest.raises(DecodeError):
            serializer.deserialize(b"\xc1\xff\x00", Quote)

    def test_empty_payload_raises_decode_error(self, serializer):
        with pytest.raises(DecodeError):
            serializer.deserialize(b"", Quote)

    def test_non_str_keys_roundtrip(self, serializer):
        book = Book({1: "bid", 2: "ask"}, {Side.BUY: 1.5})
        assert serializer.deserialize(serializer.serialize(book), Book) == book

    def test_deeply_nested_payload_raises_decode_error(self, serializer):
        with pytest.raises(DecodeError):
            serializer.deserialize(b"\x91" * 5000 + b"\x90", list)

    def test_unmarked_type_unsupported(self, serializer):
        assert not serializer.supports(Unmarked)


class TestJsonSerializer:
    def test_encodes_compact_utf8_json(self):
        assert JsonSerializer().serialize(Quote("É", 1.0)) == (
            '{"symbol":"\\u00c9","price":1.0,"tags":[]}'.encode()
        )

    def test_bytes_unsupported(self):
        assert not JsonSerializer().supports(bytes)


    def test_deeply_nested_json_raises_decode_error(self):
        with pytest.raises(DecodeError):
            JsonSerializer().deserialize(b"[" * 5000 + b"]" * 5000, list)

    def test_invalid_int_key(self):
        with pytest.raises(DecodeError):
            JsonSerializer().deserialize(b'{"levels": {"one": "bid"}}', Book)


class TestMsgpackSerializer:
    def test_bytes_supported(self):
        ser = MsgpackSerializer()
        assert ser.supports(bytes)
        assert ser.deserialize(ser.serialize(b"\x00\x01"), bytes) == b"\x00\x01"

    def test_reads_plain_msgpack(self):
        data = msgpack.packb({"symbol": "ACME", "price": 3.0}, use_bin_type=True)
        assert MsgpackSerializer().deserialize(data, Quote) == Quote("ACME", 3.0)


class TestGetSerializer:
    def test_json(self):
        assert isinstance(get_serializer("json"), JsonSerializer)

    def test_msgpack(self):
        assert isinstance(get_serializer("msgpack"), MsgpackSerializer)

    def test_unknown(self):
        with pytest.raises(ValueError):
            get_serializer("pickle")  # type: ignore[arg-type]
