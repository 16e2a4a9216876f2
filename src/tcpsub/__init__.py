from tcpsub.config import ReaderConfig, discover_config, load_config
from tcpsub.errors import (
    ConnectError,
    DecodeError,
    NotSerializableError,
    ReaderClosedError,
    StreamClosedError,
    TcpSubError,
    TransportError,
)
from tcpsub.framing import (
    HEADER_SIZE,
    MAX_FRAME_SIZE,
    decode_header,
    encode_frame,
    encode_header,
)
from tcpsub.reader import FramedReader, connect
from tcpsub.serialization import (
    JsonSerializer,
    MsgpackSerializer,
    Serializer,
    get_serializer,
    is_serializable,
    serializable,
)

__all__ = [
    "HEADER_SIZE",
    "MAX_FRAME_SIZE",
    "ConnectError",
    "DecodeError",
    "FramedReader",
    "JsonSerializer",
    "MsgpackSerializer",
    "NotSerializableError",
    "ReaderClosedError",
    "ReaderConfig",
    "Serializer",
    "StreamClosedError",
    "TcpSubError",
    "TransportError",
    "connect",
    "decode_header",
    "discover_config",
    "encode_frame",
    "encode_header",
    "get_serializer",
    "is_serializable",
    "load_config",
    "serializable",
]
