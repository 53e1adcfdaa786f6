from asyncosc.codec import BUNDLE_TAG, MAX_BUNDLE_DEPTH, Codec, OscCodec, decode, encode
from asyncosc.config import (
    OscConfig,
    SocketConfig,
    discover_config,
    load_config,
)
from asyncosc.convert import (
    into_osc_args,
    into_osc_message,
    into_osc_packet,
    into_osc_type,
)
from asyncosc.errors import (
    DecodeError,
    EncodeError,
    OscError,
    ProtocolError,
    TransportError,
    TruncatedDatagramError,
)
from asyncosc.receiver import Datagram, DatagramReceiver
from asyncosc.socket import OscSender, OscSocket
from asyncosc.stream import (
    DecodeFailed,
    PacketStream,
    ReceiveFailed,
    Received,
    StreamItem,
)
from asyncosc.transport import (
    Address,
    AddressLike,
    DatagramEndpoint,
    SharedEndpoint,
    UdpEndpoint,
)
from asyncosc.types import (
    Array,
    Blob,
    Bool,
    Char,
    Color,
    Double,
    Float,
    Inf,
    Int,
    Long,
    Midi,
    Nil,
    OscBundle,
    OscMessage,
    OscPacket,
    OscTime,
    OscType,
    String,
    Time,
)

__all__ = [
    # Socket handles
    "OscSocket",
    "OscSender",
    # Stream
    "PacketStream",
    "StreamItem",
    "Received",
    "DecodeFailed",
    "ReceiveFailed",
    "DatagramReceiver",
    "Datagram",
    # Transport
    "Address",
    "AddressLike",
    "DatagramEndpoint",
    "SharedEndpoint",
    "UdpEndpoint",
    # Packets
    "OscPacket",
    "OscMessage",
    "OscBundle",
    "OscTime",
    "OscType",
    "Int",
    "Float",
    "String",
    "Blob",
    "Time",
    "Long",
    "Double",
    "Char",
    "Color",
    "Midi",
    "Bool",
    "Nil",
    "Inf",
    "Array",
    # Conversion
    "into_osc_type",
    "into_osc_args",
    "into_osc_message",
    "into_osc_packet",
    # Codec
    "Codec",
    "OscCodec",
    "encode",
    "decode",
    "BUNDLE_TAG",
    "MAX_BUNDLE_DEPTH",
    # Errors
    "OscError",
    "TransportError",
    "ProtocolError",
    "DecodeError",
    "EncodeError",
    "TruncatedDatagramError",
    # Config
    "OscConfig",
    "SocketConfig",
    "load_config",
    "discover_config",
]
