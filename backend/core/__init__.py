"""Core infrastructure layer - encoding, registry, BGAPI, transports, pacing"""

from .encoder import EncodingError, build_queue, convert, encode_motion
from .registry import DeviceRegistry
from .serial_transport import SerialTransport
from .transport import MockTransport, TransportFault

__all__ = [
    'EncodingError', 'build_queue', 'convert', 'encode_motion',
    'DeviceRegistry', 'SerialTransport', 'MockTransport', 'TransportFault',
]
