"""
Target device profile - how the robot's BLE module identifies itself
and where motion data is written.
"""

# 128-bit UUID of the robot's TX characteristic, as it appears in advertisements
TX_CHARACTERISTIC_UUID = bytes([
    0xF9, 0x0E, 0x9C, 0xFE, 0x7E, 0x05, 0x44, 0xA5,
    0x9D, 0x75, 0xF1, 0x36, 0x44, 0xD6, 0xF6, 0x45,
])

# GATT handle of the TX characteristic on the robot
TX_CHARACTERISTIC_HANDLE = 31

# Advertisements longer than this may carry the UUID at SIGNATURE_OFFSET
SIGNATURE_MIN_LENGTH = 25
SIGNATURE_OFFSET = 9

# Parameters for ble_cmd_gap_connect_direct (units of 1.25ms / 10ms)
CONN_INTERVAL_MIN = 60
CONN_INTERVAL_MAX = 76
SUPERVISION_TIMEOUT = 100
SLAVE_LATENCY = 0


def matches_signature(advertisement: bytes) -> bool:
    """Does this advertisement payload carry the robot's TX UUID?"""
    if len(advertisement) <= SIGNATURE_MIN_LENGTH:
        return False
    end = SIGNATURE_OFFSET + len(TX_CHARACTERISTIC_UUID)
    return bytes(advertisement[SIGNATURE_OFFSET:end]) == TX_CHARACTERISTIC_UUID


def signature_advertisement() -> bytes:
    """An advertisement payload that matches_signature() (used by the mock adapter)."""
    # flags AD, then a 128-bit service list AD whose UUID lands at SIGNATURE_OFFSET
    prefix = bytes([0x02, 0x01, 0x06, 0x03, 0x02, 0x0A, 0x18, 0x11, 0x07])
    return prefix + TX_CHARACTERISTIC_UUID + bytes([0x00])
