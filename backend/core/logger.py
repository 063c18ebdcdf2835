"""
Structured logging for the motion installer.

Prefixes:
  ⚡ CRITICAL - Errors, failures
  ⚠️  WARN     - Warnings, unexpected behavior
  ✓  OK       - Success confirmations
  ⬡  SERIAL   - Raw adapter I/O
  📡 RADIO    - BGAPI events (scan responses, connection status)
  →  SEND     - Motion payload writes
  🔄 SESSION  - Transfer session lifecycle
"""

import threading
from enum import Enum
from typing import Optional
from datetime import datetime


class LogLevel(Enum):
    CRITICAL = "⚡ CRITICAL"
    WARN = "⚠️  WARN    "
    OK = "✓  OK      "
    SERIAL = "⬡  SERIAL  "
    RADIO = "📡 RADIO   "
    SEND = "→  SEND    "
    SESSION = "🔄 SESSION "
    INFO = "ℹ  INFO    "


# Sessions log from several worker threads at once
_print_lock = threading.Lock()


def log(level: LogLevel, message: str, data: Optional[dict] = None):
    """Log a message with structured prefix."""
    timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    prefix = level.value

    line = f"[{timestamp}] {prefix} | {message}"
    if data:
        line += f" | {data}"

    with _print_lock:
        print(line)


# Convenience functions
def log_critical(msg: str, data: Optional[dict] = None):
    log(LogLevel.CRITICAL, msg, data)

def log_warn(msg: str, data: Optional[dict] = None):
    log(LogLevel.WARN, msg, data)

def log_ok(msg: str, data: Optional[dict] = None):
    log(LogLevel.OK, msg, data)

def log_serial(direction: str, data: bytes, port: str = ""):
    """Log adapter I/O. direction is '>>>' (send) or '<<<' (recv)"""
    log(LogLevel.SERIAL, f"{direction} [{port}] {data.hex(' ')}")

def log_radio(msg: str, data: Optional[dict] = None):
    log(LogLevel.RADIO, msg, data)

def log_send(msg: str, data: Optional[dict] = None):
    log(LogLevel.SEND, msg, data)

def log_session(msg: str, data: Optional[dict] = None):
    log(LogLevel.SESSION, msg, data)

def log_info(msg: str, data: Optional[dict] = None):
    log(LogLevel.INFO, msg, data)
