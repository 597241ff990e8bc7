# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
Fastboot protocol definitions and packet handling.

Commands are short ASCII strings sent in a single bulk OUT transfer.
Responses arrive as 64-byte packets on the bulk IN endpoint, each starting
with a 4-character status code followed by a message.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from .errors import CommandLengthError, FastbootError

# USB interface triple identifying a fastboot interface
FASTBOOT_USB_CLASS = 0xFF
FASTBOOT_USB_SUBCLASS = 0x42
FASTBOOT_USB_PROTOCOL = 0x03

MAX_COMMAND_LENGTH = 64
RESPONSE_PACKET_SIZE = 64
BULK_TRANSFER_SIZE = 16384
DOWNLOAD_SIZE_DIGITS = 8

STATUS_LENGTH = 4


class ResponseStatus(str, Enum):
    """Response status codes."""
    OKAY = "OKAY"
    INFO = "INFO"
    DATA = "DATA"
    FAIL = "FAIL"

    def __str__(self) -> str:
        return self.value


class ReadState(Enum):
    """
    States of the response read loop.

    ACCUMULATING is the awaiting state after an INFO packet: the next packet
    is read from it exactly as from AWAITING_PACKET, but text is pending.
    """
    AWAITING_PACKET = "awaiting_packet"
    ACCUMULATING = "accumulating"
    SUCCESS = "success"
    FAILURE = "failure"

    @property
    def is_terminal(self) -> bool:
        return self in (ReadState.SUCCESS, ReadState.FAILURE)


@dataclass(frozen=True)
class FastbootResponse:
    """Response to a fastboot command."""
    text: str = ""
    data_size: Optional[str] = None

    @property
    def data_length(self) -> Optional[int]:
        """Byte length announced by a DATA reply, if any."""
        if self.data_size is None:
            return None
        return parse_download_size(self.data_size)


def decode_packet(packet: bytes) -> Tuple[str, str]:
    """
    Split a response packet into status and message.

    Undecodable bytes are replaced rather than rejected, so garbage
    surfaces as an unknown status instead of a decode error.

    Args:
        packet: Raw bytes read from the IN endpoint

    Returns:
        Tuple of (status, message)
    """
    text = bytes(packet).decode("utf-8", errors="replace")
    return text[:STATUS_LENGTH], text[STATUS_LENGTH:]


class ResponseAssembler:
    """
    Accumulates response packets into a FastbootResponse.

    A new assembler is used for every read, so nothing carries over from a
    previous response.
    """

    def __init__(self):
        self.state = ReadState.AWAITING_PACKET
        self._parts: List[str] = []
        self._data_size: Optional[str] = None
        self._error: Optional[FastbootError] = None

    def feed(self, packet: bytes) -> ReadState:
        """
        Apply one response packet.

        Args:
            packet: Raw bytes of one IN transfer

        Returns:
            The state after applying the packet

        Raises:
            RuntimeError: If the response has already terminated
        """
        if self.state.is_terminal:
            raise RuntimeError(f"Response already terminated ({self.state.value})")

        status, message = decode_packet(packet)

        if status == ResponseStatus.OKAY:
            self._parts.append(message)
            self.state = ReadState.SUCCESS
        elif status == ResponseStatus.INFO:
            # More packets follow
            self._parts.append(message + "\n")
            self.state = ReadState.ACCUMULATING
        elif status == ResponseStatus.DATA:
            self._data_size = message
            self.state = ReadState.SUCCESS
        else:
            # FAIL or garbage
            self._error = FastbootError(status, message)
            self.state = ReadState.FAILURE

        return self.state

    def response(self) -> FastbootResponse:
        """Return the completed response."""
        if self.state != ReadState.SUCCESS:
            raise RuntimeError(f"No complete response ({self.state.value})")
        return FastbootResponse(text="".join(self._parts), data_size=self._data_size)

    def error(self) -> FastbootError:
        """Return the error that terminated the response."""
        if self._error is None:
            raise RuntimeError(f"Response did not fail ({self.state.value})")
        return self._error


def encode_command(command: str) -> bytes:
    """
    Encode a command for transmission.

    Args:
        command: Raw fastboot command (e.g. "getvar:version")

    Returns:
        ASCII bytes of the command, without terminator

    Raises:
        CommandLengthError: If the command is longer than 64 bytes
        UnicodeEncodeError: If the command is not ASCII
    """
    data = command.encode("ascii")
    if len(data) > MAX_COMMAND_LENGTH:
        raise CommandLengthError(
            f"Command is {len(data)} bytes, maximum is {MAX_COMMAND_LENGTH}"
        )
    return data


def format_download_size(size: int) -> str:
    """Format a payload size as the 8-digit hex string download: expects."""
    if size < 0:
        raise ValueError(f"Negative transfer size: {size}")

    size_hex = f"{size:0{DOWNLOAD_SIZE_DIGITS}x}"
    if len(size_hex) != DOWNLOAD_SIZE_DIGITS:
        raise FastbootError(
            "FAIL",
            f"Transfer size overflow: {size_hex} is more than {DOWNLOAD_SIZE_DIGITS} digits",
        )
    return size_hex


def parse_download_size(data_size: str) -> int:
    """Parse the hex size announced by a DATA reply."""
    try:
        # Devices may pad the packet with NULs
        return int(data_size.rstrip("\x00"), 16)
    except ValueError:
        raise FastbootError("FAIL", f"Invalid data size: {data_size!r}") from None


def iter_chunks(total_length: int, chunk_size: int = BULK_TRANSFER_SIZE) -> Iterator[Tuple[int, int]]:
    """
    Yield (start, length) windows covering a buffer of total_length bytes.

    Windows are consecutive, at most chunk_size long, and only the last
    one may be shorter.
    """
    if chunk_size <= 0:
        raise ValueError(f"Chunk size must be positive, got {chunk_size}")

    for start in range(0, total_length, chunk_size):
        yield start, min(chunk_size, total_length - start)
