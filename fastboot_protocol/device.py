# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
Fastboot session over a USB transport.

FastbootDevice binds one UsbTransport, validates its endpoints and runs
commands and payload transfers on it. Calls on a session must not
overlap; there is no internal locking.
"""

import logging
from typing import Callable, Optional

from .errors import (
    DeviceDisconnectedError,
    DownloadSizeMismatchError,
    EndpointsNotFoundError,
    FastbootError,
    MultipleInEndpointsError,
    MultipleOutEndpointsError,
    NotConnectedError,
)
from .protocol import (
    BULK_TRANSFER_SIZE,
    RESPONSE_PACKET_SIZE,
    FastbootResponse,
    ReadState,
    ResponseAssembler,
    encode_command,
    format_download_size,
    iter_chunks,
    parse_download_size,
)
from .usb_transport import EndpointDirection, EndpointType, UsbTransport

logger = logging.getLogger(__name__)

# Hex identifier digits expected by the unlock signer
IDENTIFIER_TOKEN_DIGITS = 128
IDENTIFIER_TOKEN_LINE = 2

ProgressCallback = Callable[[float], None]


class FastbootDevice:
    """
    Client for a fastboot bootloader on one USB device.

    Can be used as a context manager:
        with FastbootDevice(PyUsbTransport(find_single_device())) as device:
            device.connect()
            print(device.get_variable("product"))
    """

    def __init__(self, transport: UsbTransport, chunk_size: int = BULK_TRANSFER_SIZE):
        """
        Args:
            transport: USB transport bound to the device
            chunk_size: Maximum size of each payload transfer (default 16384)
        """
        if chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {chunk_size}")

        self._transport = transport
        self.chunk_size = chunk_size
        self.ep_in: Optional[int] = None
        self.ep_out: Optional[int] = None
        self._connected = False
        self._disconnected = False
        self._unsubscribe: Optional[Callable[[], None]] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @property
    def transport(self) -> UsbTransport:
        return self._transport

    @property
    def is_connected(self) -> bool:
        """True between a successful connect() and a disconnect."""
        return self._connected and not self._disconnected

    def connect(self) -> None:
        """
        Validate the device's endpoints and claim its interface.

        Failures to open, configure or claim the device are always raised,
        also when called again on an already connected device. Only the
        device reset is best-effort.

        Raises:
            EndpointsNotFoundError: If a bulk IN or OUT endpoint is missing
            MultipleInEndpointsError: If there is more than one bulk IN endpoint
            MultipleOutEndpointsError: If there is more than one bulk OUT endpoint
            UsbError: If the device cannot be opened or claimed
        """
        self._connected = False
        self.ep_in = None
        self.ep_out = None

        if self._unsubscribe is None:
            self._unsubscribe = self._transport.subscribe_disconnect(self._on_disconnect)

        ep_in = None
        ep_out = None
        for endpoint in self._transport.endpoints():
            logger.debug("Checking endpoint: %s", endpoint)
            if endpoint.transfer_type != EndpointType.BULK:
                logger.debug("Endpoint type not bulk. Ignoring...")
                continue

            if endpoint.direction == EndpointDirection.IN:
                if ep_in is not None:
                    raise MultipleInEndpointsError()
                ep_in = endpoint.number
            else:
                if ep_out is not None:
                    raise MultipleOutEndpointsError()
                ep_out = endpoint.number

        if ep_in is None or ep_out is None:
            raise EndpointsNotFoundError()

        logger.debug("Endpoints: in = %d, out = %d", ep_in, ep_out)

        self._transport.open()
        try:
            self._transport.reset()
        except Exception as e:
            # Not every device supports reset
            logger.debug("Device reset failed, continuing: %s", e)

        self._transport.select_configuration(1)
        self._transport.claim_interface(0)

        self.ep_in = ep_in
        self.ep_out = ep_out
        self._disconnected = False
        self._connected = True
        logger.info("Connected to fastboot device %s", self._transport.device_id)

    def close(self) -> None:
        """Drop the session and close the transport."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._connected = False
        self._transport.close()

    def read_response(self) -> FastbootResponse:
        """
        Read a raw command response from the bootloader.

        Returns:
            FastbootResponse with the response text and data size, if any

        Raises:
            FastbootError: If the bootloader replied with FAIL or garbage
        """
        self._check_session()

        assembler = ResponseAssembler()
        state = ReadState.AWAITING_PACKET
        while not state.is_terminal:
            packet = self._transport.transfer_in(self.ep_in, RESPONSE_PACKET_SIZE)
            state = assembler.feed(packet)
            logger.debug("Response: %r -> %s", bytes(packet), state.value)

        if state == ReadState.FAILURE:
            raise assembler.error()
        return assembler.response()

    def run_command(self, command: str) -> FastbootResponse:
        """
        Send a raw fastboot command and read its response.

        Args:
            command: Command in raw fastboot format (e.g. "getvar:product")

        Returns:
            FastbootResponse

        Raises:
            CommandLengthError: If the command is longer than 64 bytes
            UsbError: If the transfer fails
            FastbootError: If the bootloader rejects the command
        """
        packet = encode_command(command)
        self._check_session()

        self._transport.transfer_out(self.ep_out, packet)
        logger.debug("Command: %s", command)

        return self.read_response()

    def send_raw_payload(self, buffer: bytes, on_progress: Optional[ProgressCallback] = None) -> None:
        """
        Send a raw data payload in chunks of at most chunk_size bytes.

        Args:
            buffer: Payload data
            on_progress: Optional callback(fraction) with progress in [0, 1]

        Raises:
            UsbError: If a transfer fails; remaining chunks are not sent
        """
        self._check_session()

        view = memoryview(buffer).cast("B").toreadonly()
        total = len(view)

        for start, length in iter_chunks(total, self.chunk_size):
            logger.debug("Sending %d bytes to endpoint, %d remaining, offset=%d",
                         length, total - start, start)
            if on_progress:
                on_progress(start / total)

            self._transport.transfer_out(self.ep_out, view[start:start + length])

        if on_progress:
            on_progress(1.0)

    def download(self, payload: bytes, on_progress: Optional[ProgressCallback] = None) -> FastbootResponse:
        """
        Negotiate a download and stream the payload to the bootloader.

        Args:
            payload: Data to send
            on_progress: Optional callback(fraction)

        Returns:
            Response read after the payload was sent

        Raises:
            FastbootError: If the bootloader does not accept the download
            DownloadSizeMismatchError: If the accepted size differs
        """
        size = memoryview(payload).nbytes
        resp = self.run_command(f"download:{format_download_size(size)}")

        if resp.data_size is None:
            raise FastbootError("FAIL", f"Unexpected response to download command: {resp.text}")

        accepted = parse_download_size(resp.data_size)
        if accepted != size:
            raise DownloadSizeMismatchError(expected=size, actual=accepted)

        logger.info("Sending payload: %d bytes", size)
        self.send_raw_payload(payload, on_progress)

        logger.debug("Payload sent, waiting for response...")
        return self.read_response()

    def get_variable(self, name: str) -> str:
        """Read a bootloader variable."""
        return self.run_command(f"getvar:{name}").text

    def get_identifier_token(self) -> str:
        """
        Read the device identifier token used to sign an unlock request.

        Returns:
            Hex token right-padded with zeros to 128 digits

        Raises:
            FastbootError: If the token is missing or too long
        """
        resp = self.run_command("oem get_identifier_token")
        lines = resp.text.split("\n")
        if len(lines) <= IDENTIFIER_TOKEN_LINE:
            raise FastbootError("FAIL", f"No identifier token in response: {resp.text!r}")

        token = lines[IDENTIFIER_TOKEN_LINE]
        if len(token) > IDENTIFIER_TOKEN_DIGITS:
            raise FastbootError(
                "FAIL",
                f"Identifier token size overflow: {len(token)} is more than "
                f"{IDENTIFIER_TOKEN_DIGITS} digits",
            )
        return token.ljust(IDENTIFIER_TOKEN_DIGITS, "0")

    def unlock_bootloader(self, signature: bytes,
                          on_progress: Optional[ProgressCallback] = None) -> FastbootResponse:
        """
        Unlock the bootloader with a signed identifier token.

        Args:
            signature: Signature over the identifier token, computed elsewhere
            on_progress: Optional callback(fraction) for the upload

        Returns:
            Response to the unlock command
        """
        self.download(signature, on_progress)
        return self.run_command("flashing unlock_bootloader")

    def _on_disconnect(self, device_id: str) -> None:
        if device_id != self._transport.device_id:
            return
        logger.info("USB device disconnected")
        self._disconnected = True

    def _check_session(self) -> None:
        if self._disconnected:
            raise DeviceDisconnectedError()
        if not self._connected:
            raise NotConnectedError()
