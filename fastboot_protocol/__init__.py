# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
Fastboot Protocol - Python client library.

This package provides a Python interface to a fastboot bootloader
over USB bulk endpoints.

Example usage:
    from fastboot_protocol import FastbootDevice, PyUsbTransport, find_single_device

    with FastbootDevice(PyUsbTransport(find_single_device())) as device:
        device.connect()

        # Query a variable
        print(device.get_variable("product"))

        # Upload a payload
        device.download(
            payload,
            on_progress=lambda p: print(f"{p:.0%}")
        )
"""

from .device import FastbootDevice
from .errors import (
    FastbootClientError,
    UsbError,
    EndpointsNotFoundError,
    MultipleInEndpointsError,
    MultipleOutEndpointsError,
    NotConnectedError,
    DeviceDisconnectedError,
    DeviceNotFoundError,
    MultipleDevicesError,
    FastbootError,
    DownloadSizeMismatchError,
    CommandLengthError,
)
from .protocol import (
    FASTBOOT_USB_CLASS,
    FASTBOOT_USB_SUBCLASS,
    FASTBOOT_USB_PROTOCOL,
    MAX_COMMAND_LENGTH,
    RESPONSE_PACKET_SIZE,
    BULK_TRANSFER_SIZE,
    ResponseStatus,
    ReadState,
    FastbootResponse,
    ResponseAssembler,
    decode_packet,
    encode_command,
    format_download_size,
    parse_download_size,
    iter_chunks,
)
from .usb_transport import (
    EndpointDirection,
    EndpointType,
    EndpointInfo,
    UsbTransport,
    PyUsbTransport,
    is_fastboot_device,
    find_devices,
    find_single_device,
)

__version__ = "0.1.0"

__all__ = [
    # Session
    "FastbootDevice",
    # Errors
    "FastbootClientError",
    "UsbError",
    "EndpointsNotFoundError",
    "MultipleInEndpointsError",
    "MultipleOutEndpointsError",
    "NotConnectedError",
    "DeviceDisconnectedError",
    "DeviceNotFoundError",
    "MultipleDevicesError",
    "FastbootError",
    "DownloadSizeMismatchError",
    "CommandLengthError",
    # Protocol
    "FASTBOOT_USB_CLASS",
    "FASTBOOT_USB_SUBCLASS",
    "FASTBOOT_USB_PROTOCOL",
    "MAX_COMMAND_LENGTH",
    "RESPONSE_PACKET_SIZE",
    "BULK_TRANSFER_SIZE",
    "ResponseStatus",
    "ReadState",
    "FastbootResponse",
    "ResponseAssembler",
    "decode_packet",
    "encode_command",
    "format_download_size",
    "parse_download_size",
    "iter_chunks",
    # Transport
    "EndpointDirection",
    "EndpointType",
    "EndpointInfo",
    "UsbTransport",
    "PyUsbTransport",
    "is_fastboot_device",
    "find_devices",
    "find_single_device",
]
