# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
Exceptions raised by the fastboot client.

Two kinds of failure are distinguished:
    UsbError      -- the USB device or session is unusable
    FastbootError -- the bootloader rejected an operation

CommandLengthError is a local precondition check and never touches the
transport.
"""


class FastbootClientError(Exception):
    """Base exception for fastboot client errors."""
    pass


class UsbError(FastbootClientError):
    """USB transport or session error."""
    pass


class EndpointsNotFoundError(UsbError):
    """The interface lacks a bulk IN or bulk OUT endpoint."""

    def __init__(self, message: str = "Could not find the required IN and OUT endpoints"):
        super().__init__(message)


class MultipleInEndpointsError(UsbError):
    """The interface has more than one bulk IN endpoint."""

    def __init__(self, message: str = "Interface has multiple IN endpoints"):
        super().__init__(message)


class MultipleOutEndpointsError(UsbError):
    """The interface has more than one bulk OUT endpoint."""

    def __init__(self, message: str = "Interface has multiple OUT endpoints"):
        super().__init__(message)


class NotConnectedError(UsbError):
    """Operation attempted before connect()."""

    def __init__(self, message: str = "Device is not connected"):
        super().__init__(message)


class DeviceDisconnectedError(UsbError):
    """The USB device has been disconnected."""

    def __init__(self, message: str = "USB device disconnected"):
        super().__init__(message)


class DeviceNotFoundError(UsbError):
    """No fastboot device found on the bus."""
    pass


class MultipleDevicesError(UsbError):
    """More than one fastboot device matched."""

    def __init__(self, message, devices):
        super().__init__(message)
        self.devices = devices


class FastbootError(FastbootClientError):
    """Error status returned by the bootloader."""

    def __init__(self, status: str, message: str):
        super().__init__(f"Bootloader replied with {status}: {message}")
        self.status = status
        self.bootloader_message = message


class DownloadSizeMismatchError(FastbootError):
    """Bootloader accepted a different download size than requested."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            "FAIL",
            f"Bootloader wants {actual} bytes, requested to send {expected} bytes",
        )
        self.expected = expected
        self.actual = actual


class CommandLengthError(ValueError):
    """Command exceeds the maximum packet length."""
    pass
