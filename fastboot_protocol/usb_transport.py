# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
USB transport layer for fastboot communication.

UsbTransport is the boundary to the operating system's USB stack: one
device exposing a bulk IN and a bulk OUT endpoint. PyUsbTransport
implements it with pyusb (libusb backend).
"""

from __future__ import annotations

import errno
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

import usb.core
import usb.util

from .errors import (
    DeviceDisconnectedError,
    DeviceNotFoundError,
    MultipleDevicesError,
    UsbError,
)
from .protocol import (
    FASTBOOT_USB_CLASS,
    FASTBOOT_USB_PROTOCOL,
    FASTBOOT_USB_SUBCLASS,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 5000


class EndpointDirection(Enum):
    IN = "in"
    OUT = "out"


class EndpointType(Enum):
    CONTROL = "control"
    ISOCHRONOUS = "isochronous"
    BULK = "bulk"
    INTERRUPT = "interrupt"


_PYUSB_ENDPOINT_TYPES = {
    usb.util.ENDPOINT_TYPE_CTRL: EndpointType.CONTROL,
    usb.util.ENDPOINT_TYPE_ISO: EndpointType.ISOCHRONOUS,
    usb.util.ENDPOINT_TYPE_BULK: EndpointType.BULK,
    usb.util.ENDPOINT_TYPE_INTR: EndpointType.INTERRUPT,
}


@dataclass(frozen=True)
class EndpointInfo:
    """Endpoint descriptor as seen during discovery."""
    direction: EndpointDirection
    transfer_type: EndpointType
    number: int


class UsbTransport(ABC):
    """
    Abstract USB device transport.

    Transfers address endpoints by number; the direction is implied by the
    method. Disconnect notifications are delivered to subscribers with the
    device identity.
    """

    def __init__(self):
        self._disconnect_callbacks: List[Callable[[str], None]] = []

    @property
    @abstractmethod
    def device_id(self) -> str:
        """Identity of the underlying USB device."""

    @abstractmethod
    def endpoints(self) -> List[EndpointInfo]:
        """Endpoints of the first alternate setting of the first interface."""

    @abstractmethod
    def open(self) -> None:
        pass

    @abstractmethod
    def reset(self) -> None:
        pass

    @abstractmethod
    def select_configuration(self, value: int) -> None:
        pass

    @abstractmethod
    def claim_interface(self, number: int) -> None:
        pass

    @abstractmethod
    def transfer_in(self, endpoint: int, length: int) -> bytes:
        """Read up to length bytes from an IN endpoint."""

    @abstractmethod
    def transfer_out(self, endpoint: int, data: bytes) -> int:
        """Write data to an OUT endpoint, returning the bytes written."""

    @abstractmethod
    def close(self) -> None:
        pass

    def subscribe_disconnect(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """
        Register a callback for disconnect notifications.

        Args:
            callback: Called with the device identity on disconnect

        Returns:
            Unsubscribe function
        """
        self._disconnect_callbacks.append(callback)

        def unsubscribe():
            if callback in self._disconnect_callbacks:
                self._disconnect_callbacks.remove(callback)

        return unsubscribe

    def notify_disconnect(self) -> None:
        """Deliver a disconnect notification to all subscribers."""
        logger.info("USB device %s disconnected", self.device_id)
        for callback in list(self._disconnect_callbacks):
            try:
                callback(self.device_id)
            except Exception:
                logger.exception("Error in disconnect callback")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class PyUsbTransport(UsbTransport):
    """
    pyusb transport for a fastboot device.

    Example:
        dev = find_single_device()
        with PyUsbTransport(dev) as transport:
            ...
    """

    def __init__(self, device: usb.core.Device, timeout_ms: int = DEFAULT_TIMEOUT_MS):
        """
        Args:
            device: pyusb device handle
            timeout_ms: Timeout for each bulk transfer in milliseconds
        """
        super().__init__()
        self._device = device
        self.timeout_ms = timeout_ms

    @property
    def device_id(self) -> str:
        return f"{self._device.bus}:{self._device.address}"

    def endpoints(self) -> List[EndpointInfo]:
        cfg = self._device[0]
        intf = cfg[(0, 0)]

        result = []
        for ep in intf:
            address = ep.bEndpointAddress
            if usb.util.endpoint_direction(address) == usb.util.ENDPOINT_IN:
                direction = EndpointDirection.IN
            else:
                direction = EndpointDirection.OUT
            result.append(EndpointInfo(
                direction=direction,
                transfer_type=_PYUSB_ENDPOINT_TYPES[usb.util.endpoint_type(ep.bmAttributes)],
                number=address & 0x0F,
            ))
        return result

    def open(self) -> None:
        # libusb opens lazily; only the kernel driver is in the way
        try:
            if self._call(self._device.is_kernel_driver_active, 0):
                self._call(self._device.detach_kernel_driver, 0)
                logger.debug("Detached kernel driver from interface 0")
        except NotImplementedError:
            # Not available on this platform
            pass

    def reset(self) -> None:
        self._call(self._device.reset)

    def select_configuration(self, value: int) -> None:
        self._call(self._device.set_configuration, value)

    def claim_interface(self, number: int) -> None:
        self._call(usb.util.claim_interface, self._device, number)

    def transfer_in(self, endpoint: int, length: int) -> bytes:
        data = self._call(
            self._device.read,
            usb.util.ENDPOINT_IN | endpoint,
            length,
            timeout=self.timeout_ms,
        )
        return bytes(data)

    def transfer_out(self, endpoint: int, data: bytes) -> int:
        return self._call(
            self._device.write,
            usb.util.ENDPOINT_OUT | endpoint,
            data,
            timeout=self.timeout_ms,
        )

    def close(self) -> None:
        """Release the USB device."""
        usb.util.dispose_resources(self._device)
        logger.info("USB device %s closed", self.device_id)

    def _call(self, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except usb.core.USBError as e:
            if e.errno == errno.ENODEV:
                self.notify_disconnect()
                raise DeviceDisconnectedError() from e
            raise UsbError(f"USB error: {e}") from e


def is_fastboot_device(device: usb.core.Device) -> bool:
    """Check whether any interface of the device speaks fastboot."""
    for cfg in device:
        intf = usb.util.find_descriptor(
            cfg,
            bInterfaceClass=FASTBOOT_USB_CLASS,
            bInterfaceSubClass=FASTBOOT_USB_SUBCLASS,
            bInterfaceProtocol=FASTBOOT_USB_PROTOCOL,
        )
        if intf is not None:
            return True
    return False


def _serial_number(device: usb.core.Device) -> Optional[str]:
    try:
        return device.serial_number
    except (ValueError, usb.core.USBError) as e:
        # No permission to read string descriptors
        logger.debug("Cannot read serial number of %s:%s: %s", device.bus, device.address, e)
        return None


def find_devices(serial_number: Optional[str] = None) -> List[usb.core.Device]:
    """
    Find all fastboot devices on the bus.

    Args:
        serial_number: Only return devices with this USB serial number

    Returns:
        List of pyusb devices

    Raises:
        UsbError: If the bus cannot be enumerated
    """
    try:
        # Matching reads descriptors lazily while the generator is consumed
        devices = list(usb.core.find(find_all=True, custom_match=is_fastboot_device))
    except (usb.core.USBError, usb.core.NoBackendError) as e:
        raise UsbError(f"Cannot enumerate USB devices: {e}") from e
    if serial_number is not None:
        devices = [d for d in devices if _serial_number(d) == serial_number]
    return devices


def find_single_device(serial_number: Optional[str] = None) -> usb.core.Device:
    """
    Find exactly one fastboot device.

    Raises:
        DeviceNotFoundError: If no device matches
        MultipleDevicesError: If more than one device matches
    """
    matches = find_devices(serial_number=serial_number)

    if not matches:
        raise DeviceNotFoundError("No fastboot device found")

    if len(matches) > 1:
        logger.error(
            "Multiple fastboot devices found; refusing to choose automatically. "
            "Devices: %s",
            [f"{d.bus}:{d.address}" for d in matches],
        )
        raise MultipleDevicesError(
            f"Multiple fastboot devices found ({len(matches)} devices)",
            devices=matches,
        )

    logger.info("Using USB device %04x:%04x at %s:%s",
                matches[0].idVendor, matches[0].idProduct,
                matches[0].bus, matches[0].address)
    return matches[0]
