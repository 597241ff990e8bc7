# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""Pytest configuration for hardware integration tests."""

import pytest


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--hardware",
        action="store_true",
        default=False,
        help="Run integration tests against a fastboot device on the USB bus",
    )
    parser.addoption(
        "--serial",
        action="store",
        default=None,
        help="USB serial number of the device to test against",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --hardware is given."""
    if config.getoption("--hardware"):
        return

    skip = pytest.mark.skip(reason="needs --hardware")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


@pytest.fixture(scope="session")
def device_serial(request):
    """Get the device serial number from command line (optional override)."""
    return request.config.getoption("--serial")


@pytest.fixture
def fastboot_device(device_serial):
    """
    Connect to the fastboot device on the bus.

    Function-scoped so every test starts from a fresh session.
    """
    from fastboot_protocol import FastbootDevice, PyUsbTransport, find_single_device

    transport = PyUsbTransport(find_single_device(device_serial))
    device = FastbootDevice(transport)
    device.connect()
    yield device
    device.close()
