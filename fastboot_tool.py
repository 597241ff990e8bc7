#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
Command-line client for fastboot bootloaders over USB.

Usage:
    python fastboot_tool.py devices
    python fastboot_tool.py getvar product
    python fastboot_tool.py command "oem device-info"
    python fastboot_tool.py token
    python fastboot_tool.py download payload.bin
    python fastboot_tool.py unlock signature.bin

Requirements:
    pip install pyusb
"""

import argparse
import logging
import sys
from pathlib import Path

from fastboot_protocol import (
    BULK_TRANSFER_SIZE,
    FastbootClientError,
    FastbootDevice,
    PyUsbTransport,
    find_devices,
    find_single_device,
)
from fastboot_protocol.usb_transport import DEFAULT_TIMEOUT_MS


def print_progress(fraction: float):
    print(f"\rUploading: {fraction * 100:3.0f}%", end="", flush=True)


def cmd_devices(serial_number):
    """List fastboot devices."""
    devices = find_devices(serial_number=serial_number)
    if not devices:
        print("No fastboot devices found")
        return False

    for dev in devices:
        print(f"{dev.bus:03d}:{dev.address:03d}  {dev.idVendor:04x}:{dev.idProduct:04x}")
    return True


def cmd_command(device: FastbootDevice, command: str):
    """Run a raw command."""
    resp = device.run_command(command)
    if resp.text:
        print(resp.text)
    if resp.data_size is not None:
        print(f"DATA {resp.data_size}")
    return True


def cmd_getvar(device: FastbootDevice, name: str):
    """Print a bootloader variable."""
    print(f"{name}: {device.get_variable(name)}")
    return True


def cmd_token(device: FastbootDevice):
    """Print the identifier token to sign for unlocking."""
    print(device.get_identifier_token())
    return True


def cmd_download(device: FastbootDevice, payload_path: Path):
    """Download a payload to the bootloader."""
    payload = payload_path.read_bytes()
    print(f"Payload: {payload_path} ({len(payload)} bytes)")

    resp = device.download(payload, on_progress=print_progress)
    print("\rUploading: 100% - Complete!")
    if resp.text:
        print(resp.text)
    return True


def cmd_unlock(device: FastbootDevice, signature_path: Path):
    """Unlock the bootloader with a signed identifier token."""
    signature = signature_path.read_bytes()
    print(f"Signature: {signature_path} ({len(signature)} bytes)")

    print("Unlocking... ", end="", flush=True)
    resp = device.unlock_bootloader(signature)
    print("OK")
    if resp.text:
        print(resp.text)
    return True


def build_parser():
    parser = argparse.ArgumentParser(
        description="Client for fastboot bootloaders over USB"
    )
    parser.add_argument(
        "--serial", "-s",
        help="USB serial number of the device to use"
    )
    parser.add_argument(
        "--timeout", "-t",
        type=int, default=DEFAULT_TIMEOUT_MS,
        help=f"USB transfer timeout in ms (default {DEFAULT_TIMEOUT_MS})"
    )
    parser.add_argument(
        "--chunk-size",
        type=int, default=BULK_TRANSFER_SIZE,
        help=f"Maximum payload transfer size (default {BULK_TRANSFER_SIZE})"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log protocol traffic"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("devices", help="List fastboot devices")

    command_parser = subparsers.add_parser("command", help="Run a raw fastboot command")
    command_parser.add_argument("text", help="Command text (at most 64 bytes)")

    getvar_parser = subparsers.add_parser("getvar", help="Read a bootloader variable")
    getvar_parser.add_argument("name", help="Variable name")

    subparsers.add_parser("token", help="Print the unlock identifier token")

    download_parser = subparsers.add_parser("download", help="Download a payload")
    download_parser.add_argument("file", type=Path, help="Payload file")

    unlock_parser = subparsers.add_parser("unlock", help="Unlock the bootloader")
    unlock_parser.add_argument("file", type=Path, help="Signed identifier token")

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "devices":
        try:
            found = cmd_devices(args.serial)
        except FastbootClientError as e:
            print(f"Error: {e}")
            sys.exit(1)
        sys.exit(0 if found else 1)

    if args.command in ("download", "unlock") and not args.file.exists():
        print(f"Error: File not found: {args.file}")
        sys.exit(1)

    try:
        transport = PyUsbTransport(find_single_device(args.serial), timeout_ms=args.timeout)
    except FastbootClientError as e:
        print(f"Error: {e}")
        sys.exit(1)

    with FastbootDevice(transport, chunk_size=args.chunk_size) as device:
        try:
            device.connect()
            if args.command == "command":
                cmd_command(device, args.text)
            elif args.command == "getvar":
                cmd_getvar(device, args.name)
            elif args.command == "token":
                cmd_token(device)
            elif args.command == "download":
                cmd_download(device, args.file)
            elif args.command == "unlock":
                cmd_unlock(device, args.file)
        except (FastbootClientError, ValueError) as e:
            print(f"\nError: {e}")
            sys.exit(1)


if __name__ == "__main__":
    main()
