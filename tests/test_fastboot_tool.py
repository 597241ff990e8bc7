# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""Tests for the fastboot_tool command-line client."""

import pytest
from unittest.mock import MagicMock, Mock, patch

import fastboot_tool
from fastboot_protocol.errors import DeviceNotFoundError, FastbootError, UsbError
from fastboot_protocol.protocol import FastbootResponse


@pytest.fixture
def mock_device():
    """Patch device selection and return the FastbootDevice instance."""
    with patch('fastboot_tool.find_single_device') as mock_find, \
            patch('fastboot_tool.PyUsbTransport') as mock_transport_class, \
            patch('fastboot_tool.FastbootDevice') as mock_device_class:
        device = MagicMock()
        mock_device_class.return_value.__enter__.return_value = device
        mock_device_class.return_value.__exit__.return_value = False
        device.find = mock_find
        device.transport_class = mock_transport_class
        device.device_class = mock_device_class
        yield device


class TestParser:
    """Tests for argument parsing."""

    def test_defaults(self):
        """Global options have protocol defaults."""
        args = fastboot_tool.build_parser().parse_args(["getvar", "product"])

        assert args.serial is None
        assert args.timeout == 5000
        assert args.chunk_size == 16384
        assert args.verbose is False
        assert args.name == "product"

    def test_command_required(self):
        """A subcommand is required."""
        with pytest.raises(SystemExit):
            fastboot_tool.build_parser().parse_args([])


class TestMain:
    """Tests for main()."""

    def test_getvar(self, mock_device, capsys):
        """getvar prints the variable."""
        mock_device.get_variable.return_value = "bluejay"

        fastboot_tool.main(["getvar", "product"])

        mock_device.connect.assert_called_once_with()
        mock_device.get_variable.assert_called_once_with("product")
        assert "product: bluejay" in capsys.readouterr().out

    def test_options_passed(self, mock_device):
        """Serial, timeout and chunk size reach the client."""
        fastboot_tool.main([
            "--serial", "ABC", "--timeout", "100", "--chunk-size", "512",
            "getvar", "product",
        ])

        mock_device.find.assert_called_once_with("ABC")
        mock_device.transport_class.assert_called_once_with(
            mock_device.find.return_value, timeout_ms=100
        )
        mock_device.device_class.assert_called_once_with(
            mock_device.transport_class.return_value, chunk_size=512
        )

    def test_command(self, mock_device, capsys):
        """command prints the response text and data size."""
        mock_device.run_command.return_value = FastbootResponse(text="", data_size="00000010")

        fastboot_tool.main(["command", "download:00000010"])

        mock_device.run_command.assert_called_once_with("download:00000010")
        assert "DATA 00000010" in capsys.readouterr().out

    def test_token(self, mock_device, capsys):
        """token prints the identifier token."""
        mock_device.get_identifier_token.return_value = "AB" * 64

        fastboot_tool.main(["token"])

        assert "AB" * 64 in capsys.readouterr().out

    def test_download(self, mock_device, tmp_path):
        """download sends the file contents."""
        payload_path = tmp_path / "payload.bin"
        payload_path.write_bytes(b"\xDE\xAD\xBE\xEF")
        mock_device.download.return_value = FastbootResponse()

        fastboot_tool.main(["download", str(payload_path)])

        mock_device.download.assert_called_once_with(
            b"\xDE\xAD\xBE\xEF", on_progress=fastboot_tool.print_progress
        )

    def test_unlock(self, mock_device, tmp_path):
        """unlock sends the signature file."""
        sig_path = tmp_path / "signature.bin"
        sig_path.write_bytes(b"\x01" * 256)
        mock_device.unlock_bootloader.return_value = FastbootResponse()

        fastboot_tool.main(["unlock", str(sig_path)])

        mock_device.unlock_bootloader.assert_called_once_with(b"\x01" * 256)

    def test_missing_file(self, mock_device, tmp_path, capsys):
        """Missing payload file exits with an error."""
        with pytest.raises(SystemExit) as exc_info:
            fastboot_tool.main(["download", str(tmp_path / "nonexistent.bin")])

        assert exc_info.value.code == 1
        assert "File not found" in capsys.readouterr().out
        mock_device.find.assert_not_called()

    def test_no_device(self, mock_device, capsys):
        """No device exits with an error."""
        mock_device.find.side_effect = DeviceNotFoundError("No fastboot device found")

        with pytest.raises(SystemExit) as exc_info:
            fastboot_tool.main(["getvar", "product"])

        assert exc_info.value.code == 1
        assert "No fastboot device found" in capsys.readouterr().out

    def test_bootloader_error(self, mock_device, capsys):
        """Bootloader errors exit with an error."""
        mock_device.get_variable.side_effect = FastbootError("FAIL", "unknown variable")

        with pytest.raises(SystemExit) as exc_info:
            fastboot_tool.main(["getvar", "nope"])

        assert exc_info.value.code == 1
        assert "unknown variable" in capsys.readouterr().out

    @patch('fastboot_tool.find_devices')
    def test_devices(self, mock_find_devices, capsys):
        """devices lists bus address and USB IDs."""
        mock_find_devices.return_value = [
            Mock(bus=1, address=7, idVendor=0x18D1, idProduct=0x4EE0)
        ]

        with pytest.raises(SystemExit) as exc_info:
            fastboot_tool.main(["devices"])

        assert exc_info.value.code == 0
        assert "001:007  18d1:4ee0" in capsys.readouterr().out

    @patch('fastboot_tool.find_devices')
    def test_devices_usb_error(self, mock_find_devices, capsys):
        """devices reports enumeration errors without a traceback."""
        mock_find_devices.side_effect = UsbError("Cannot enumerate USB devices: Access denied")

        with pytest.raises(SystemExit) as exc_info:
            fastboot_tool.main(["devices"])

        assert exc_info.value.code == 1
        assert "Error: Cannot enumerate USB devices" in capsys.readouterr().out

    @patch('fastboot_tool.find_devices')
    def test_devices_none(self, mock_find_devices, capsys):
        """devices exits with an error when nothing is found."""
        mock_find_devices.return_value = []

        with pytest.raises(SystemExit) as exc_info:
            fastboot_tool.main(["devices"])

        assert exc_info.value.code == 1


class TestPrintProgress:
    """Tests for progress output."""

    def test_percent(self, capsys):
        """Progress is printed as a percentage."""
        fastboot_tool.print_progress(0.5)
        assert "50%" in capsys.readouterr().out
