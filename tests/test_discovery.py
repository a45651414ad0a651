"""
Unit tests for printer discovery.

Covers lpstat parsing (English and Portuguese CUPS), the USB device
probe, deduplication and the never-raise contract.
"""

import pytest
from unittest.mock import Mock, patch

from core.command_runner import CommandResult
from models.printer import PrinterDevice, PrinterKind, PrinterStatus
from services.discovery import (
    PrinterDiscovery,
    dedupe_printers,
    parse_default_printer,
    parse_printer_status,
)
from helpers import FakeSpooler


# Fixtures

@pytest.fixture
def spooler():
    """Two queues: an enabled thermal printer (default) and a disabled office printer."""
    return FakeSpooler(printers={"5808L-V2024": True, "Office": False}, default="5808L-V2024")


@pytest.fixture
def usb_root(tmp_path):
    """Fake /dev layout with one raw USB printer in each known place."""
    usb_dir = tmp_path / "usb"
    usb_dir.mkdir()
    (usb_dir / "lp0").write_bytes(b"")
    (usb_dir / "hiddev0").write_bytes(b"")
    dev_dir = tmp_path / "dev"
    dev_dir.mkdir()
    (dev_dir / "usblp1").write_bytes(b"")
    (dev_dir / "lp0").write_bytes(b"")  # parallel port, not a USB printer
    return tmp_path


# Tests for lpstat parsing

class TestLpstatParsing:
    """Test parsing of lpstat output."""

    def test_english_enabled_and_disabled(self):
        output = (
            "printer 5808L-V2024 is idle.  enabled since Mon 02 Mar 2026 10:00:00\n"
            "printer Office disabled since Mon 02 Mar 2026 09:00:00 -\n"
            "\treason unknown\n"
            "printer Kitchen now printing Kitchen-12.  enabled since Mon 02 Mar 2026\n"
        )
        assert parse_printer_status(output) == [
            ("5808L-V2024", PrinterStatus.ONLINE),
            ("Office", PrinterStatus.INACTIVE),
            ("Kitchen", PrinterStatus.ONLINE),
        ]

    def test_portuguese_output(self):
        output = (
            "impressora Termica está ociosa.  habilitada desde seg 02 mar 2026\n"
            "impressora Balcao desabilitada desde seg 02 mar 2026 -\n"
            "impressora Cozinha está inativa.\n"
        )
        parsed = dict(parse_printer_status(output))
        assert parsed["Termica"] == PrinterStatus.ONLINE
        assert parsed["Balcao"] == PrinterStatus.INACTIVE
        assert parsed["Cozinha"] == PrinterStatus.INACTIVE

    def test_ignores_unrelated_lines(self):
        assert parse_printer_status("lpstat: No destinations added.\n\n") == []

    def test_default_destination_english(self):
        assert parse_default_printer("system default destination: 5808L-V2024\n") == "5808L-V2024"

    def test_default_destination_portuguese(self):
        assert parse_default_printer("destino padrão do sistema: Termica\n") == "Termica"

    def test_no_default_destination(self):
        assert parse_default_printer("no system default destination\n") is None


# Tests for the system probe

class TestSystemProbe:
    """Test discovery of spooler queues."""

    def test_detects_system_printers(self, spooler):
        discovery = PrinterDiscovery(spooler, usb_device_dirs=[])
        printers = discovery.detect_all_printers()

        assert [p.id for p in printers] == ["system_5808L-V2024", "system_Office"]
        thermal, office = printers
        assert thermal.is_default is True
        assert thermal.status == PrinterStatus.ONLINE
        assert thermal.can_activate is False
        assert office.is_default is False
        assert office.status == PrinterStatus.INACTIVE
        assert office.can_activate is True

    def test_no_cups_installed_returns_empty(self):
        discovery = PrinterDiscovery(FakeSpooler(installed=False), usb_device_dirs=[])
        assert discovery.detect_all_printers() == []

    def test_no_queues_returns_empty(self):
        discovery = PrinterDiscovery(FakeSpooler(), usb_device_dirs=[])
        assert discovery.detect_all_printers() == []

    def test_query_system_status(self, spooler):
        discovery = PrinterDiscovery(spooler, usb_device_dirs=[])
        assert discovery.query_system_status("Office") == PrinterStatus.INACTIVE
        assert discovery.query_system_status("Missing") is None

    def test_find_by_id(self, spooler):
        discovery = PrinterDiscovery(spooler, usb_device_dirs=[])
        assert discovery.find("system_Office").display_name == "Office"
        assert discovery.find("system_Nope") is None


# Tests for the USB probe

class TestUsbProbe:
    """Test discovery of raw USB line printers."""

    def test_finds_usb_devices(self, usb_root):
        discovery = PrinterDiscovery(
            FakeSpooler(),
            usb_device_dirs=[str(usb_root / "usb"), str(usb_root / "dev")],
        )
        printers = discovery.detect_all_printers()

        assert [p.id for p in printers] == ["usb_lp0", "usb_usblp1"]
        assert all(p.kind == PrinterKind.USB for p in printers)
        assert printers[0].device_path == str(usb_root / "usb" / "lp0")
        assert all(p.status == PrinterStatus.ONLINE for p in printers)

    def test_unwritable_device_is_error(self, usb_root):
        discovery = PrinterDiscovery(FakeSpooler(), usb_device_dirs=[str(usb_root / "usb")])
        with patch("services.discovery.os.access", return_value=False):
            printers = discovery.detect_all_printers()
        assert printers[0].status == PrinterStatus.ERROR

    def test_probe_does_not_write(self, usb_root):
        discovery = PrinterDiscovery(FakeSpooler(), usb_device_dirs=[str(usb_root / "usb")])
        discovery.detect_all_printers()
        assert (usb_root / "usb" / "lp0").read_bytes() == b""

    def test_missing_directory_is_skipped(self, tmp_path):
        discovery = PrinterDiscovery(FakeSpooler(), usb_device_dirs=[str(tmp_path / "absent")])
        assert discovery.detect_all_printers() == []


# Tests for catalog merging

class TestCatalog:
    """Test deduplication, ordering and failure isolation."""

    def test_system_printers_come_before_usb(self, spooler, usb_root):
        discovery = PrinterDiscovery(spooler, usb_device_dirs=[str(usb_root / "usb")])
        kinds = [p.kind for p in discovery.detect_all_printers()]
        assert kinds == [PrinterKind.SYSTEM, PrinterKind.SYSTEM, PrinterKind.USB]

    def test_same_name_and_kind_collapses_to_first(self):
        first = PrinterDevice.usb("lp0", "/dev/usb/lp0", PrinterStatus.ONLINE)
        second = PrinterDevice.usb("lp0", "/other/usb/lp0", PrinterStatus.ERROR)
        assert dedupe_printers([first, second]) == [first]

    def test_same_name_different_kind_kept(self):
        system = PrinterDevice.system("lp0", PrinterStatus.ONLINE)
        usb = PrinterDevice.usb("lp0", "/dev/usb/lp0", PrinterStatus.ONLINE)
        assert dedupe_printers([system, usb]) == [system, usb]

    def test_different_casing_kept_apart(self):
        upper = PrinterDevice.system("POS", PrinterStatus.ONLINE)
        lower = PrinterDevice.system("pos", PrinterStatus.ONLINE)
        result = dedupe_printers([upper, lower, upper])
        assert result == [upper, lower]
        assert len({p.id for p in result}) == len(result)

    def test_duplicate_usb_across_directories(self, tmp_path):
        for parent in ("a", "b"):
            usb_dir = tmp_path / parent / "usb"
            usb_dir.mkdir(parents=True)
            (usb_dir / "lp0").write_bytes(b"")
        discovery = PrinterDiscovery(
            FakeSpooler(),
            usb_device_dirs=[str(tmp_path / "a" / "usb"), str(tmp_path / "b" / "usb")],
        )
        printers = discovery.detect_all_printers()
        assert [p.device_path for p in printers] == [str(tmp_path / "a" / "usb" / "lp0")]

    def test_detection_is_idempotent(self, spooler, usb_root):
        discovery = PrinterDiscovery(spooler, usb_device_dirs=[str(usb_root / "usb")])
        first = {p.id for p in discovery.detect_all_printers()}
        second = {p.id for p in discovery.detect_all_printers()}
        assert first == second

    def test_detection_runs_no_mutating_commands(self, spooler):
        PrinterDiscovery(spooler, usb_device_dirs=[]).detect_all_printers()
        assert {call[0] for call in spooler.calls} == {"lpstat"}

    def test_failing_probe_keeps_other_results(self, usb_root):
        runner = Mock()
        runner.run.side_effect = RuntimeError("spooler exploded")
        discovery = PrinterDiscovery(runner, usb_device_dirs=[str(usb_root / "usb")])

        printers = discovery.detect_all_printers()

        assert [p.id for p in printers] == ["usb_lp0"]

    def test_lpstat_timeout_degrades_to_empty(self):
        runner = Mock()
        runner.run.return_value = CommandResult(argv=("lpstat", "-p"), returncode=None, timed_out=True)
        discovery = PrinterDiscovery(runner, usb_device_dirs=[])
        assert discovery.detect_all_printers() == []
