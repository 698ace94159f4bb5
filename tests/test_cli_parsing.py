"""Tests for CLI parsing functions and the plan command."""

import struct

import pytest
import typer
from typer.testing import CliRunner

from smp_dfu.models import UpgradeMode
from smp_dfu.protocol import BootloaderInfoResponse
from smp_dfu.models import SlotRecord


def _signed_image(sha: bytes = b"\x5A" * 32) -> bytes:
    body = b"\x00" * 16
    header = struct.pack("<IIHHIIBBHI", 0x96F3B83D, 0, 32, 0, len(body), 0, 1, 0, 0, 0).ljust(32, b"\x00")
    tlv = struct.pack("<HH", 0x10, len(sha)) + sha
    return header + body + struct.pack("<HH", 0x6907, 4 + len(tlv)) + tlv


class TestParseUpgradeModeCore:
    """Test the core parse_upgrade_mode in core/parsing.py (raises ValueError)."""

    def get_parse_mode_core(self):
        from smp_dfu.core.parsing import parse_upgrade_mode
        return parse_upgrade_mode

    def test_core_canonical_names(self):
        parse_mode = self.get_parse_mode_core()
        assert parse_mode("TEST_AND_CONFIRM") == UpgradeMode.TEST_AND_CONFIRM
        assert parse_mode("confirm_only") == UpgradeMode.CONFIRM_ONLY

    def test_core_aliases(self):
        parse_mode = self.get_parse_mode_core()
        assert parse_mode("test-and-confirm") == UpgradeMode.TEST_AND_CONFIRM
        assert parse_mode("test") == UpgradeMode.TEST_ONLY
        assert parse_mode("Confirm") == UpgradeMode.CONFIRM_ONLY
        assert parse_mode("upload") == UpgradeMode.NONE

    def test_core_invalid_raises_valueerror(self):
        """Core function raises ValueError (not typer.BadParameter)."""
        parse_mode = self.get_parse_mode_core()

        with pytest.raises(ValueError):
            parse_mode("revert")

        with pytest.raises(ValueError):
            parse_mode("")


class TestParseImageTarget:
    def get_parse_image_target(self):
        from smp_dfu.core.parsing import parse_image_target
        return parse_image_target

    def test_plain_path_defaults(self):
        parse = self.get_parse_image_target()
        assert parse("app.bin") == (0, 1, "app.bin")

    def test_index_prefix(self):
        parse = self.get_parse_image_target()
        assert parse("1=net.bin") == (1, 1, "net.bin")
        assert parse("0x2=core2.bin") == (2, 1, "core2.bin")

    def test_index_and_slot_prefix(self):
        parse = self.get_parse_image_target()
        assert parse("0:0=slot0.bin") == (0, 0, "slot0.bin")

    @pytest.mark.parametrize("value", ["=app.bin", "1:2:3=app.bin", "x=app.bin", "1=", "-1=app.bin"])
    def test_invalid(self, value):
        parse = self.get_parse_image_target()
        with pytest.raises(ValueError):
            parse(value)


class TestParseCacheTarget:
    def test_valid(self):
        from smp_dfu.core.parsing import parse_cache_target
        assert parse_cache_target("3=cache.bin") == (3, "cache.bin")

    @pytest.mark.parametrize("value", ["cache.bin", "3=", "a=cache.bin"])
    def test_invalid(self, value):
        from smp_dfu.core.parsing import parse_cache_target
        with pytest.raises(ValueError):
            parse_cache_target(value)


class TestCliWrappers:
    """CLI wrappers convert ValueError to typer.BadParameter."""

    def test_upgrade_mode_bad_parameter(self):
        from smp_dfu.cli import parse_upgrade_mode
        assert parse_upgrade_mode("none") == UpgradeMode.NONE
        with pytest.raises(typer.BadParameter):
            parse_upgrade_mode("bogus")

    def test_image_target_bad_parameter(self):
        from smp_dfu.cli import parse_image_target
        with pytest.raises(typer.BadParameter):
            parse_image_target("1:2:3=app.bin")

    def test_build_image_set(self, tmp_path):
        from smp_dfu.cli import build_image_set

        app = tmp_path / "app.bin"
        app.write_bytes(_signed_image())
        cache = tmp_path / "cache.bin"
        cache.write_bytes(b"\x01\x02")

        image_set = build_image_set([f"0:1={app}"], [f"2={cache}"])

        assert len(image_set) == 1
        assert image_set.images[0].hash == b"\x5A" * 32
        assert image_set.cache_images[0].partition_id == 2
        assert image_set.image_indices() == [0]

    def test_build_image_set_rejects_unparsable_image(self, tmp_path):
        from smp_dfu.cli import build_image_set

        bad = tmp_path / "bad.bin"
        bad.write_bytes(b"not an image")
        with pytest.raises(typer.BadParameter):
            build_image_set([str(bad)])

    def test_build_image_set_missing_file(self, tmp_path):
        from smp_dfu.cli import build_image_set
        with pytest.raises(typer.BadParameter):
            build_image_set([str(tmp_path / "missing.bin")])


class FakeTransport:
    def __init__(self, *args, **kwargs):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return None


class FakeClient:
    def __init__(self, transport):
        self.transport = transport

    def bootloader_info(self, query=None):
        if query is None:
            return BootloaderInfoResponse(bootloader="MCUboot")
        return BootloaderInfoResponse(mode=1)

    def list_images(self):
        return [SlotRecord(image_index=0, slot=0, hash=b"\x11" * 32, active=True, confirmed=True)]


class TestPlanCommand:
    def test_plan_json(self, tmp_path, monkeypatch):
        import smp_dfu.cli as cli

        monkeypatch.setattr(cli, "SerialSMPTransport", FakeTransport)
        monkeypatch.setattr(cli, "SMPClient", FakeClient)
        app_image = tmp_path / "app.bin"
        app_image.write_bytes(_signed_image())

        result = CliRunner().invoke(cli.app, ["plan", str(app_image), "--port", "loop", "--json"])

        assert result.exit_code == 0, result.output
        assert '"ok": true' in result.output
        assert "ConfirmAfterReset" in result.output

    def test_plan_rejects_bad_mode(self, tmp_path, monkeypatch):
        import smp_dfu.cli as cli

        monkeypatch.setattr(cli, "SerialSMPTransport", FakeTransport)
        result = CliRunner().invoke(cli.app, ["plan", "app.bin", "--port", "loop", "--mode", "bogus"])
        assert result.exit_code != 0

    def test_plan_summary(self, tmp_path, monkeypatch):
        import smp_dfu.cli as cli

        monkeypatch.setattr(cli, "SerialSMPTransport", FakeTransport)
        monkeypatch.setattr(cli, "SMPClient", FakeClient)
        app_image = tmp_path / "app.bin"
        app_image.write_bytes(_signed_image())

        result = CliRunner().invoke(cli.app, ["plan", str(app_image), "--port", "loop", "--summary"])

        assert result.exit_code == 0, result.output
        assert "[SUCCESS] validate" in result.output
        assert "Confirm after reset" in result.output

    def test_slots_marks_primary(self, monkeypatch):
        import smp_dfu.cli as cli

        monkeypatch.setattr(cli, "SerialSMPTransport", FakeTransport)
        monkeypatch.setattr(cli, "SMPClient", FakeClient)

        result = CliRunner().invoke(cli.app, ["slots", "--port", "loop"])

        assert result.exit_code == 0, result.output
        assert "(primary)" in result.output

    def test_plan_table_shows_image_version(self, tmp_path, monkeypatch):
        import smp_dfu.cli as cli

        monkeypatch.setattr(cli, "SerialSMPTransport", FakeTransport)
        monkeypatch.setattr(cli, "SMPClient", FakeClient)
        app_image = tmp_path / "app.bin"
        app_image.write_bytes(_signed_image())

        result = CliRunner().invoke(cli.app, ["plan", str(app_image), "--port", "loop"])

        assert result.exit_code == 0, result.output
        assert "1.0.0.0" in result.output
        assert "operation(s) planned" in result.output
