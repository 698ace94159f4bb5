"""Tests for PlanResult reporting."""

from smp_dfu.core import operations as ops
from smp_dfu.core.messages import MessageLevel, WarningCode, make_warning
from smp_dfu.core.planner import PlanningError, plan_upgrade
from smp_dfu.core.results import PlanResult
from smp_dfu.firmware_image import RawImage
from smp_dfu.models import BootloaderCapabilities, ImageSet, SlotRecord


HASH_APP = bytes([0xA1]) * 32
HASH_NET = bytes([0xB2]) * 32
HASH_OLD = bytes([0x01]) * 32

SWAP = BootloaderCapabilities.from_mode("MCUboot", 1)


def _multi_core_result() -> PlanResult:
    """Core 0 already up to date, core 1 target slot active."""
    images = (
        ImageSet()
        .add_image(RawImage(data=b"app", hash=HASH_APP), image_index=0)
        .add_image(RawImage(data=b"net", hash=HASH_NET), image_index=1)
    )
    slots = [
        SlotRecord(image_index=0, slot=0, hash=HASH_APP, active=True, confirmed=True),
        SlotRecord(image_index=1, slot=0, hash=HASH_OLD, confirmed=True),
        SlotRecord(image_index=1, slot=1, hash=HASH_OLD, active=True),
    ]
    return plan_upgrade(images, slots, SWAP)


class TestToDict:
    def test_up_to_date_and_skipped(self):
        data = _multi_core_result().to_dict()

        assert data["ok"] is True
        assert data["up_to_date"] == [0]
        assert data["skipped"] == [{"image_index": 1, "slot": 1, "hash": HASH_NET.hex()}]
        assert data["operations"] == []
        assert data["capabilities"]["mode"] == 1
        codes = [w["code"] for w in data["warnings"]]
        assert "W_CORE_UP_TO_DATE" in codes
        assert "W_IMAGE_SKIPPED" in codes

    def test_operations_serialized_with_priority(self):
        result = PlanResult.success(operations=[ops.Reset(False), ops.Upload(b"abc", 0)])
        data = result.to_dict()
        assert data["operations"][0] == {
            "type": "Reset",
            "priority": ops.PRIORITY_RESET,
            "description": "Reset (no_swap=False)",
        }
        assert data["operations"][1]["type"] == "Upload"


class TestToSummary:
    def test_success_lists_operations_in_execution_order(self):
        result = PlanResult.success(
            capabilities=SWAP,
            operations=[ops.Reset(False), ops.Upload(b"abc", 0), ops.ResetBeforeUpload(False)],
        )
        result.add_warning(make_warning(WarningCode.W_RESET_BEFORE_UPLOAD, level=MessageLevel.INFO))

        lines = result.to_summary().splitlines()

        assert lines[0] == "[SUCCESS] validate"
        assert "MCUboot (Swap Scratch)" in lines[1]
        ops_start = lines.index("  Operations:")
        assert lines[ops_start + 1:ops_start + 4] == [
            "    - Reset before upload (no_swap=False)",
            "    - Upload 3 bytes to target 0",
            "    - Reset (no_swap=False)",
        ]
        assert any("[W_RESET_BEFORE_UPLOAD]" in line for line in lines)

    def test_up_to_date_cores_listed(self):
        summary = _multi_core_result().to_summary()
        assert "  Up to date: 0" in summary

    def test_failure_lists_errors(self):
        result = PlanResult.failure(PlanningError("Missing images information"))

        assert not result.ok
        assert result.errors == ["Missing images information"]
        summary = result.to_summary()
        assert summary.startswith("[FAILED] validate")
        assert "    - Missing images information" in summary

    def test_add_error_marks_failure(self):
        result = PlanResult.success()
        result.add_error("device busy")
        assert not result.ok
        assert result.errors == ["device busy"]
