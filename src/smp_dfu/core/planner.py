"""
Upgrade planner.

Reconciles the images the caller wants installed with the slot state reported
by the device and produces the operations that reach the desired state:

1. Cores already running the requested firmware are dropped (multi-image only).
2. Each remaining image is matched against the slots of its core, yielding an
   ImageDecision (found / skip / flags / reset requirements).
3. The decision table turns each decision into Upload, Test and Confirm
   operations, depending on the upgrade mode and bootloader capabilities.
4. Cache images are always uploaded.
5. Reset and erase operations are added once, based on accumulated flags.

The planner is a pure function of its inputs. Running it twice against the same
device state yields the same operations, and since the slot state is read fresh
on every pass, an interrupted upgrade resumes where it stopped.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from smp_dfu.models import (
    BootloaderCapabilities,
    DEFAULT_CAPABILITIES,
    ImageSet,
    SlotRecord,
    TargetImage,
    UpgradeMode,
    UpgradeSettings,
)
from .messages import MessageLevel, WarningCode, make_warning
from .operations import (
    Confirm,
    ConfirmAfterReset,
    EraseStorage,
    Operation,
    Reset,
    ResetBeforeUpload,
    Test,
    Upload,
)
from .results import PlanResult

logger = logging.getLogger(__name__)


class PlanningError(Exception):
    """Raised (or reported) when the device state cannot be planned against."""


@dataclass
class ImageDecision:
    """
    Per-image outcome of the slot scan and the decision table.

    Attributes:
        target: Image being decided
        found: An image with the same hash is stored on the device
        skip: Target slot is active; nothing can be uploaded now
        pending: TEST was sent for the stored copy
        permanent: CONFIRM was sent for the stored copy
        confirmed: Stored copy booted and confirmed itself
        active: Stored copy is running
        reset_required: A reset is needed after the upload phase
        initial_reset_required: A reset is needed before anything is uploaded
        operations: Operations emitted for this image
    """
    target: TargetImage
    found: bool = False
    skip: bool = False
    pending: bool = False
    permanent: bool = False
    confirmed: bool = False
    active: bool = False
    reset_required: bool = False
    initial_reset_required: bool = False
    operations: List[Operation] = field(default_factory=list)


def find_up_to_date_cores(
    images: Sequence[TargetImage],
    slots: Sequence[SlotRecord],
) -> List[int]:
    """
    Return image indices whose active slot already holds one of the images.

    Only applies when more than one image is given: either several cores, or
    one image per slot for a Direct XIP bootloader.
    """
    if len(images) <= 1:
        return []

    up_to_date: List[int] = []
    for slot in list(slots):
        if not slot.active:
            continue
        for target in images:
            if slot.image_index == target.image_index and slot.hash == target.hash:
                logger.debug(f"Image {target.image_index} already active in slot {slot.slot}")
                if target.image_index not in up_to_date:
                    up_to_date.append(target.image_index)
                break
    return up_to_date


def scan_slots(
    target: TargetImage,
    slots: Sequence[SlotRecord],
    no_swap: bool = False,
) -> ImageDecision:
    """Match one image against the slots of its core."""
    decision = ImageDecision(target=target)
    image = target.image

    for slot in slots:
        if slot.image_index != target.image_index:
            continue

        if slot.hash == image.hash:
            # Stored already; may still need testing or confirming.
            decision.found = True
            decision.pending = slot.pending
            decision.permanent = slot.permanent
            decision.confirmed = slot.confirmed
            decision.active = slot.active
            # Confirmed in its target slot: a reset swaps it back to primary.
            if image.needs_confirmation and slot.confirmed and slot.slot == target.slot and not no_swap:
                decision.reset_required = True
            break

        if slot.slot != target.slot:
            continue

        if slot.active:
            logger.debug(f"Slot {slot.slot} of image {slot.image_index} is active, skipping image")
            decision.skip = True
            continue
        if not slot.pending and not slot.confirmed:
            # Leftover from a finished update, overwritten by the upload.
            continue
        # Confirmed: device is testing another image, reset restores the original.
        # Pending or permanent: test/confirm sent without reset; the slot
        # cannot be written until the device reboots.
        if slot.confirmed or slot.pending or slot.permanent:
            decision.initial_reset_required = True

    return decision


def decide_operations(
    decision: ImageDecision,
    capabilities: BootloaderCapabilities,
    mode: UpgradeMode,
) -> ImageDecision:
    """Apply the upgrade decision table to a scanned image."""
    target = decision.target
    image = target.image

    if decision.skip:
        return decision

    if not decision.found:
        decision.operations.append(Upload(image.data, target.image_index))
        if image.needs_confirmation and (not capabilities.allow_revert or mode == UpgradeMode.NONE):
            decision.reset_required = True

    if not image.needs_confirmation:
        if image.requires_activation:
            decision.operations.append(Confirm())
        return decision

    if not capabilities.allow_revert or mode == UpgradeMode.NONE:
        return decision

    if mode in (UpgradeMode.TEST_AND_CONFIRM, UpgradeMode.TEST_ONLY):
        if not decision.pending and not decision.confirmed and not decision.active:
            decision.operations.append(Test(image.hash))
            decision.pending = True
        if decision.pending:
            decision.reset_required = True
        if mode == UpgradeMode.TEST_AND_CONFIRM and not decision.permanent and not decision.confirmed:
            decision.operations.append(ConfirmAfterReset(image.hash))
    elif mode == UpgradeMode.CONFIRM_ONLY:
        if not decision.permanent and not decision.confirmed:
            decision.operations.append(Confirm(image.hash))
            decision.permanent = True
        if decision.permanent:
            decision.reset_required = True

    return decision


def plan_upgrade(
    images: ImageSet,
    slots: Optional[Sequence[SlotRecord]],
    capabilities: BootloaderCapabilities = DEFAULT_CAPABILITIES,
    mode: UpgradeMode = UpgradeMode.TEST_AND_CONFIRM,
    settings: Optional[UpgradeSettings] = None,
) -> PlanResult:
    """
    Compute the operations needed to bring the device to the requested images.

    Args:
        images: Requested images; not modified
        slots: Slot records from the image state query
        capabilities: Result of the bootloader probe
        mode: Test/confirm policy
        settings: Upgrade settings (erase of application storage)

    Returns:
        PlanResult; ok=False with "Missing images information" when the slot
        list is absent or empty
    """
    settings = settings or UpgradeSettings()

    if not slots:
        logger.error("Missing images information")
        return PlanResult.failure(PlanningError("Missing images information"), capabilities=capabilities)

    slots = list(slots)
    working = images.copy()
    result = PlanResult.success(capabilities=capabilities)
    if capabilities.is_fallback:
        result.add_warning(make_warning(WarningCode.W_BOOTLOADER_FALLBACK, level=MessageLevel.INFO))

    for image_index in find_up_to_date_cores(working.images, slots):
        working.remove_images_with_image_index(image_index)
        result.up_to_date.append(image_index)
        result.add_warning(make_warning(
            WarningCode.W_CORE_UP_TO_DATE,
            detail=f"Image {image_index}",
            level=MessageLevel.INFO,
        ))

    reset_required = False
    initial_reset_required = False

    for target in working:
        decision = decide_operations(scan_slots(target, slots, capabilities.no_swap), capabilities, mode)
        logger.debug(
            f"Image {target.image_index}/slot {target.slot}: found={decision.found} skip={decision.skip} "
            f"pending={decision.pending} permanent={decision.permanent} confirmed={decision.confirmed} "
            f"active={decision.active} -> {[op.name for op in decision.operations]}"
        )
        reset_required |= decision.reset_required
        initial_reset_required |= decision.initial_reset_required

        if decision.skip:
            result.skipped.append(target)
            result.add_warning(make_warning(
                WarningCode.W_IMAGE_SKIPPED,
                detail=f"Image {target.image_index}, slot {target.slot}",
            ))
            continue

        if not target.image.needs_confirmation and not target.image.requires_activation:
            result.add_warning(make_warning(
                WarningCode.W_NO_ACTIVATION,
                detail=f"Image {target.image_index}, slot {target.slot}",
            ))
        elif not decision.found and target.image.needs_confirmation and not capabilities.allow_revert:
            result.add_warning(make_warning(
                WarningCode.W_NO_REVERT,
                detail=f"Image {target.image_index}",
            ))

        result.operations.extend(decision.operations)

    for cache_image in working.cache_images:
        result.operations.append(Upload(cache_image.data, cache_image.partition_id))

    # Flags are accumulated over all images so each reset is added once.
    if initial_reset_required:
        result.operations.append(ResetBeforeUpload(capabilities.no_swap))
        result.add_warning(make_warning(WarningCode.W_RESET_BEFORE_UPLOAD, level=MessageLevel.INFO))
    if reset_required:
        if settings.erase_app_settings:
            result.operations.append(EraseStorage())
        result.operations.append(Reset(capabilities.no_swap))

    result.images = working.images
    return result
