"""
SMP DFU - firmware upgrade planning for MCUboot devices

Probes the bootloader, reads the image slots and computes the erase, upload,
test, confirm and reset operations an upgrade needs.
"""

__version__ = "0.1.0"

from smp_dfu.protocol import SerialSMPTransport, SMPClient
from smp_dfu.models import ImageSet, UpgradeMode, UpgradeSettings
from smp_dfu.core import plan_upgrade, probe_capabilities, validate, TaskQueue

__all__ = [
    "SerialSMPTransport",
    "SMPClient",
    "ImageSet",
    "UpgradeMode",
    "UpgradeSettings",
    "plan_upgrade",
    "probe_capabilities",
    "validate",
    "TaskQueue",
    "__version__",
]
