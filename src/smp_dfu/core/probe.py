"""
Bootloader capability probe.

Starting with MCUboot builds that implement the bootloader info command, the
way images are sent depends on the bootloader mode. Devices that do not answer
the query, or run some other bootloader, are treated the legacy way: swap on
reset, test/confirm supported.
"""

import logging

from smp_dfu.models import (
    MCUBOOT_NAME,
    BootloaderCapabilities,
    DEFAULT_CAPABILITIES,
)
from smp_dfu.protocol import SMPError, BOOTLOADER_INFO_QUERY_MODE

logger = logging.getLogger(__name__)


def probe_capabilities(client) -> BootloaderCapabilities:
    """
    Determine `no_swap` and `allow_revert` for the connected device.

    Never raises SMP errors: any failure falls back to DEFAULT_CAPABILITIES.

    Args:
        client: Object with a `bootloader_info(query)` method (see SMPClient)

    Returns:
        BootloaderCapabilities snapshot for one planning run
    """
    try:
        identity = client.bootloader_info()
    except SMPError as e:
        logger.debug(f"Bootloader info not available, using defaults: {e}")
        return DEFAULT_CAPABILITIES

    logger.debug(f"Bootloader name: {identity.bootloader}")
    if identity.bootloader != MCUBOOT_NAME:
        # Some unknown bootloader, send the old way.
        return BootloaderCapabilities(bootloader=identity.bootloader)

    try:
        info = client.bootloader_info(BOOTLOADER_INFO_QUERY_MODE)
    except SMPError as e:
        logger.debug(f"Bootloader mode query failed, using defaults: {e}")
        return BootloaderCapabilities(bootloader=identity.bootloader)

    caps = BootloaderCapabilities.from_mode(identity.bootloader, info.mode, info.no_downgrade)
    logger.info(f"Bootloader is in mode: {caps.mode_label}, no downgrade: {caps.no_downgrade}")
    return caps
