"""Checks and memory layout for loading a U-Boot SPL over FEL."""

from __future__ import annotations

import logging
import struct
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_U32 = 0xFFFFFFFF

EGON_BT0_MAGIC = b"eGON.BT0"
#: Value the checksum field holds while the checksum is being computed.
EGON_CHECKSUM_STAMP = 0x5F0A6C39
#: Signature that an SPL leaves behind after running successfully.
EGON_FEL_MAGIC = b"eGON.FEL"
#: Minimum offset of the main U-Boot image within u-boot-sunxi-with-spl.bin.
SPL_MIN_OFFSET = 0x8000

SPL_SIGNATURE = b"SPL"
SPL_SIGNATURE_OFFSET = 0x14
SPL_MAJOR_BITS = 3
SPL_MINOR_BITS = 5


def spl_version(major: int, minor: int) -> int:
    """Pack a sunxi SPL header version into one byte."""
    return ((major & ((1 << SPL_MAJOR_BITS) - 1)) << SPL_MINOR_BITS) | (
        minor & ((1 << SPL_MINOR_BITS) - 1)
    )


SPL_MIN_VERSION = spl_version(0, 1)
SPL_MAX_VERSION = spl_version(0, 31)


class SplError(ValueError):
    """Raised for SPL images that cannot be loaded."""


@dataclass(frozen=True)
class SwapBuffer:
    """An SRAM area (buf1) the boot ROM uses, moved to buf2 while the SPL runs."""

    buf1: int
    buf2: int
    size: int


def verify_spl(data: bytes) -> int:
    """Check the eGON header and checksum of an SPL; return the SPL length."""
    data = bytes(data)
    if len(data) < 32 or data[4:12] != EGON_BT0_MAGIC:
        raise SplError("SPL: eGON header is not found")

    stored, spl_len = struct.unpack_from("<II", data, 12)
    if spl_len > len(data) or spl_len % 4 != 0:
        raise SplError("SPL: bad length in the eGON header")

    checksum = (2 * stored - EGON_CHECKSUM_STAMP) & _U32
    for (word,) in struct.iter_unpack("<I", data[:spl_len]):
        checksum = (checksum - word) & _U32
    if checksum != 0:
        raise SplError("SPL: checksum check failed")
    return spl_len


def spl_dtb_name(data: bytes) -> str | None:
    """Return the device tree name recorded in a sunxi SPL header (v0.2+)."""
    data = bytes(data)
    if len(data) < 0x24:
        return None
    if data[4:12] != EGON_BT0_MAGIC:
        return None
    if data[0x14:0x17] != SPL_SIGNATURE:
        return None
    if data[0x17] < 0x2:
        return None
    (dt_offset,) = struct.unpack_from("<I", data, 0x20)
    if dt_offset >= len(data):
        return None
    name = data[dt_offset:].split(b"\0", 1)[0].decode("latin-1")
    logger.info("found DT name in SPL header: %s", name)
    return name


def check_sunxi_spl(signature: bytes) -> bool:
    """Tell whether the 4 bytes at SPL offset 0x14 mark a usable sunxi SPL."""
    signature = bytes(signature)
    if len(signature) < 4 or signature[:3] != SPL_SIGNATURE:
        return False
    version = signature[3]
    if version < SPL_MIN_VERSION:
        logger.error(
            "sunxi SPL version mismatch: found 0x%02X < required minimum 0x%02X",
            version,
            SPL_MIN_VERSION,
        )
        logger.error(
            "You need to update your U-Boot (mksunxiboot) to a more recent version."
        )
        return False
    if version > SPL_MAX_VERSION:
        logger.error(
            "sunxi SPL version mismatch: found 0x%02X > maximum supported 0x%02X",
            version,
            SPL_MAX_VERSION,
        )
        logger.error(
            "You need a more recent version of this (sunxi-tools) fel utility."
        )
        return False
    return True


def plan_spl_writes(
    data: bytes,
    spl_addr: int,
    sram_size: int,
    thunk_addr: int,
    swap_buffers: Iterable[SwapBuffer],
) -> list[tuple[int, bytes]]:
    """Split an SPL of verified length into (address, bytes) writes.

    Parts that would land in a swap buffer's ``buf1`` go to its ``buf2``.
    Raises :class:`SplError` if the SPL does not fit below the limits set by
    the SRAM size, the swap buffers and the thunk address.
    """
    data = bytes(data)
    spl_len = len(data)
    limit = sram_size
    cur_addr = spl_addr
    pos = 0
    writes: list[tuple[int, bytes]] = []

    for swap in swap_buffers:
        if not swap.size:
            break
        if spl_addr <= swap.buf2 < spl_addr + limit:
            limit = swap.buf2 - spl_addr
        if pos < spl_len and cur_addr < swap.buf1:
            count = min(swap.buf1 - cur_addr, spl_len - pos)
            writes.append((cur_addr, data[pos:pos + count]))
            cur_addr += count
            pos += count
        if pos < spl_len and cur_addr == swap.buf1:
            count = min(swap.size, spl_len - pos)
            writes.append((swap.buf2, data[pos:pos + count]))
            cur_addr += count
            pos += count

    thunk_room = (thunk_addr - spl_addr) & _U32
    if thunk_room < limit:
        limit = thunk_room
    if spl_len > limit:
        raise SplError(f"SPL: too large (need {spl_len}, have {limit})")

    if pos < spl_len:
        writes.append((cur_addr, data[pos:]))
    return writes


def format_sid(key: Sequence[int]) -> str:
    """Format a 128-bit SID key as ``xxxxxxxx:xxxxxxxx:xxxxxxxx:xxxxxxxx``."""
    words = list(key)
    if len(words) != 4:
        raise ValueError(f"SID key must have 4 words, got {len(words)}")
    return ":".join(f"{word & _U32:08x}" for word in words)


def format_sid_dump(sections: Iterable[tuple[str, Sequence[int]]]) -> str:
    """Render named SID sections, eight 32-bit words per line."""
    lines = []
    for name, words in sections:
        parts = [f"{name:<15}"]
        for index, word in enumerate(words):
            if index > 0 and index % 8 == 0:
                parts.append(f"\n{'':<15}")
            parts.append(f" {word & _U32:08x}")
        lines.append("".join(parts) + "\n")
    return "".join(lines)