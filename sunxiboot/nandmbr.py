"""Allwinner A10 NAND partition table (MBR) layout."""

from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass, field

MBR_MAGIC = b"softw311"
MBR_VERSION = 0x100
MAX_PART_COUNT = 15
MBR_COPY_NUM = 4
MBR_START_ADDRESS = 0x0
MBR_SIZE = 1024
PARTITION_SIZE = 64
MBR_RESERVED = MBR_SIZE - 20 - MAX_PART_COUNT * PARTITION_SIZE

_PART_STRUCT = struct.Struct("<IIII12s12sII16s")
_HEAD_STRUCT = struct.Struct("<II8sBBH")


class MbrError(ValueError):
    """Raised for malformed or unrepresentable partition tables."""


def _encode_name(text: str, what: str) -> bytes:
    raw = text.encode("latin-1")
    if len(raw) > 12:
        raise MbrError(f"{what} {text!r} is longer than 12 bytes")
    return raw


def _decode_name(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("latin-1")


@dataclass
class Partition:
    """One partition entry; address and length are 64-bit values."""

    address: int = 0
    length: int = 0
    classname: str = ""
    name: str = ""
    user_type: int = 0
    ro: int = 0
    reserved: bytes = bytes(16)

    def to_bytes(self) -> bytes:
        if not 0 <= self.address < 1 << 64 or not 0 <= self.length < 1 << 64:
            raise MbrError("partition address and length must fit in 64 bits")
        if len(self.reserved) != 16:
            raise MbrError("reserved field must be 16 bytes")
        return _PART_STRUCT.pack(
            self.address >> 32,
            self.address & 0xFFFFFFFF,
            self.length >> 32,
            self.length & 0xFFFFFFFF,
            _encode_name(self.classname, "class name"),
            _encode_name(self.name, "name"),
            self.user_type,
            self.ro,
            bytes(self.reserved),
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "Partition":
        addrhi, addrlo, lenhi, lenlo, classname, name, user_type, ro, res = (
            _PART_STRUCT.unpack(data[:PARTITION_SIZE])
        )
        return cls(
            address=(addrhi << 32) | addrlo,
            length=(lenhi << 32) | lenlo,
            classname=_decode_name(classname),
            name=_decode_name(name),
            user_type=user_type,
            ro=ro,
            reserved=res,
        )


@dataclass
class Mbr:
    """The whole 1024-byte MBR block."""

    partitions: list[Partition] = field(default_factory=list)
    version: int = MBR_VERSION
    copy: int = MBR_COPY_NUM
    index: int = 0
    reserved: bytes = bytes(MBR_RESERVED)

    def _body(self) -> bytes:
        if len(self.partitions) > MAX_PART_COUNT:
            raise MbrError(f"at most {MAX_PART_COUNT} partitions are supported")
        if len(self.reserved) != MBR_RESERVED:
            raise MbrError(f"reserved field must be {MBR_RESERVED} bytes")
        head = _HEAD_STRUCT.pack(
            0, self.version, MBR_MAGIC, self.copy, self.index, len(self.partitions)
        )[4:]
        entries = b"".join(p.to_bytes() for p in self.partitions)
        entries = entries.ljust(MAX_PART_COUNT * PARTITION_SIZE, b"\0")
        return head + entries + bytes(self.reserved)

    def compute_crc(self) -> int:
        """CRC32 over everything after the CRC field."""
        return zlib.crc32(self._body()) & 0xFFFFFFFF

    def to_bytes(self) -> bytes:
        body = self._body()
        return struct.pack("<I", zlib.crc32(body) & 0xFFFFFFFF) + body


def parse_mbr(data: bytes) -> Mbr:
    """Parse and validate one MBR copy."""
    if len(data) < MBR_SIZE:
        raise MbrError(f"MBR needs {MBR_SIZE} bytes, got {len(data)}")
    data = bytes(data[:MBR_SIZE])
    crc, version, magic, copy, index, count = _HEAD_STRUCT.unpack_from(data)
    if magic != MBR_MAGIC:
        raise MbrError("bad MBR magic")
    if crc != zlib.crc32(data[4:]) & 0xFFFFFFFF:
        raise MbrError("MBR CRC mismatch")
    if count > MAX_PART_COUNT:
        raise MbrError(f"partition count {count} exceeds {MAX_PART_COUNT}")
    start = _HEAD_STRUCT.size
    partitions = [
        Partition.from_bytes(data[start + i * PARTITION_SIZE:start + (i + 1) * PARTITION_SIZE])
        for i in range(count)
    ]
    reserved_start = start + MAX_PART_COUNT * PARTITION_SIZE
    return Mbr(
        partitions=partitions,
        version=version,
        copy=copy,
        index=index,
        reserved=data[reserved_start:],
    )