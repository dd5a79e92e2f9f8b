"""Decode and display Allwinner eGON boot headers (boot0, boot1 and BROM)."""

from __future__ import annotations

import enum
import struct
import sys

VERSION = "1.4.2"

BROM_MAGIC = b"eGON.BRM"
BOOT0_MAGIC = b"eGON.BT0"
BOOT1_MAGIC = b"eGON.BT1"

#: Size of the common boot file header.
HEADER_SIZE = 48
#: Size of the SD card information block stored in ``storage_data``.
SDCARD_INFO_SIZE = 72
#: Size of the largest header variant (boot1), i.e. the most that is read.
MAX_HEADER_SIZE = 33488

_STORAGE_DATA_SIZE = 256
_GPIO_CFG_SIZE = 8

_DRAM_FIELDS = (
    ("DRAM clk  ", False),
    ("DRAM type ", False),
    ("DRAM rank ", False),
    ("DRAM den  ", False),
    ("DRAM iow  ", False),
    ("DRAM busw ", False),
    ("DRAM cas  ", False),
    ("DRAM zq   ", False),
    ("DRAM odt  ", True),
    ("DRAM size ", False),
    ("DRAM tpr0 ", True),
    ("DRAM tpr1 ", True),
    ("DRAM tpr2 ", True),
    ("DRAM tpr3 ", True),
    ("DRAM tpr4 ", True),
    ("DRAM tpr5 ", True),
    ("DRAM emr1 ", True),
    ("DRAM emr2 ", True),
    ("DRAM emr3 ", True),
)


class LoaderType(enum.IntEnum):
    """Kind of loader, which decides how the storage data is shown."""

    UNKNOWN = 0
    SD = 1
    NAND = 2


class BootinfoError(Exception):
    """Raised when the input is not a recognisable boot header."""


def _cstr(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("latin-1")


class _Report:
    """Collects the text output, prefixing fields with their offset."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.parts: list[str] = []

    def u8(self, offset: int) -> int:
        return self.data[offset]

    def u32(self, offset: int) -> int:
        return struct.unpack_from("<I", self.data, offset)[0]

    def s32(self, offset: int) -> int:
        return struct.unpack_from("<i", self.data, offset)[0]

    def text(self, offset: int, size: int) -> str:
        return _cstr(self.data[offset:offset + size])

    def field(self, offset: int, text: str) -> None:
        self.parts.append(f"{offset:8x}:\t{text}")

    def raw(self, text: str) -> None:
        self.parts.append(text)

    def render(self) -> str:
        return "".join(self.parts)

    # -- sections ---------------------------------------------------------

    def brom_head(self) -> None:
        self.field(4, f"Magic     : {self.text(4, 8)}\n")
        self.field(12, f"Length    : {self.u32(12)}\n")
        self.field(16, f"BOOT ver  : {self.text(16, 4)}\n")
        self.field(20, f"eGON ver  : {self.text(20, 4)}\n")
        self.field(24, f"Chip?     : {self.text(24, 8)}\n")

    def boot_head(self) -> None:
        self.field(4, f"Magic     : {self.text(4, 8)}\n")
        self.field(16, f"Length    : {self.u32(16)}\n")
        self.field(20, f"HSize     : {self.u32(20)}\n")
        self.field(24, f"HEAD ver  : {self.text(24, 4)}\n")
        self.field(28, f"FILE ver  : {self.text(28, 4)}\n")
        self.field(32, f"BOOT ver  : {self.text(32, 4)}\n")
        self.field(36, f"eGON ver  : {self.text(36, 4)}\n")
        platform = "".join(chr(b) for b in self.data[40:48])
        self.field(40, f"platform  : {platform}\n")

    def dram_para(self, base: int) -> None:
        addr = self.u32(base)
        shown = f"0x{addr:x}" if addr else "(nil)"
        self.field(base, f"DRAM base : {shown}\n")
        for index, (label, as_hex) in enumerate(_DRAM_FIELDS, start=1):
            offset = base + 4 * index
            value = f"0x{self.u32(offset):x}" if as_hex else str(self.s32(offset))
            self.field(offset, f"{label}: {value}\n")

    def gpio_cfg(self, base: int, count: int) -> None:
        for index in range(count):
            offset = base + index * _GPIO_CFG_SIZE
            port = self.u8(offset)
            if not port:
                continue
            port_num, sel, pull, drv, value, res0, res1 = self.data[offset + 1:offset + 8]
            letter = chr((ord("A") + port - 1) & 0xFF)
            self.field(
                offset,
                f" GPIO {index}   : port={letter}{port_num}, sel={sel}, pull={pull}, "
                f"drv={drv}, data={value}, reserved={res0:02x},{res1:02x}\n",
            )

    def sdcard_info(self, base: int) -> None:
        self.field(base, f" CARD Ctrl Num: {self.s32(base)}\n")
        self.field(base + 4, f" BOOT Offset: {self.u32(base + 4):08x}\n")
        for slot in range(4):
            card = base + 8 + 4 * slot
            if self.s32(card) == -1:
                continue
            speed = base + 24 + 4 * slot
            line_sel = base + 40 + 4 * slot
            line_count = base + 56 + 4 * slot
            self.field(card, f" CARD No  : {self.s32(card)} ({slot})\n")
            self.field(speed, f"  Speed   : {self.s32(speed)}\n")
            self.field(line_sel, f"  Line sel: {self.s32(line_sel)}\n")
            self.field(line_count, f"  Line cnt: {self.s32(line_count)}\n")

    def storage_data(self, base: int, loader_type: LoaderType) -> None:
        start = 0
        if loader_type == LoaderType.SD:
            self.sdcard_info(base)
            start = SDCARD_INFO_SIZE
        for count, index in enumerate(range(start, _STORAGE_DATA_SIZE)):
            if count % 16 == 0:
                if count:
                    self.raw("\n")
                self.field(base + index, f" DATA {index:02x}  :")
            self.raw(f" {self.data[base + index]:02x}")
        self.raw("\n")

    def boot0_private(self, loader_type: LoaderType) -> None:
        self.field(48, f"FHSize    : {self.u32(48)}\n")
        self.field(52, f"FILE ver  : {self.text(52, 4)}\n")
        self.dram_para(56)
        self.field(136, f"UART port : {self.s32(136)}\n")
        self.gpio_cfg(140, 2)
        self.field(156, f"JTAG en   : {self.s32(156)}\n")
        self.gpio_cfg(160, 5)
        self.field(200, "STORAGE   :\n")
        self.gpio_cfg(200, 32)
        self.storage_data(456, loader_type)

    def boot1_private(self, loader_type: LoaderType) -> None:
        self.field(48, f"FHSize    : {self.u32(48)}\n")
        self.field(52, f"FILE ver  : {self.text(52, 4)}\n")
        self.field(56, f"UART port : {self.s32(56)}\n")
        self.gpio_cfg(60, 2)
        self.dram_para(76)
        self.field(32924, f"Set Clock : {self.s32(32924)}\n")
        self.field(32928, f"Set Core Vol: {self.s32(32928)}\n")
        self.field(32932, f"Vol Threshold: {self.s32(32932)}\n")
        self.field(32936, f"TWI port  : {self.s32(32936)}\n")
        self.gpio_cfg(32940, 2)
        self.field(32956, f"Debug     : {self.s32(32956)}\n")
        self.field(32960, f"Hold key min : {self.s32(32960)}\n")
        self.field(32964, f"Hold key max : {self.s32(32964)}\n")
        self.field(32968, f"Work mode : {self.s32(32968)}\n")
        self.field(32972, "STORAGE   :\n")
        self.field(32972, f" type   : {self.s32(32972)}\n")
        self.gpio_cfg(32976, 32)
        self.storage_data(33232, loader_type)


def describe(data: bytes, loader_type: LoaderType = LoaderType.UNKNOWN) -> str:
    """Return the textual description of a boot header image."""
    data = bytes(data[:MAX_HEADER_SIZE])
    if len(data) < HEADER_SIZE:
        raise BootinfoError("Failed to read header")
    data = data.ljust(MAX_HEADER_SIZE, b"\0")
    report = _Report(data)
    magic = data[4:12]
    if magic == BOOT0_MAGIC:
        report.boot_head()
        if data[28:32] == b"1230":
            report.boot0_private(LoaderType(loader_type))
        else:
            report.raw("Unknown boot0 header version\n")
    elif magic == BOOT1_MAGIC:
        report.boot_head()
        if data[28:32] == b"1230":
            report.boot1_private(LoaderType(loader_type))
        else:
            report.raw("Unknown boot0 header version\n")
    elif magic == BROM_MAGIC:
        report.brom_head()
    else:
        raise BootinfoError("Invalid magic")
    return report.render()


def _usage(prog: str) -> str:
    return (
        f"sunxi-bootinfo {VERSION}\n\n"
        f"Usage: {prog} [<filename>]\n"
        "       With no <filename> given, will read from stdin instead\n"
    )


def main(argv=None) -> int:
    """Command entry point; returns the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    prog = "sunxi-bootinfo"
    loader_type = LoaderType.UNKNOWN
    if args and args[0] == "--type=sd":
        loader_type = LoaderType.SD
        args.pop(0)
    if args and args[0] == "--type=nand":
        loader_type = LoaderType.NAND
        args.pop(0)
    try:
        if args:
            try:
                with open(args[0], "rb") as handle:
                    data = handle.read(MAX_HEADER_SIZE)
            except OSError as exc:
                if args[0].startswith("-"):
                    sys.stdout.write(_usage(prog))
                print(f"open input: {exc.strerror}", file=sys.stderr)
                return 1
        else:
            data = sys.stdin.buffer.read(MAX_HEADER_SIZE)
        sys.stdout.write(describe(data, loader_type))
    except BootinfoError as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0