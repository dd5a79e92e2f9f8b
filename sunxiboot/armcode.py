"""ARM code snippets and memory images that are run on a device in FEL mode."""

from __future__ import annotations

import struct
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

_U32 = 0xFFFFFFFF

#: Number of first-level (1 MiB section) entries in a translation table.
MMU_TABLE_ENTRIES = 4096
#: Size of the translation table in bytes.
MMU_TABLE_SIZE = MMU_TABLE_ENTRIES * 4

DRAM_BASE = 0x40000000
DRAM_SIZE = 0x80000000

_TEXCB_MASK = (7 << 12) | (1 << 3) | (1 << 2)

#: Offset of the value that :func:`read_cp_reg_code` leaves behind.
CP_READ_RESULT_OFFSET = 12
#: Offset, within a remote function image, of the function's return value.
REMOTE_RESULT_OFFSET = 0x48

# Trampoline that sets up a private stack, loads the arguments, calls the
# uploaded function and stores its return value.
_REMOTE_ENTRY_CODE = (
    0xE58FE040,  # str  lr, [pc, #64]
    0xE58FD040,  # str  sp, [pc, #64]
    0xE59FD040,  # ldr  sp, [pc, #64]
    0xE28FC040,  # add  ip, pc, #64
    0xE1A0200D,  # mov  r2, sp
    0xE49C0004,  # ldr  r0, [ip], #4
    0xE3500000,  # cmp  r0, #0
    0x0A000003,  # beq  30
    0xE49C1004,  # ldr  r1, [ip], #4
    0xE4821004,  # str  r1, [r2], #4
    0xE2500001,  # subs r0, r0, #1
    0x1AFFFFFB,  # bne  20
    0xE8BC000F,  # ldm  ip!, {r0, r1, r2, r3}
    0xE12FFF3C,  # blx  ip
    0xE59FE008,  # ldr  lr, [pc, #8]
    0xE59FD008,  # ldr  sp, [pc, #8]
    0xE58F0000,  # str  r0, [pc]
    0xE12FFF1E,  # bx   lr
    0x00000000,
    0x00000000,
)


def _words(values: Iterable[int]) -> bytes:
    values = list(values)
    for value in values:
        if not 0 <= value <= _U32:
            raise ValueError(f"value {value!r} does not fit in 32 bits")
    return struct.pack(f"<{len(values)}I", *values)


def _cp_opcode(load: bool, coproc: int, opc1: int, crn: int, crm: int, opc2: int) -> int:
    return (
        0xEE000000
        | ((1 if load else 0) << 20)
        | (1 << 4)
        | ((opc1 & 0x7) << 21)
        | ((crn & 0xF) << 16)
        | ((coproc & 0xF) << 8)
        | ((opc2 & 0x7) << 5)
        | (crm & 0xF)
    )


def mrc_opcode(coproc: int, opc1: int, crn: int, crm: int, opc2: int) -> int:
    """Encode ``mrc coproc, opc1, r0, crn, crm, opc2``."""
    return _cp_opcode(True, coproc, opc1, crn, crm, opc2)


def mcr_opcode(coproc: int, opc1: int, crn: int, crm: int, opc2: int) -> int:
    """Encode ``mcr coproc, opc1, r0, crn, crm, opc2``."""
    return _cp_opcode(False, coproc, opc1, crn, crm, opc2)


def read_cp_reg_code(coproc: int, opc1: int, crn: int, crm: int, opc2: int) -> bytes:
    """Code that reads a coprocessor register and stores it at offset 12."""
    return _words((
        mrc_opcode(coproc, opc1, crn, crm, opc2),
        0xE58F0000,  # str r0, [pc]
        0xE12FFF1E,  # bx  lr
    ))


def write_cp_reg_code(
    coproc: int, opc1: int, crn: int, crm: int, opc2: int, value: int
) -> bytes:
    """Code that writes *value* to a coprocessor register, with barriers."""
    return _words((
        0xE59F000C,  # ldr r0, [pc, #12]
        mcr_opcode(coproc, opc1, crn, crm, opc2),
        0xF57FF04F,  # dsb sy
        0xF57FF06F,  # isb sy
        0xE12FFF1E,  # bx  lr
        value,
    ))


def generate_mmu_translation_table() -> list[int]:
    """Direct-mapped section table as set up by the A20 boot ROM.

    All sections are strongly ordered except the first and the last one,
    which are normal memory.
    """
    table = [0x00000DE2 | (i << 20) for i in range(MMU_TABLE_ENTRIES)]
    table[0x000] |= 0x1000
    table[0xFFF] |= 0x1000
    return table


def check_mmu_translation_table(table: bytes | Sequence[int]) -> list[int]:
    """Validate a direct-mapped section table and return its entries.

    *table* is either the raw little-endian table as read from the device
    or a sequence of 32-bit entries. Raises ``ValueError`` if it is not a
    direct mapping made of section descriptors.
    """
    if isinstance(table, (bytes, bytearray, memoryview)):
        raw = bytes(table)
        if len(raw) != MMU_TABLE_SIZE:
            raise ValueError(f"MMU: table must be {MMU_TABLE_SIZE} bytes, got {len(raw)}")
        entries = list(struct.unpack(f"<{MMU_TABLE_ENTRIES}I", raw))
    else:
        entries = list(table)
        if len(entries) != MMU_TABLE_ENTRIES:
            raise ValueError(
                f"MMU: table must have {MMU_TABLE_ENTRIES} entries, got {len(entries)}"
            )
    for index, entry in enumerate(entries):
        if ((entry >> 1) & 1) != 1 or ((entry >> 18) & 1) != 0:
            raise ValueError("MMU: not a section descriptor")
        if (entry >> 20) != index:
            raise ValueError("MMU: not a direct mapping")
    return entries


def prepare_mmu_table_for_restore(table: Sequence[int]) -> bytes:
    """Adjust the table before re-enabling the MMU; returns it little-endian.

    DRAM sections become normal uncached memory and the boot ROM section
    becomes normal write-back cached memory.
    """
    entries = list(table)
    if len(entries) != MMU_TABLE_ENTRIES:
        raise ValueError(
            f"MMU: table must have {MMU_TABLE_ENTRIES} entries, got {len(entries)}"
        )
    for index in range(DRAM_BASE >> 20, (DRAM_BASE + DRAM_SIZE) >> 20):
        entries[index] = (entries[index] & ~_TEXCB_MASK) | (1 << 12)
    entries[0xFFF] = (entries[0xFFF] & ~_TEXCB_MASK) | (1 << 12) | (1 << 3) | (1 << 2)
    return _words(entries)


@dataclass(frozen=True)
class RemoteFunctionImage:
    """Memory image holding a trampoline, arguments, code and a stack."""

    address: int
    data: bytes
    stack_pointer: int

    @property
    def result_address(self) -> int:
        """Where the function's 32-bit return value ends up."""
        return self.address + REMOTE_RESULT_OFFSET

    @staticmethod
    def decode_result(raw: bytes) -> int:
        """Decode the return value as read back from :attr:`result_address`."""
        return struct.unpack_from("<I", raw)[0]


def build_remote_function(
    scratch_addr: int, stack_size: int, arm_code: bytes, args: Sequence[int]
) -> RemoteFunctionImage:
    """Lay out a position-independent ARM leaf function for remote calls.

    The first four arguments go in registers, the rest on the stack.
    """
    args = list(args)
    arm_code = bytes(arm_code)
    on_stack = max(len(args) - 4, 0)
    entry_size = len(_REMOTE_ENTRY_CODE) * 4
    new_sp = (
        scratch_addr + entry_size + 2 * 4 + on_stack * 4 + 4 * 4
        + len(arm_code) + stack_size
    )
    new_sp = (new_sp + 7) & ~7
    register_args = [args[i] if i < len(args) else 0 for i in range(4)]
    head = _words(
        list(_REMOTE_ENTRY_CODE)
        + [new_sp & _U32, on_stack]
        + args[len(args) - on_stack:]
        + register_args
    )
    body = head + arm_code
    size = new_sp - scratch_addr
    return RemoteFunctionImage(
        address=scratch_addr,
        data=body.ljust(size, b"\0"),
        stack_pointer=new_sp,
    )


def rmr_request_code(rvbar_reg: int, entry_point: int, aarch64: bool) -> bytes:
    """Code that stores *entry_point* in RVBAR and requests a warm reset."""
    rmr_mode = (1 << 1) | (1 if aarch64 else 0)
    return _words((
        0xE59F0028,  # ldr r0, [rvbar_reg]
        0xE59F1028,  # ldr r1, [entry_point]
        0xE5801000,  # str r1, [r0]
        0xF57FF04F,  # dsb sy
        0xF57FF06F,  # isb sy
        0xE59F101C,  # ldr r1, [rmr_mode]
        0xEE1C0F50,  # mrc 15, 0, r0, cr12, cr0, {2}
        0xE1800001,  # orr r0, r0, r1
        0xEE0C0F50,  # mcr 15, 0, r0, cr12, cr0, {2}
        0xF57FF06F,  # isb sy
        0xE320F003,  # loop: wfi
        0xEAFFFFFD,  # b loop
        rvbar_reg,
        entry_point,
        rmr_mode,
    ))