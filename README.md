# sunxiboot

Helpers for the boot images and boot-time structures of Allwinner (sunxi)
SoCs, in pure Python with no dependencies.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Inspecting boot headers

The `sunxiboot-bootinfo` command prints the fields of an eGON boot header
(boot0 `eGON.BT0`, boot1 `eGON.BT1` or BROM `eGON.BRM`), each line prefixed
with the hexadecimal offset of the field within the file:

```
sunxiboot-bootinfo boot0.bin
sunxiboot-bootinfo --type=sd boot0_sdcard.fex
sunxiboot-bootinfo --type=nand < boot0_nand.fex
```

With `--type=sd` the start of the storage data area is decoded as SD card
information and the remaining bytes are dumped in hex; otherwise the whole
area is dumped. The private header is only decoded when the file header
version is `1230`. With no file name the header is read from standard
input. The command exits with status 1 if the file cannot be opened, the
input is shorter than the common header, or the magic is not recognised.

From Python, `sunxiboot.bootinfo.describe(data, loader_type)` returns the
same report as a string; `loader_type` is a `LoaderType` (`UNKNOWN`, `SD`,
`NAND`). Short or unrecognised input raises `BootinfoError`.

## Modules

- `sunxiboot.bootinfo` – eGON boot header reports (`describe`, `LoaderType`,
  `BootinfoError`, and `main` behind the command above).
- `sunxiboot.nandmbr` – the 1024-byte A10 NAND partition table.
  `parse_mbr` checks the `softw311` magic, the CRC32 and the partition
  count and returns an `Mbr` holding up to 15 `Partition` entries (64-bit
  address and length, class name, name, user type, read-only flag).
  `Mbr.to_bytes` serialises a table with its checksum and
  `Mbr.compute_crc` returns the checksum alone. Problems raise `MbrError`.
- `sunxiboot.armcode` – small ARM code snippets and memory images for a
  device in FEL mode, returned as little-endian bytes:
  `mrc_opcode` / `mcr_opcode` and `read_cp_reg_code` / `write_cp_reg_code`
  for coprocessor register access; `generate_mmu_translation_table`,
  `check_mmu_translation_table` and `prepare_mmu_table_for_restore` for
  direct-mapped section tables; `rmr_request_code` for an RVBAR/RMR warm
  reset request; and `build_remote_function`, which lays out a trampoline,
  arguments, function code and stack as a `RemoteFunctionImage`
  (with `result_address` and `decode_result` for the return value).
- `sunxiboot.spl` – SPL loading: `verify_spl` checks the eGON header and
  checksum and returns the SPL length, `spl_dtb_name` finds the device tree
  name in a v0.2+ sunxi SPL header, `check_sunxi_spl` checks the SPL
  signature and version, and `plan_spl_writes` splits an SPL into
  `(address, bytes)` writes around the SoC's `SwapBuffer` areas, raising
  `SplError` if it does not fit. `format_sid` and `format_sid_dump` format
  SID e-fuse contents.
- `sunxiboot.spibatch` – `run_batch(buffer, transfer)` executes a batch of
  length-prefixed SPI transfer records, including wait-for-completion
  polling of the flash status register, calling `transfer` for each
  full-duplex exchange and writing the received bytes back into the buffer.

## What this package does not do

- It does not talk to a device. There is no USB transport and no FEL
  protocol client: the `armcode` and `spl` functions produce the bytes to
  write and check the bytes read back, but sending them is left to the
  caller. Likewise `run_batch` needs a caller-supplied `transfer` function.
- It has no command for FEL operations (memory reads and writes, SPL or
  U-Boot loading, SID reading); `sunxiboot-bootinfo` is its only command.
- It does not parse legacy U-Boot (mkimage) image headers or FIT images.
- It does not identify SPI flash chips or build SPI flash read, erase and
  program command sequences.