import logging
import struct

import pytest

from sunxiboot.spl import (
    SPL_MAX_VERSION,
    SPL_MIN_VERSION,
    SplError,
    SwapBuffer,
    check_sunxi_spl,
    format_sid,
    format_sid_dump,
    plan_spl_writes,
    spl_dtb_name,
    verify_spl,
)


def make_spl(length, trailer=b"", dt_name=None, version=2):
    body = bytearray(length)
    struct.pack_into("<I", body, 0, 0xEA000006)
    body[4:12] = b"eGON.BT0"
    struct.pack_into("<I", body, 12, 0x5F0A6C39)
    struct.pack_into("<I", body, 16, length)
    if dt_name is not None:
        body[0x14:0x17] = b"SPL"
        body[0x17] = version
        name = dt_name.encode() + b"\0"
        offset = 0x40
        struct.pack_into("<I", body, 0x20, offset)
        body[offset:offset + len(name)] = name
    for i in range(0x80, length):
        body[i] = i & 0xFF
    total = sum(w for (w,) in struct.iter_unpack("<I", bytes(body))) & 0xFFFFFFFF
    struct.pack_into("<I", body, 12, total)
    return bytes(body) + trailer


def test_verify_spl_returns_length():
    assert verify_spl(make_spl(0x200)) == 0x200


def test_verify_spl_ignores_trailing_data():
    assert verify_spl(make_spl(0x100, trailer=b"\xff" * 64)) == 0x100


def test_verify_spl_detects_corruption():
    data = bytearray(make_spl(0x200))
    data[0x150] ^= 0x01
    with pytest.raises(SplError, match="checksum"):
        verify_spl(bytes(data))


def test_verify_spl_missing_header():
    with pytest.raises(SplError, match="eGON header is not found"):
        verify_spl(b"\0" * 64)
    with pytest.raises(SplError, match="eGON header is not found"):
        verify_spl(make_spl(0x100)[:16])


def test_verify_spl_bad_length():
    data = bytearray(make_spl(0x100))
    struct.pack_into("<I", data, 16, 0x101)
    with pytest.raises(SplError, match="bad length"):
        verify_spl(bytes(data))
    struct.pack_into("<I", data, 16, 0x200)
    with pytest.raises(SplError, match="bad length"):
        verify_spl(bytes(data))


def test_spl_dtb_name_found():
    data = make_spl(0x100, dt_name="sun7i-a20-demo")
    assert spl_dtb_name(data) == "sun7i-a20-demo"


def test_spl_dtb_name_old_version():
    assert spl_dtb_name(make_spl(0x100, dt_name="board", version=1)) is None


def test_spl_dtb_name_without_signature():
    assert spl_dtb_name(make_spl(0x100)) is None
    assert spl_dtb_name(b"\0" * 0x100) is None


def test_check_sunxi_spl_accepts_supported_versions():
    assert check_sunxi_spl(b"SPL" + bytes([SPL_MIN_VERSION])) is True
    assert check_sunxi_spl(b"SPL" + bytes([SPL_MAX_VERSION])) is True


def test_check_sunxi_spl_rejects(caplog):
    with caplog.at_level(logging.ERROR):
        assert check_sunxi_spl(b"SPL\x00") is False
        assert check_sunxi_spl(b"SPL" + bytes([SPL_MAX_VERSION + 1])) is False
    assert "version mismatch" in caplog.text
    assert check_sunxi_spl(b"eGON") is False


def test_plan_without_swap_buffers():
    data = bytes(range(64))
    writes = plan_spl_writes(data, 0x0, 0x8000, 0x7000, [])
    assert writes == [(0x0, data)]


def test_plan_redirects_swap_area():
    data = bytes(i & 0xFF for i in range(0x40))
    swaps = [SwapBuffer(buf1=0x10, buf2=0x100, size=0x10)]
    writes = plan_spl_writes(data, 0x0, 0x8000, 0x7000, swaps)
    assert writes == [
        (0x0, data[:0x10]),
        (0x100, data[0x10:0x20]),
        (0x20, data[0x20:]),
    ]
    assert b"".join(chunk for _, chunk in writes) == data


def test_plan_stops_at_terminator():
    data = bytes(0x40)
    swaps = [SwapBuffer(0, 0, 0), SwapBuffer(buf1=0x10, buf2=0x100, size=0x10)]
    assert plan_spl_writes(data, 0x0, 0x8000, 0x7000, swaps) == [(0x0, data)]


def test_plan_too_large_for_swap_limit():
    data = bytes(0x200)
    swaps = [SwapBuffer(buf1=0x10, buf2=0x100, size=0x10)]
    with pytest.raises(SplError, match="too large"):
        plan_spl_writes(data, 0x0, 0x8000, 0x7000, swaps)


def test_plan_too_large_for_thunk():
    with pytest.raises(SplError, match="too large"):
        plan_spl_writes(bytes(0x200), 0x1000, 0x8000, 0x1100, [])


def test_format_sid():
    assert format_sid([0x12345678, 0, 0xDEADBEEF, 1]) == "12345678:00000000:deadbeef:00000001"
    with pytest.raises(ValueError):
        format_sid([1, 2, 3])


def test_format_sid_dump_layout():
    text = format_sid_dump([("chipid", list(range(10))), ("rotpk", [0xFFFFFFFF])])
    lines = text.splitlines()
    assert len(lines) == 3
    assert lines[0].startswith("chipid".ljust(15))
    assert len(lines[0].split()) == 9
    assert lines[1].startswith(" " * 15)
    assert len(lines[1].split()) == 2
    assert lines[2].split() == ["rotpk", "ffffffff"]
    assert text.endswith("\n")