"""Batched full-duplex SPI transfers driven by a command buffer.

A batch buffer is a sequence of records, each starting with a 16-bit
big-endian code:

* ``0x0000`` ends the batch.
* ``0xFFFF`` waits for completion: the status register is polled with the
  read-status command (``0x05``) until its busy bit (bit 0) is clear.
* Any other value ``n`` is followed by ``n`` bytes. They are sent out and
  the bytes received at the same time replace them in the buffer.
"""

from __future__ import annotations

from collections.abc import Callable

#: Code that marks the end of a batch.
END_OF_BATCH = 0x0000
#: Code that requests polling the flash status until it is no longer busy.
WAIT_FOR_COMPLETION = 0xFFFF
#: SPI flash "read status register" command used while waiting.
READ_STATUS_CMD = 0x05
#: Busy bit in the flash status register.
STATUS_BUSY = 0x01

Transfer = Callable[[bytes], bytes]


def _exchange(transfer: Transfer, data: bytes) -> bytes:
    received = bytes(transfer(bytes(data)))
    if len(received) != len(data):
        raise ValueError(
            f"SPI transfer returned {len(received)} bytes, expected {len(data)}"
        )
    return received


def run_batch(buffer: bytes | bytearray, transfer: Transfer) -> bytearray:
    """Execute the batch in *buffer* using *transfer* for each SPI exchange.

    *transfer* takes the bytes to send and returns as many received bytes.
    Received data is written back over the sent data. A ``bytearray`` is
    updated in place and returned; other inputs are copied first.
    Raises ``ValueError`` for a truncated batch or a bad transfer reply.
    """
    buf = buffer if isinstance(buffer, bytearray) else bytearray(buffer)
    status_cmd = bytearray([READ_STATUS_CMD, 0])
    pos = 0
    while True:
        if pos + 2 > len(buf):
            raise ValueError(f"SPI batch truncated at offset {pos}: missing end marker")
        code = (buf[pos] << 8) | buf[pos + 1]

        if code == END_OF_BATCH:
            return buf

        if code == WAIT_FOR_COMPLETION:
            status_cmd[0] = READ_STATUS_CMD
            status_cmd[:] = _exchange(transfer, status_cmd)
            if status_cmd[1] & STATUS_BUSY:
                continue
            pos += 2
            continue

        start = pos + 2
        end = start + code
        if end > len(buf):
            raise ValueError(
                f"SPI batch record at offset {pos} needs {code} bytes, "
                f"only {len(buf) - start} left"
            )
        buf[start:end] = _exchange(transfer, buf[start:end])
        pos = end