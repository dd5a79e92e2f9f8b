import pytest

from sunxiboot.spibatch import READ_STATUS_CMD, run_batch


class Recorder:
    def __init__(self, reply=None):
        self.sent = []
        self.reply = reply or (lambda tx: tx)

    def __call__(self, tx):
        self.sent.append(bytes(tx))
        return self.reply(bytes(tx))


def test_end_marker_only_does_nothing():
    rec = Recorder()
    result = run_batch(bytearray(b"\x00\x00"), rec)
    assert rec.sent == []
    assert result == bytearray(b"\x00\x00")


def test_loopback_leaves_buffer_unchanged():
    batch = bytearray(b"\x00\x03abc\x00\x02xy\x00\x00")
    original = bytes(batch)
    rec = Recorder()
    result = run_batch(batch, rec)
    assert bytes(result) == original
    assert rec.sent == [b"abc", b"xy"]


def test_received_data_replaces_sent_data_in_place():
    batch = bytearray(b"\x00\x04\x9f\x00\x00\x00\x00\x00")
    rec = Recorder(lambda tx: bytes(b ^ 0xFF for b in tx))
    result = run_batch(batch, rec)
    assert result is batch
    assert bytes(batch[:2]) == b"\x00\x04"
    assert bytes(batch[2:6]) == bytes(b ^ 0xFF for b in b"\x9f\x00\x00\x00")
    assert bytes(batch[6:]) == b"\x00\x00"


def test_bytes_input_is_copied():
    data = b"\x00\x01\x10\x00\x00"
    result = run_batch(data, lambda tx: bytes(len(tx)))
    assert data == b"\x00\x01\x10\x00\x00"
    assert bytes(result) == b"\x00\x01\x00\x00\x00"


def test_wait_for_completion_polls_until_not_busy():
    statuses = iter([0x03, 0x01, 0x00])

    def reply(tx):
        if tx[0] == READ_STATUS_CMD and len(tx) == 2:
            return bytes([0xFF, next(statuses)])
        return tx

    rec = Recorder(reply)
    run_batch(bytearray(b"\x00\x01\x06\xff\xff\x00\x00"), rec)
    status_polls = [tx for tx in rec.sent if tx[0] == READ_STATUS_CMD]
    assert len(status_polls) == 3
    assert rec.sent[0] == b"\x06"
    assert all(tx[0] == READ_STATUS_CMD for tx in rec.sent[1:])


def test_wait_sends_read_status_command():
    rec = Recorder(lambda tx: b"\x00\x00")
    run_batch(b"\xff\xff\x00\x00", rec)
    assert rec.sent == [b"\x05\x00"]


def test_wait_does_not_modify_buffer():
    batch = bytearray(b"\xff\xff\x00\x00")
    run_batch(batch, lambda tx: b"\x12\x00")
    assert bytes(batch) == b"\xff\xff\x00\x00"


def test_missing_end_marker_raises():
    with pytest.raises(ValueError):
        run_batch(b"\x00\x01\x06", lambda tx: tx)


def test_record_longer_than_buffer_raises():
    with pytest.raises(ValueError):
        run_batch(b"\x00\x10ab", lambda tx: tx)


def test_empty_buffer_raises():
    with pytest.raises(ValueError):
        run_batch(b"", lambda tx: tx)


def test_wrong_reply_length_raises():
    with pytest.raises(ValueError):
        run_batch(b"\x00\x02ab\x00\x00", lambda tx: tx[:1])


def test_write_style_batch_sequence():
    batch = (
        b"\x00\x01\x06"
        b"\x00\x04\x20\x00\x10\x00"
        b"\xff\xff"
        b"\x00\x00"
    )
    rec = Recorder(lambda tx: b"\x00\x00" if tx[:1] == b"\x05" and len(tx) == 2 else tx)
    run_batch(batch, rec)
    assert rec.sent == [b"\x06", b"\x20\x00\x10\x00", b"\x05\x00"]