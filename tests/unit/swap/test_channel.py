"""
Copyright (c) 2020, The Decred developers
See LICENSE for details
"""

import threading

import pytest

from ptlc import ProtocolViolation
from ptlc.swap.channel import Channel, MemoryChannel


def test_interface():
    ch = Channel()
    with pytest.raises(NotImplementedError):
        ch.send(b"")
    with pytest.raises(NotImplementedError):
        ch.receive()
    with pytest.raises(NotImplementedError):
        ch.close()


def test_ordering():
    a, b = MemoryChannel.pair()
    for i in range(10):
        a.send(bytes([i]))
    b.send(b"back")
    assert [b.receive() for _ in range(10)] == [bytes([i]) for i in range(10)]
    assert a.receive() == b"back"


def test_threaded():
    a, b = MemoryChannel.pair()
    received = []

    def echo():
        while True:
            try:
                msg = b.receive(timeout=5)
            except ProtocolViolation:
                return
            received.append(msg)
            b.send(msg)

    thread = threading.Thread(target=echo)
    thread.start()
    for i in range(5):
        a.send(bytes([i]))
        assert a.receive(timeout=5) == bytes([i])
    a.close()
    thread.join(5)
    assert not thread.is_alive()
    assert len(received) == 5


def test_close():
    a, b = MemoryChannel.pair("a", "b")
    a.send(b"last")
    a.close()
    # Close is idempotent.
    a.close()
    with pytest.raises(ProtocolViolation):
        a.send(b"more")
    # Messages sent before close are still delivered.
    assert b.receive() == b"last"
    with pytest.raises(ProtocolViolation):
        b.receive()
    with pytest.raises(ProtocolViolation):
        b.receive()
    # The other direction still works until b closes.
    b.send(b"reply")
    assert a.receive() == b"reply"


def test_timeout():
    a, _ = MemoryChannel.pair()
    with pytest.raises(ProtocolViolation):
        a.receive(timeout=0.01)
