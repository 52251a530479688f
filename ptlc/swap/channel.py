"""
Copyright (c) 2020, The Decred developers
See LICENSE for details

The swap engines talk over an ordered, reliable, point-to-point channel.
Any authenticated transport with those properties can back a Channel.
"""

import queue
import threading

from ptlc import ProtocolViolation
from ptlc.util import helpers


log = helpers.getLogger("CHANNEL")

# A sentinel queued behind any pending messages when an endpoint closes.
_closed = object()


class Channel:
    """
    Channel is the interface the swap engine needs from its transport.
    Messages are delivered in order and without loss. receive blocks.
    """

    def send(self, msg):
        """
        Send a message to the counterpart.

        Args:
            msg (bytes): The framed message.

        Raises:
            ProtocolViolation: The channel is closed.
        """
        raise NotImplementedError

    def receive(self, timeout=None):
        """
        Wait for the next message from the counterpart.

        Args:
            timeout (float): Optional. Seconds to wait. None blocks until a
                message arrives or the channel closes.

        Returns:
            bytes: The framed message.

        Raises:
            ProtocolViolation: The channel closed or the timeout expired.
        """
        raise NotImplementedError

    def close(self):
        """
        Close the channel. The counterpart's receives fail once it has read
        any messages already sent.
        """
        raise NotImplementedError


class MemoryChannel(Channel):
    """
    One endpoint of an in-process channel. Create connected endpoints with
    MemoryChannel.pair.
    """

    def __init__(self, name, inbox, outbox):
        """
        Args:
            name (str): A label for logging.
            inbox (queue.Queue): Messages for this endpoint.
            outbox (queue.Queue): Messages for the counterpart.
        """
        self.name = name
        self.inbox = inbox
        self.outbox = outbox
        self.closed = False
        self.peerClosed = False
        self.lock = threading.Lock()

    @staticmethod
    def pair(nameA="a", nameB="b"):
        """
        Create two connected endpoints.

        Returns:
            MemoryChannel: The first endpoint.
            MemoryChannel: The second endpoint.
        """
        qa, qb = queue.Queue(), queue.Queue()
        return MemoryChannel(nameA, qa, qb), MemoryChannel(nameB, qb, qa)

    def send(self, msg):
        with self.lock:
            if self.closed:
                raise ProtocolViolation(f"{self.name}: send on closed channel")
            self.outbox.put(bytes(msg))

    def receive(self, timeout=None):
        if self.peerClosed:
            raise ProtocolViolation(f"{self.name}: channel closed by counterpart")
        try:
            msg = self.inbox.get(timeout=timeout)
        except queue.Empty:
            raise ProtocolViolation(
                f"{self.name}: no message from counterpart after {timeout} seconds"
            )
        if msg is _closed:
            self.peerClosed = True
            raise ProtocolViolation(f"{self.name}: channel closed by counterpart")
        return msg

    def close(self):
        with self.lock:
            if self.closed:
                return
            self.closed = True
            self.outbox.put(_closed)
        log.debug(f"{self.name}: channel closed")
