"""In-process, bidirectional message channels between protocol parties."""

from __future__ import annotations

import queue
from typing import Any


class Channel:
    """One end of a duplex link: ``send`` reaches the peer, ``recv`` reads from it.

    Sends never block; messages arrive in the order they were sent.
    """

    def __init__(self, inbound: queue.Queue, outbound: queue.Queue) -> None:
        self._inbound = inbound
        self._outbound = outbound

    def send(self, value: Any) -> None:
        """Queue ``value`` for the peer."""
        self._outbound.put(value)

    def recv(self, timeout: float | None = None) -> Any:
        """Return the next message from the peer, waiting up to ``timeout`` seconds."""
        try:
            return self._inbound.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError("no message arrived before the timeout") from None


def channel_pair() -> tuple[Channel, Channel]:
    """Two connected channel ends."""
    a_to_b: queue.Queue = queue.Queue()
    b_to_a: queue.Queue = queue.Queue()
    return Channel(b_to_a, a_to_b), Channel(a_to_b, b_to_a)