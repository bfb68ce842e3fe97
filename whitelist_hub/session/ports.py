"""
Agent Transport Port

The send capability the hub holds for each connection. Both operations are
synchronous and non-blocking: the hub never waits on a remote agent.
Adapters buffer outbound frames and perform the actual I/O elsewhere.
"""

from abc import ABC, abstractmethod


class AgentTransport(ABC):
    """Outbound half of one agent connection."""

    @abstractmethod
    def send(self, text: str) -> None:
        """
        Queue a serialized frame for delivery.

        Raises:
            Exception: If the frame cannot be accepted (closed, backpressure)
        """
        ...

    @abstractmethod
    def close(self, code: int = 1000, reason: str = "") -> None:
        """
        Request the connection be closed after already queued frames.

        Must be idempotent.
        """
        ...
