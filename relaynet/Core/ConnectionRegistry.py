from typing import TYPE_CHECKING, Dict, Iterator, List, Optional

if TYPE_CHECKING:
    from .Relay import Relay


# =============================================================================
# Supporting Components
# =============================================================================

class ConnectionRegistry:
    """
    Live relays keyed by connection id.

    Bookkeeping only: the registry keeps each relay alive until it reports
    termination and answers "how many are open" for logs and the dashboard.
    Everything runs on the event loop thread, so there is no locking.
    """

    def __init__(self):
        self._relays: Dict[int, "Relay"] = {}

    def insert(self, connection_id: int, relay: "Relay"):
        """Register a freshly accepted connection."""
        if connection_id in self._relays:
            raise KeyError(f"Connection {connection_id} is already registered")
        self._relays[connection_id] = relay

    def remove(self, connection_id: int) -> Optional["Relay"]:
        """Forget a terminated connection, returning it, or None if it was already gone."""
        return self._relays.pop(connection_id, None)

    def get(self, connection_id: int) -> Optional["Relay"]:
        return self._relays.get(connection_id)

    def snapshot(self) -> List["Relay"]:
        return list(self._relays.values())

    def __contains__(self, connection_id: int) -> bool:
        return connection_id in self._relays

    def __len__(self) -> int:
        return len(self._relays)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._relays))
