"""Network-local node identities."""

from dataclasses import dataclass
from typing import Optional

from ..errors import IdentityExhaustedError


@dataclass(frozen=True, order=True)
class NetworkIdentity:
    """Identity assigned to a node when it is registered in a network."""
    index: int

    def __post_init__(self):
        if self.index < 0:
            raise ValueError(f"identity index must be non-negative: {self.index}")

    def __str__(self) -> str:
        return f"node-{self.index}"


class IdentityAllocator:
    """
    Hands out sequential identities starting at zero.

    Identities are unbounded unless a limit is given, in which case
    allocating past it raises instead of wrapping around.
    """

    def __init__(self, limit: Optional[int] = None):
        self.limit = limit
        self._next = 0

    def allocate(self) -> NetworkIdentity:
        if self.limit is not None and self._next >= self.limit:
            raise IdentityExhaustedError(f"cannot assign more than {self.limit} identities")
        identity = NetworkIdentity(self._next)
        self._next += 1
        return identity

    @property
    def allocated(self) -> int:
        return self._next
