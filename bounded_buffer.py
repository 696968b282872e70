class BoundedBuffer:
    """Fixed-capacity byte accumulator.

    A buffer of capacity C holds at most C-1 bytes. Bytes past that limit are
    discarded and only counted; what was already accumulated is kept.
    """

    def __init__(self, capacity: int):
        if capacity < 2:
            raise ValueError(f"Buffer capacity must be at least 2, got {capacity}")
        self.capacity = capacity
        self.dropped = 0
        self._data = bytearray()

    @classmethod
    def fill(cls, capacity: int, payload) -> "BoundedBuffer":
        buffer = cls(capacity)
        buffer.append(payload)
        return buffer

    @property
    def limit(self) -> int:
        return self.capacity - 1

    @property
    def overflowed(self) -> bool:
        return self.dropped > 0

    def append(self, chunk) -> int:
        """Append what fits and return how many bytes were discarded."""
        room = self.limit - len(self._data)
        kept = memoryview(chunk)[:max(room, 0)]
        self._data += kept
        discarded = len(chunk) - len(kept)
        self.dropped += discarded
        return discarded

    def copy(self) -> "BoundedBuffer":
        clone = BoundedBuffer(self.capacity)
        clone._data = bytearray(self._data)
        clone.dropped = self.dropped
        return clone

    def getvalue(self) -> bytes:
        return bytes(self._data)

    def __len__(self):
        return len(self._data)

    def __repr__(self):
        return f"BoundedBuffer(capacity={self.capacity}, size={len(self)}, dropped={self.dropped})"
