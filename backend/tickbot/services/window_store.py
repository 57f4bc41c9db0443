from collections import deque

from tickbot.schemas.market import PriceSample


class WindowStore:
    """Bounded FIFO of price samples with a parallel volume sequence."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._samples: deque[PriceSample] = deque(maxlen=capacity)
        self._volumes: deque[float] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, sample: PriceSample, volume: float = 0.0) -> None:
        # Both deques share maxlen, so they evict in lockstep and stay index-aligned.
        self._samples.append(sample)
        self._volumes.append(volume)

    def size(self) -> int:
        return len(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> list[PriceSample]:
        return list(self._samples)

    @property
    def volumes(self) -> list[float]:
        return list(self._volumes)
