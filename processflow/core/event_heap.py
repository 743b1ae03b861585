import heapq

from processflow.core.event import Event


class EventHeap:
    def __init__(self, events: list[Event] | None = None):
        """Min-heap of Events. Events carry their own ordering, so they are
        pushed directly rather than as (time, event) tuples."""
        self._heap = list(events) if events else []
        heapq.heapify(self._heap)

    def push(self, event: Event) -> None:
        heapq.heappush(self._heap, event)

    def pop(self) -> Event:
        return heapq.heappop(self._heap)

    def peek(self) -> Event:
        return self._heap[0]

    def has_events(self) -> bool:
        return bool(self._heap)

    def size(self) -> int:
        return len(self._heap)

    def clear(self) -> None:
        self._heap.clear()
