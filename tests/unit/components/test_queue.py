"""Tests for Queue ordering, matching, reneging and statistics."""

import pytest

from processflow.components.common import Part, Sink
from processflow.components.queue import Queue
from processflow.core.event import DEFAULT_PRIORITY
from processflow.core.simulation import Simulation
from processflow.core.temporal import Instant
from processflow.errors import InternalConsistencyError


def _started(*entities, duration: float = 100.0) -> Simulation:
    sim = Simulation(list(entities), duration=duration)
    sim.initialize()
    return sim


def _at(sim: Simulation, t: float, fn) -> None:
    sim.schedule_at(Instant.from_seconds(t), DEFAULT_PRIORITY, fn)


class _CountingUser:
    def __init__(self):
        self.name = "user"
        self.calls = 0

    def queue_changed(self):
        self.calls += 1


class TestOrdering:
    def test_fifo_within_priority(self):
        queue = Queue("q")
        _started(queue)
        parts = [Part(f"p{i}") for i in range(3)]
        for part in parts:
            queue.add(part)
        assert queue.entities == parts
        assert queue.remove_first() is parts[0]

    def test_lifo(self):
        queue = Queue("q", fifo=False)
        _started(queue)
        a, b = Part("a"), Part("b")
        queue.add(a)
        queue.add(b)
        assert queue.get_first() is b

    def test_lower_priority_value_first(self):
        queue = Queue("q", priority=lambda part: part["rank"])
        _started(queue)
        for rank in (3, 1, 2):
            queue.add(Part(f"r{rank}", rank=rank))
        assert [p.name for p in queue.entities] == ["r1", "r2", "r3"]
        assert queue.priority_values == [1, 2, 3]
        assert queue.first_priority == 1

    def test_queue_position(self):
        queue = Queue("q")
        _started(queue)
        a, b = Part("a"), Part("b")
        queue.add(a)
        queue.add(b)
        assert queue.queue_position(b) == 1
        assert queue.queue_position(Part("c")) is None

    @pytest.mark.parametrize("fifo, expected", [(True, ["B", "C", "A"]), (False, ["A", "C", "B"])])
    def test_readded_entity_orders_by_its_new_arrival(self, fifo, expected):
        queue = Queue("q", fifo=fifo)
        _started(queue)
        a, b, c = Part("A"), Part("B"), Part("C")
        steps = [
            lambda: queue.add(a),
            lambda: queue.add(b),
            lambda: queue.remove_entity(a),
            lambda: queue.add(c),
            lambda: queue.add(a),
        ]
        for step in steps:
            step()
            assert queue.count == queue.number_added - queue.number_removed

        assert [p.name for p in queue.entities] == expected
        assert queue.number_added == 4
        assert queue.number_removed == 1


class TestRemoval:
    def test_remove_first_from_empty_queue_raises(self):
        queue = Queue("q")
        _started(queue)
        with pytest.raises(InternalConsistencyError):
            queue.remove_first()

    def test_remove_entity(self):
        queue = Queue("q")
        _started(queue)
        a, b = Part("a"), Part("b")
        queue.add(a)
        queue.add(b)
        assert queue.remove_entity(b) is b
        assert queue.entities == [a]
        with pytest.raises(InternalConsistencyError):
            queue.remove_entity(b)

    def test_state_assignment_restored_on_removal(self):
        queue = Queue("q", state_assignment="Waiting")
        _started(queue)
        part = Part("p")
        part.present_state = "Moving"
        queue.add(part)
        assert part.present_state == "Waiting"
        queue.remove_first()
        assert part.present_state == "Moving"


class TestMatching:
    def _queue(self) -> Queue:
        queue = Queue("q", match=lambda part: part["m"])
        _started(queue)
        for name, m in (("a", 7), ("b", 3), ("c", 7), ("d", 5)):
            queue.add(Part(name, m=m))
        return queue

    def test_match_counts(self):
        queue = self._queue()
        assert queue.get_match_count(7) == 2
        assert queue.get_match_count(None) == 4
        assert queue.get_match_count(99) == 0
        assert queue.match_value_count == 3

    def test_unique_match_values_follow_queue_order(self):
        assert self._queue().unique_match_values() == [7, 3, 5]

    def test_remove_first_for_match(self):
        queue = self._queue()
        assert queue.remove_first_for_match(3).name == "b"
        assert queue.remove_first_for_match(99) is None
        assert queue.remove_first_for_match(None).name == "a"

    def test_max_count_recomputed_after_removal(self):
        queue = self._queue()
        assert queue.get_max_count() == 2
        assert queue.get_match_for_max() == 7
        queue.remove_first_for_match(7)
        queue.remove_first_for_match(7)
        assert queue.get_max_count() == 1
        assert queue.get_match_for_max() == 3

    def test_max_count_without_matching_is_length(self):
        queue = Queue("plain")
        _started(queue)
        queue.add(Part("x"))
        queue.add(Part("y"))
        assert queue.get_max_count() == 2

    def test_select_match_value_across_queues(self):
        left = Queue("left", match=lambda part: part["m"])
        right = Queue("right", match=lambda part: part["m"])
        _started(left, right)
        for m in (1, 2, 3):
            left.add(Part(f"l{m}", m=m))
        right.add(Part("r3", m=3))
        right.add(Part("r2", m=2))
        assert Queue.select_match_value([left, right]) == 3
        assert Queue.sufficient_entities([left, right], [1], 3)
        assert not Queue.sufficient_entities([left, right], [1], 1)
        assert Queue.select_match_value([left, right], [1, 2]) is None


class TestNotification:
    def test_adds_at_one_instant_share_a_notification(self):
        queue = Queue("q")
        sim = _started(queue)
        user = _CountingUser()
        queue.register_user(user)
        queue.add(Part("a"))
        queue.add(Part("b"))
        _at(sim, 1.0, lambda: queue.add(Part("c")))
        sim.run()
        assert user.calls == 2


class TestRenege:
    def test_entity_reneges_to_destination(self):
        sink = Sink("balked")
        queue = Queue("q", renege_time=5.0, renege_destination=sink)
        sim = _started(queue, sink, duration=10.0)
        part = Part("p")
        queue.add(part)
        sim.run()
        assert queue.is_empty
        assert queue.number_reneged == 1
        assert sink.entities == [part]
        assert sink.arrival_times_s() == [5.0]

    def test_renege_condition_can_keep_entity(self):
        queue = Queue("q", renege_time=5.0, renege_condition=lambda q, e: q.count > 1)
        sim = _started(queue, duration=10.0)
        queue.add(Part("p"))
        sim.run()
        assert queue.count == 1
        assert queue.number_reneged == 0

    def test_removed_entity_does_not_renege(self):
        queue = Queue("q", renege_time=5.0)
        sim = _started(queue, duration=10.0)
        queue.add(Part("p"))
        _at(sim, 1.0, queue.remove_first)
        sim.run()
        assert queue.number_reneged == 0


class TestStatistics:
    def test_time_weighted_length(self):
        queue = Queue("q")
        sim = _started(queue, duration=10.0)
        queue.add(Part("a"))
        _at(sim, 2.0, lambda: queue.add(Part("b")))
        _at(sim, 4.0, queue.remove_first)
        sim.run()

        stats = queue.stats
        assert stats.length_distribution_s == pytest.approx((0.0, 8.0, 2.0))
        assert stats.average_length == pytest.approx(1.2)
        assert stats.max_length == 2
        assert stats.min_length == 0
        assert stats.number_added == 2
        assert stats.number_removed == 1
        assert stats.average_queue_time_s == pytest.approx(6.0)
        assert stats.length_fractions == pytest.approx((0.0, 0.8, 0.2))

    def test_pass_through_does_not_count_as_length_one(self):
        queue = Queue("q")
        sim = _started(queue, duration=5.0)
        _at(sim, 1.0, lambda: (queue.add(Part("a")), queue.remove_first()))
        sim.run()
        assert queue.max_length == 0

    def test_clear_statistics(self):
        queue = Queue("q")
        sim = _started(queue, duration=10.0)
        queue.add(Part("a"))
        _at(sim, 5.0, queue.clear_statistics)
        sim.run()
        assert queue.number_added == 0
        assert queue.average_length == pytest.approx(1.0)
        assert queue.min_length == 1
