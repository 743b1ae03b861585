"""Tests for Seize and Release."""

import pytest

from processflow.components.common import Part, Sink
from processflow.components.queue import Queue
from processflow.components.resource import Resource
from processflow.components.seize import Release, Seize
from processflow.components.station import StationState
from processflow.core.event import DEFAULT_PRIORITY
from processflow.core.simulation import Simulation
from processflow.core.temporal import Instant
from processflow.distributions import Sequence
from processflow.errors import ConfigurationError


def _at(sim: Simulation, t: float, fn) -> None:
    sim.schedule_at(Instant.from_seconds(t), DEFAULT_PRIORITY, fn)


class TestSeize:
    def test_seizes_until_capacity_is_used(self):
        crew = Resource("crew", capacity=2)
        sink = Sink()
        queue = Queue("waiting")
        seize = Seize("seize", wait_queue=queue, resources=[crew], next_component=sink)
        release = Release("release", resources=[crew])
        sim = Simulation([crew, queue, seize, release, sink], duration=10.0)
        sim.initialize()
        for name in "ABC":
            seize.add_entity(Part(name))
        _at(sim, 5.0, lambda: release.add_entity(Part("token")))
        sim.run()

        assert [p.name for p in sink.entities] == ["A", "B", "C"]
        assert sink.arrival_times_s() == [0.0, 0.0, 5.0]
        assert crew.units_in_use == 2
        assert queue.is_empty

    def test_units_from_entity_expression(self):
        crew = Resource("crew", capacity=3)
        sink = Sink()
        queue = Queue("waiting")
        seize = Seize("seize", wait_queue=queue, resources=[crew],
                      number_of_units=lambda part: part["crew"], next_component=sink)
        sim = Simulation([crew, queue, seize, sink], duration=10.0)
        sim.initialize()
        seize.add_entity(Part("big", crew=2))
        seize.add_entity(Part("also_big", crew=2))
        sim.run()

        assert [p.name for p in sink.entities] == ["big"]
        assert crew.units_in_use == 2
        assert queue.count == 1

    def test_seizes_every_resource_at_once(self):
        crew = Resource("crew", capacity=1)
        tool = Resource("tool", capacity=2)
        sink = Sink()
        queue = Queue("waiting")
        seize = Seize("seize", wait_queue=queue, resources=[crew, tool],
                      number_of_units=[1, 2], next_component=sink)
        sim = Simulation([crew, tool, queue, seize, sink], duration=10.0)
        sim.initialize()
        seize.add_entity(Part("A"))
        sim.run()

        assert crew.units_in_use == 1
        assert tool.units_in_use == 2
        assert seize.required_resources() == [crew, tool]

    def test_head_entity_blocks_smaller_requests_behind_it(self):
        crew = Resource("crew", capacity=1)
        sink = Sink()
        queue = Queue("waiting")
        seize = Seize("seize", wait_queue=queue, resources=[crew],
                      number_of_units=lambda part: part["crew"], next_component=sink)
        sim = Simulation([crew, queue, seize, sink], duration=10.0)
        sim.initialize()
        seize.add_entity(Part("too_big", crew=2))
        seize.add_entity(Part("small", crew=1))
        sim.run()

        assert sink.count == 0
        assert seize.has_waiting_entity()
        assert seize.wait_time() == pytest.approx(10.0)

    def test_requires_resources(self):
        queue = Queue("waiting")
        seize = Seize("seize", wait_queue=queue, resources=[])
        with pytest.raises(ConfigurationError, match="resources"):
            Simulation([queue, seize], duration=1.0).run()

    def test_resource_must_be_registered(self):
        crew = Resource("crew")
        queue = Queue("waiting")
        seize = Seize("seize", wait_queue=queue, resources=[crew])
        with pytest.raises(ConfigurationError):
            Simulation([queue, seize], duration=1.0).run()

    def test_sampled_units_are_the_units_seized(self):
        crew = Resource("crew", capacity=1)
        sink = Sink()
        queue = Queue("waiting")
        seize = Seize("seize", wait_queue=queue, resources=[crew],
                      number_of_units=Sequence([1, 2]), next_component=sink)
        sim = Simulation([crew, queue, seize, sink], duration=10.0)
        sim.initialize()
        seize.add_entity(Part("A"))
        sim.run()

        assert sink.arrival_times_s() == [0.0]
        assert crew.units_in_use == 1

    def test_blocked_head_keeps_its_sampled_units(self):
        crew = Resource("crew", capacity=2)
        sink = Sink()
        queue = Queue("waiting")
        seize = Seize("seize", wait_queue=queue, resources=[crew],
                      number_of_units=Sequence([1, 2, 1]), next_component=sink)
        release = Release("release", resources=[crew])
        sim = Simulation([crew, queue, seize, release, sink], duration=10.0)
        sim.initialize()
        seize.add_entity(Part("A"))
        seize.add_entity(Part("B"))
        _at(sim, 5.0, lambda: release.add_entity(Part("token")))
        sim.run()

        assert sink.arrival_times_s() == [0.0, 5.0]
        assert crew.units_in_use == 2

    def test_seize_is_never_working(self):
        crew = Resource("crew", capacity=1)
        sink = Sink()
        queue = Queue("waiting")
        seize = Seize("seize", wait_queue=queue, resources=[crew], next_component=sink)
        sim = Simulation([crew, queue, seize, sink], duration=10.0)
        sim.initialize()
        seize.add_entity(Part("A"))
        sim.run()

        assert seize.present_state is StationState.IDLE
        assert seize.utilisation == 0.0
        assert crew.utilisation == pytest.approx(1.0)


class TestRelease:
    def test_release_is_clamped_to_units_in_use(self):
        crew = Resource("crew", capacity=2)
        sink = Sink()
        queue = Queue("waiting")
        seize = Seize("seize", wait_queue=queue, resources=[crew], next_component=sink)
        release = Release("release", resources=[crew], number_of_units=5)
        sim = Simulation([crew, queue, seize, release, sink], duration=10.0)
        sim.initialize()
        seize.add_entity(Part("A"))
        _at(sim, 1.0, lambda: release.add_entity(Part("token")))
        sim.run()

        assert crew.units_in_use == 0
        assert crew.units_released == 1

    def test_wakes_waiters_of_each_resource(self):
        crew = Resource("crew", capacity=1)
        sink_a, sink_b = Sink("a_out"), Sink("b_out")
        queue_a, queue_b = Queue("wait_a"), Queue("wait_b")
        seize_a = Seize("seize_a", wait_queue=queue_a, resources=[crew], next_component=sink_a)
        seize_b = Seize("seize_b", wait_queue=queue_b, resources=[crew], next_component=sink_b)
        release = Release("release", resources=[crew])
        sim = Simulation(
            [crew, queue_a, queue_b, seize_a, seize_b, release, sink_a, sink_b], duration=10.0
        )
        sim.initialize()
        seize_a.add_entity(Part("first"))
        _at(sim, 1.0, lambda: seize_b.add_entity(Part("b1")))
        _at(sim, 2.0, lambda: seize_a.add_entity(Part("a2")))
        _at(sim, 3.0, lambda: release.add_entity(Part("token")))
        _at(sim, 4.0, lambda: release.add_entity(Part("token")))
        sim.run()

        assert sink_b.arrival_times_s() == [3.0]
        assert sink_a.arrival_times_s() == [0.0, 4.0]

    def test_forwards_entity(self):
        crew = Resource("crew")
        sink = Sink()
        queue = Queue("waiting")
        seize = Seize("seize", wait_queue=queue, resources=[crew])
        release = Release("release", resources=[crew], next_component=sink)
        sim = Simulation([crew, queue, seize, release, sink], duration=5.0)
        sim.initialize()
        _at(sim, 2.0, lambda: release.add_entity(Part("done")))
        sim.run()
        assert sink.arrival_times_s() == [2.0]
        assert release.number_processed == 1
