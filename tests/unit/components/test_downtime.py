"""Tests for DowntimeEntity scheduling and the three downtime policies."""

import pytest

from processflow.components.common import Part, Sink
from processflow.components.downtime import DowntimeEntity, DowntimeState
from processflow.components.queue import Queue
from processflow.components.station import StationState
from processflow.components.stations import Server
from processflow.core.event import DEFAULT_PRIORITY
from processflow.core.simulation import Simulation
from processflow.core.temporal import Instant
from processflow.errors import ConfigurationError


def _at(sim: Simulation, t: float, fn) -> None:
    sim.schedule_at(Instant.from_seconds(t), DEFAULT_PRIORITY, fn)


def _model(down: DowntimeEntity, policy: str, service_time: float, duration: float):
    sink = Sink()
    queue = Queue("queue")
    server = Server("server", wait_queue=queue, service_time=service_time,
                    next_component=sink, **{policy: [down]})
    sim = Simulation([queue, server, sink, down], duration=duration)
    sim.initialize()
    return sim, queue, server, sink


class TestImmediate:
    def test_interrupts_and_resumes_with_remaining_time(self):
        down = DowntimeEntity("pm", interval=100.0, duration=10.0)
        sim, queue, server, sink = _model(down, "immediate_maintenance", 50.0, 150.0)
        _at(sim, 80.0, lambda: server.add_entity(Part("A")))
        seen = {}
        _at(sim, 105.0, lambda: seen.update(
            station=server.present_state, down=down.is_down, remaining=server.remaining_duration,
        ))
        sim.run()

        assert seen == {"station": StationState.MAINTENANCE, "down": True, "remaining": 30.0}
        assert sink.arrival_times_s() == [140.0]
        assert down.number_started == 1
        assert down.number_completed == 1
        assert down.last_start_time == Instant.from_seconds(100.0)
        assert down.last_end_time == Instant.from_seconds(110.0)
        assert server.time_in_state(StationState.MAINTENANCE) == pytest.approx(10.0)

    def test_breakdown_state(self):
        down = DowntimeEntity("failure", interval=10.0, duration=2.0)
        sim, queue, server, sink = _model(down, "immediate_breakdown", 1.0, 11.0)
        sim.run()
        assert server.present_state is StationState.BREAKDOWN
        assert server.is_breakdown
        assert not server.is_maintenance

    def test_first_downtime_and_recurrence(self):
        down = DowntimeEntity("pm", interval=10.0, duration=1.0, first_downtime=3.0)
        sim, queue, server, sink = _model(down, "immediate_maintenance", 1.0, 30.0)
        sim.run()
        assert down.number_started == 3
        assert down.start_delays == [0.0, 0.0, 0.0]
        assert down.next_start_time == Instant.from_seconds(33.0)
        assert down.availability == pytest.approx(27.0 / 30.0)
        assert down.time_in_state(DowntimeState.DOWNTIME) == pytest.approx(3.0)


class TestForced:
    def test_waits_for_current_task(self):
        down = DowntimeEntity("pm", interval=25.0, duration=3.0)
        sim, queue, server, sink = _model(down, "forced_maintenance", 10.0, 60.0)
        for name in "ABCDE":
            server.add_entity(Part(name))
        sim.run()

        assert sink.arrival_times_s() == [10.0, 20.0, 30.0, 43.0, 53.0]
        assert down.start_delays == [5.0, 3.0]
        assert down.number_completed == 2


class TestOpportunistic:
    def test_waits_for_empty_queue(self):
        down = DowntimeEntity("pm", interval=25.0, duration=3.0)
        sim, queue, server, sink = _model(down, "opportunistic_maintenance", 10.0, 40.0)
        for name in "ABC":
            server.add_entity(Part(name))
        seen = {}
        _at(sim, 26.0, lambda: seen.update(pending=down.downtimes_pending, down=down.is_down,
                                           since=down.pending_start_time))
        sim.run()

        assert seen == {"pending": 1, "down": False, "since": Instant.from_seconds(25.0)}
        assert down.last_start_time == Instant.from_seconds(30.0)
        assert down.start_delays == [5.0]
        assert sink.arrival_times_s() == [10.0, 20.0, 30.0]

    def test_deferred_downtime_ending_on_plan_is_not_late(self):
        down = DowntimeEntity("pm", interval=15.0, duration=5.0)
        sim, queue, server, sink = _model(down, "opportunistic_maintenance", 10.0, 40.0)
        for name in "ABC":
            server.add_entity(Part(name))
        sim.run()

        assert down.last_start_time == Instant.from_seconds(30.0)
        assert down.last_actual_end_time == Instant.from_seconds(35.0)
        assert down.number_late == 0
        assert down.total_lateness_s == 0.0


class TestBacklog:
    def test_full_backlog_drops_occurrences(self):
        down = DowntimeEntity("pm", interval=10.0, duration=1.0, max_downtimes_pending=1)
        sim, queue, server, sink = _model(down, "opportunistic_maintenance", 35.0, 45.0)
        server.add_entity(Part("A"))
        sim.run()

        assert down.number_dropped == 2
        assert down.number_started == 2
        assert down.start_delays == [25.0, 0.0]
        assert down.number_late == 0
        assert down.total_lateness_s == 0.0
        assert down.reliability == pytest.approx(1.0)

    def test_completion_time_limit_sets_target(self):
        down = DowntimeEntity("pm", interval=10.0, duration=1.0, max_downtimes_pending=1,
                              completion_time_limit=20.0)
        sim, queue, server, sink = _model(down, "opportunistic_maintenance", 35.0, 45.0)
        server.add_entity(Part("A"))
        sim.run()
        assert down.number_late == 1
        assert down.total_lateness_s == pytest.approx(6.0)
        assert down.stats.reliability == pytest.approx(0.5)

    def test_unbounded_backlog_by_default(self):
        down = DowntimeEntity("pm", interval=10.0, duration=1.0)
        sim, queue, server, sink = _model(down, "opportunistic_maintenance", 35.0, 34.0)
        server.add_entity(Part("A"))
        sim.run()
        assert down.downtimes_pending == 3
        assert down.number_dropped == 0


class TestWorkingTimeClock:
    def test_interval_counts_station_working_time(self):
        down = DowntimeEntity("pm", interval=20.0, duration=5.0)
        sink = Sink()
        queue = Queue("queue")
        server = Server("server", wait_queue=queue, service_time=15.0, next_component=sink,
                        immediate_maintenance=[down])
        down.interval_working_entity = server
        sim = Simulation([queue, server, sink, down], duration=60.0)
        sim.initialize()
        server.add_entity(Part("A"))
        _at(sim, 30.0, lambda: server.add_entity(Part("B")))
        sim.run()

        assert down.last_start_time == Instant.from_seconds(35.0)
        assert sink.arrival_times_s() == [15.0, 50.0]

    def test_next_start_unknown_while_clock_stopped(self):
        down = DowntimeEntity("pm", interval=20.0, duration=5.0)
        sink = Sink()
        queue = Queue("queue")
        server = Server("server", wait_queue=queue, service_time=5.0, next_component=sink,
                        immediate_maintenance=[down])
        down.interval_working_entity = server
        sim = Simulation([queue, server, sink, down], duration=10.0)
        sim.run()
        assert down.next_start_time == Instant.Infinity
        assert down.number_started == 0

    def test_stalled_duration_clock_makes_downtime_late(self):
        down = DowntimeEntity("pm", interval=100.0, duration=4.0, first_downtime=1.0)
        sink = Sink()
        queue = Queue("queue")
        server = Server("server", wait_queue=queue, service_time=1.0, next_component=sink,
                        immediate_maintenance=[down])
        press_queue = Queue("press_queue")
        press = Server("press", wait_queue=press_queue, service_time=3.0, next_component=sink)
        down.duration_working_entity = press
        sim = Simulation([queue, server, press_queue, press, sink, down], duration=20.0)
        sim.initialize()
        press.add_entity(Part("A"))
        _at(sim, 10.0, lambda: press.add_entity(Part("B")))
        sim.run()

        assert down.last_start_time == Instant.from_seconds(1.0)
        assert down.last_actual_end_time == Instant.from_seconds(12.0)
        assert down.number_late == 1
        assert down.total_lateness_s == pytest.approx(7.0)


class TestValidation:
    def test_interval_required(self):
        down = DowntimeEntity("pm", duration=1.0)
        with pytest.raises(ConfigurationError, match="interval"):
            Simulation([down], duration=1.0).run()

    def test_duration_required(self):
        down = DowntimeEntity("pm", interval=1.0)
        with pytest.raises(ConfigurationError, match="duration"):
            Simulation([down], duration=1.0).run()

    def test_working_entity_must_be_registered(self):
        server = Server("server", wait_queue=Queue("q"), service_time=1.0)
        down = DowntimeEntity("pm", interval=1.0, duration=1.0, interval_working_entity=server)
        with pytest.raises(ConfigurationError, match="not part of the simulation"):
            Simulation([down], duration=1.0).run()
