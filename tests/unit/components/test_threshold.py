"""Tests for Threshold and the three threshold roles on a station."""

import pytest

from processflow.components.common import Part, Sink
from processflow.components.queue import Queue
from processflow.components.station import StationState
from processflow.components.stations import Server
from processflow.components.threshold import Threshold
from processflow.core.event import DEFAULT_PRIORITY
from processflow.core.simulation import Simulation
from processflow.core.temporal import Instant
from processflow.errors import ConfigurationError


def _at(sim: Simulation, t: float, fn) -> None:
    sim.schedule_at(Instant.from_seconds(t), DEFAULT_PRIORITY, fn)


class _Listener:
    def __init__(self):
        self.name = "listener"
        self.seen = []

    def threshold_changed(self, threshold):
        self.seen.append(threshold.is_open)


class TestThreshold:
    def test_notifies_on_each_transition(self):
        threshold = Threshold("signal")
        sim = Simulation([threshold], duration=10.0)
        sim.initialize()
        listener = _Listener()
        threshold.register_user(listener)
        threshold.close()
        threshold.close()
        threshold.open()

        assert listener.seen == [False, True]
        assert threshold.stats.close_count == 1
        assert threshold.stats.open_count == 1

    def test_schedule_windows(self):
        threshold = Threshold("signal", initially_open=False, schedule=[(2.0, 5.0)])
        sim = Simulation([threshold], duration=10.0)
        sim.run()

        stats = threshold.stats
        assert stats.open_time_s == pytest.approx(3.0)
        assert stats.closed_time_s == pytest.approx(7.0)
        assert stats.open_fraction == pytest.approx(0.3)
        assert not stats.is_open

    def test_rejects_inverted_window(self):
        threshold = Threshold("signal", schedule=[(5.0, 2.0)])
        with pytest.raises(ConfigurationError):
            Simulation([threshold], duration=1.0).run()


def _server_with(**thresholds):
    sink = Sink()
    queue = Queue("queue")
    server = Server("server", wait_queue=queue, service_time=4.0, next_component=sink,
                    **thresholds)
    extras = [t for group in thresholds.values() for t in group]
    sim = Simulation([*extras, queue, server, sink], duration=20.0)
    sim.initialize()
    return sim, server, sink


class TestThresholdRoles:
    def test_operating_threshold_lets_task_finish(self):
        signal = Threshold("signal")
        sim, server, sink = _server_with(operating_thresholds=[signal])
        server.add_entity(Part("A"))
        server.add_entity(Part("B"))
        _at(sim, 1.0, signal.close)
        _at(sim, 10.0, signal.open)
        sim.run()

        assert sink.arrival_times_s() == [4.0, 14.0]
        assert server.time_in_state(StationState.CLEARING_WHILE_STOPPED) == pytest.approx(3.0)
        assert server.time_in_state(StationState.STOPPED) == pytest.approx(6.0)

    def test_immediate_threshold_interrupts(self):
        signal = Threshold("signal")
        sim, server, sink = _server_with(immediate_thresholds=[signal])
        server.add_entity(Part("A"))
        _at(sim, 1.0, signal.close)
        _at(sim, 10.0, signal.open)
        sim.run()

        assert sink.arrival_times_s() == [13.0]
        assert server.interrupted is False
        assert server.stop_time == Instant.from_seconds(1.0)

    def test_immediate_release_completes_at_once(self):
        signal = Threshold("signal")
        sim, server, sink = _server_with(immediate_release_thresholds=[signal])
        server.add_entity(Part("A"))
        server.add_entity(Part("B"))
        _at(sim, 1.0, signal.close)
        sim.run()

        assert sink.arrival_times_s() == [1.0, 5.0]
        assert server.tasks_completed == 2
