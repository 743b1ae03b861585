"""A multi-station line: generator, seize, server, release, pack, sink.

Parts arrive every second. A crew of two is seized before the server and
released after it, so at most two parts are between seize and release. The
packed totes and the queue statistics are exported as CSV and charts.
"""

import csv
from pathlib import Path

import pytest

from processflow import (
    DowntimeEntity,
    EntityContainer,
    EntityGenerator,
    Pack,
    Queue,
    Release,
    Resource,
    Seize,
    Server,
    Simulation,
    Sink,
    StationState,
)


def _build_line(**server_kwargs):
    sink = Sink("shipping")
    crew = Resource("crew", capacity=2)
    pack_q = Queue("pack_q")
    pack = Pack("pack", wait_queue=pack_q, number_of_entities=3, service_time=0.0,
                next_component=sink)
    release = Release("release", resources=[crew], next_component=pack)
    work_q = Queue("work_q")
    server = Server("server", wait_queue=work_q, service_time=1.5, next_component=release,
                    **server_kwargs)
    seize_q = Queue("seize_q")
    seize = Seize("seize", wait_queue=seize_q, resources=[crew], next_component=server)
    source = EntityGenerator("source", next_component=seize, inter_arrival=1.0,
                             first_arrival=0.0, max_number=6)
    entities = [source, seize_q, seize, crew, work_q, server, release, pack_q, pack, sink]
    return entities, source, seize_q, crew, server, sink


class TestProcessFlow:
    def test_parts_flow_through_every_station(self):
        entities, source, seize_q, crew, server, sink = _build_line()
        summary = Simulation(entities, duration=20.0).run()

        assert source.number_generated == 6
        assert server.tasks_completed == 6
        assert sink.arrival_times_s() == pytest.approx([4.5, 9.0])
        assert all(isinstance(tote, EntityContainer) and tote.count == 3 for tote in sink.entities)
        assert crew.units_in_use == 0
        assert crew.stats.max_units_in_use == 2
        assert seize_q.stats.max_length >= 1
        assert summary.entities["server"].stats.utilisation == pytest.approx(9.0 / 20.0)

    def test_breakdown_delays_the_line(self):
        jam = DowntimeEntity("jam", interval=100.0, duration=2.0, first_downtime=2.0)
        entities, source, seize_q, crew, server, sink = _build_line(immediate_breakdown=[jam])
        Simulation([jam, *entities], duration=20.0).run()

        assert server.tasks_completed == 6
        assert sink.arrival_times_s() == pytest.approx([6.5, 11.0])
        assert server.time_in_state(StationState.BREAKDOWN) == pytest.approx(2.0)
        assert jam.number_completed == 1

    def test_warmup_clears_statistics(self):
        entities, source, seize_q, crew, server, sink = _build_line()
        Simulation(entities, duration=20.0, warmup=10.0).run()

        assert server.tasks_completed == 0
        assert server.total_time == pytest.approx(10.0)
        assert server.commitment == pytest.approx(0.0)

    def test_exports(self, test_output_dir: Path):
        matplotlib = pytest.importorskip("matplotlib")
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt

        from processflow.instrumentation.plot import (
            plot_queue_length_distribution,
            plot_state_times,
        )

        entities, source, seize_q, crew, server, sink = _build_line()
        summary = Simulation(entities, duration=20.0).run()

        frame = summary.to_dataframe()
        frame.drop(columns=["state_times_s", "length_distribution_s", "in_use_distribution_s"],
                   errors="ignore").to_csv(test_output_dir / "summary.csv")

        with open(test_output_dir / "shipments.csv", "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(["time_s", "tote", "count"])
            for t, tote in zip(sink.arrival_times_s(), sink.entities):
                writer.writerow([t, tote.name, tote.count])

        fig, (ax_queue, ax_state) = plt.subplots(nrows=2, ncols=1, figsize=(8, 7))
        plot_queue_length_distribution(summary.entities["work_q"].stats, ax=ax_queue,
                                       title="work_q length")
        plot_state_times(server.stats, ax=ax_state)
        fig.tight_layout()
        fig.savefig(test_output_dir / "line.png", dpi=100)
        plt.close(fig)

        assert (test_output_dir / "summary.csv").exists()
        assert (test_output_dir / "line.png").stat().st_size > 0
        assert frame.loc["server", "tasks_completed"] == 6
