import numpy as np
import pytest

from cardiac_tissue import (
    BlockDetector, ConductionBlock, FibrosisPattern, PairedProtocol, PlanarWave,
    run_simulation,
)
from cardiac_tissue.app import (
    BLOCK_DURATION, COUPLING_INTERVAL, SCENARIOS, build_scenario, main, parse_args,
)


class TestBuildScenario:
    def test_unknown(self):
        with pytest.raises(ValueError):
            build_scenario("spiral")

    def test_planar(self):
        config = build_scenario("planar", rows=20, cols=30)
        (stim,) = config.stimuli
        assert isinstance(stim, PlanarWave)
        assert config.tissue.rows == 20
        assert config.tissue.cols == 30

    def test_s1s2_default_interval(self):
        (stim,) = build_scenario("s1s2").stimuli
        assert isinstance(stim, PairedProtocol)
        assert stim.coupling_interval == pytest.approx(COUPLING_INTERVAL)

    def test_block_has_obstacle(self):
        config = build_scenario("block", rows=40, cols=40)
        (stim,) = config.stimuli
        assert stim.coupling_interval is None
        assert config.obstacle.enabled
        assert (config.obstacle.center_row, config.obstacle.center_col) == (20, 20)
        assert config.obstacle.radius == 8

    def test_reentry_layout(self):
        config = build_scenario("reentry", rows=40, cols=40)
        band, s1 = config.stimuli
        assert isinstance(band, ConductionBlock)
        assert band.spec.duration == BLOCK_DURATION
        assert (band.spec.row, band.spec.col, band.spec.width) == (20, 20, 3)
        assert (s1.s1.spec.col, s1.s1.spec.width) == (15, 5)
        assert config.obstacle.radius == 10
        assert config.model.tau_close < build_scenario("planar").model.tau_close

    def test_coupling_override(self):
        (stim,) = build_scenario("s1s2", coupling_interval=120.0).stimuli
        assert stim.coupling_interval == pytest.approx(120.0)

    def test_fibrosis(self):
        config = build_scenario("fibrosis", seed=3)
        assert config.fibrosis.pattern is FibrosisPattern.PATCHY
        assert config.fibrosis.seed == 3

    @pytest.mark.parametrize("scenario", SCENARIOS)
    def test_all_valid(self, scenario):
        build_scenario(scenario).validate()


class TestCommandLine:
    def test_defaults(self):
        args = parse_args([])
        assert args.scenario == "planar"
        assert args.plots is None

    def test_main_writes_plots(self, tmp_path, capsys):
        main([
            "--rows", "12", "--cols", "12", "--duration", "5",
            "--dt", "0.02", "--plots", str(tmp_path),
        ])
        out = capsys.readouterr().out
        assert "Snapshots: 6" in out
        assert "progress: 100%" in out
        for name in ("lat_map.png", "apd_map.png", "final_snapshot.png"):
            assert (tmp_path / name).is_file()


class TestScenarioOutcomes:
    """Each preset shows the behaviour it is named after."""

    def test_planar(self):
        results = run_simulation(build_scenario("planar", rows=30, cols=30, duration=80, dt=0.05))
        assert not results.reentry_detected
        assert not results.block_detected

    def test_s1s2(self):
        results = run_simulation(build_scenario("s1s2", rows=30, cols=30, duration=360, dt=0.05))
        assert results.activation_counts.max() == 2
        assert not results.reentry_detected
        assert not results.block_detected

    def test_block(self):
        results = run_simulation(build_scenario("block", rows=40, cols=40, duration=100, dt=0.05))
        assert results.block_detected
        assert not results.reentry_detected
        # right of the obstacle: the neighbour behind it activates late, the inert one never
        assert results.activation_times[24, 28] > 19
        assert BlockDetector().gradient_mask(results.activation_times)[24, 27]

    def test_reentry(self):
        results = run_simulation(build_scenario("reentry", rows=40, cols=40, duration=400, dt=0.05))
        assert results.reentry_detected
        assert results.reentry.locations
        assert results.activation_counts.max() >= 3
        # still circulating long after the last stimulus
        assert np.any(results.snapshots[-1].v > 0.7)
