"""
Tests for the simulation orchestrator: validation, run control and the
reference tissue scenarios.
"""
from dataclasses import replace

import numpy as np
import pytest

from cardiac_tissue import (
    ConductionBlock, ConfigurationError, FibrosisSpec, FitzHughNagumoParams, GradientSpec,
    MitchellSchaefferParams, NumericalInstabilityError, ObstacleSpec,
    PairedProtocol, PlanarWave, Results, RunStatus, SimulationConfig,
    StimulusSpec, TissueDimensions, TissueSimulation, run_simulation,
)


@pytest.fixture
def planar_config(small_config):
    return replace(small_config, stimuli=(PlanarWave(start=1.0, duration=1.0, width=3),))


class TestValidation:
    def test_nonpositive_dt(self, small_config):
        with pytest.raises(ConfigurationError):
            TissueSimulation(replace(small_config, model=MitchellSchaefferParams(dt=0.0)))

    @pytest.mark.parametrize("rows,cols", [(0, 10), (10, -2)])
    def test_empty_grid(self, small_config, rows, cols):
        tissue = TissueDimensions(rows=rows, cols=cols)
        with pytest.raises(ConfigurationError):
            TissueSimulation(replace(small_config, tissue=tissue))

    def test_nonpositive_duration(self, small_config):
        with pytest.raises(ConfigurationError):
            TissueSimulation(replace(small_config, duration=0.0))

    def test_stability_bound(self, small_config):
        config = replace(
            small_config,
            model=MitchellSchaefferParams(dt=0.05),
            tissue=TissueDimensions(rows=10, cols=10, diffusion=10.0),
        )
        with pytest.raises(ConfigurationError, match="D\\*dt/dx\\^2"):
            TissueSimulation(config)

    def test_stability_bound_is_inclusive(self, small_config):
        config = replace(
            small_config,
            model=MitchellSchaefferParams(dt=0.25),
            tissue=TissueDimensions(rows=4, cols=4, diffusion=1.0),
        )
        config.validate()

    def test_bad_density(self, small_config):
        with pytest.raises(ConfigurationError):
            TissueSimulation(replace(small_config, fibrosis=FibrosisSpec("diffuse", density=1.2)))

    def test_gradient_parameter_must_exist(self, small_config):
        gradient = GradientSpec(enabled=True, parameter="epsilon")
        with pytest.raises(ConfigurationError):
            TissueSimulation(replace(small_config, gradient=gradient))

    def test_empty_stimulus_rectangle(self, small_config):
        stim = PairedProtocol(StimulusSpec(width=0))
        with pytest.raises(ConfigurationError):
            TissueSimulation(replace(small_config, stimuli=(stim,)))

    def test_configuration_error_is_value_error(self, small_config):
        with pytest.raises(ValueError):
            TissueSimulation(replace(small_config, duration=-1.0))


class TestRunSchedule:
    def test_long_run_raises_dt(self):
        config = SimulationConfig(model=MitchellSchaefferParams(dt=0.01), duration=1200.0)
        assert config.effective_dt() == 0.05
        sim = TissueSimulation(config)
        assert sim.dt == 0.05
        assert sim.params.dt == 0.05

    def test_policy_can_be_disabled(self):
        config = SimulationConfig(duration=1200.0, performance_policy=False)
        assert config.effective_dt() == config.model.dt
        assert config.bookkeeping_stride(config.model.dt) == 1

    def test_larger_dt_is_kept(self):
        config = SimulationConfig(model=MitchellSchaefferParams(dt=0.1), duration=1200.0)
        assert config.effective_dt() == 0.1

    def test_sparse_bookkeeping(self):
        config = SimulationConfig(duration=600.0, save_interval=1.0)
        assert config.bookkeeping_stride(0.01) == 50
        assert replace(config, duration=500.0).bookkeeping_stride(0.01) == 1

    def test_step_counts(self):
        config = SimulationConfig(duration=100.0, save_interval=1.0)
        assert config.num_steps(0.01) == 10000
        assert config.save_every(0.01) == 100
        assert config.save_every(5.0) == 1


class TestRunControl:
    def test_results_are_read_only(self, planar_config):
        results = run_simulation(planar_config)
        assert isinstance(results, Results)
        assert results.status is RunStatus.COMPLETED
        assert results.complete
        for array in (results.activation_times, results.apd, results.activation_counts):
            with pytest.raises(ValueError):
                array[0, 0] = 5

    def test_run_only_once(self, planar_config):
        sim = TissueSimulation(planar_config)
        sim.run()
        with pytest.raises(RuntimeError):
            sim.run()

    def test_progress(self, planar_config):
        values = []
        run_simulation(planar_config, progress=values.append)
        assert values[-1] == 100
        assert values.count(100) == 1
        assert all(b > a for a, b in zip(values, values[1:]))

    def test_cancel_immediately(self, planar_config):
        values = []
        results = run_simulation(planar_config, progress=values.append, should_stop=lambda: True)
        assert results.status is RunStatus.CANCELLED
        assert not results.complete
        assert len(results.snapshots) == 1
        assert not results.reentry_detected
        assert 100 not in values

    def test_cancel_midway(self, planar_config):
        calls = []

        def should_stop():
            calls.append(1)
            return len(calls) > 2

        results = run_simulation(replace(planar_config, cancel_check_every=100), should_stop=should_stop)
        assert results.status is RunStatus.CANCELLED
        # stopped at step 200 of 500; snapshots every 50 steps
        assert len(results.snapshots) == 5
        assert results.snapshots[-1].time == pytest.approx(4.0)

    def test_numerical_instability(self):
        config = SimulationConfig(
            model=FitzHughNagumoParams(dt=1.0),
            tissue=TissueDimensions(rows=10, cols=10, diffusion=0.1),
            stimuli=(PlanarWave(start=0.0, duration=1.0, amplitude=10.0),),
            duration=10.0,
        )
        with pytest.raises(NumericalInstabilityError) as excinfo:
            run_simulation(config)
        err = excinfo.value
        assert err.partial_results is not None
        assert err.partial_results.status is RunStatus.FAILED
        assert not err.partial_results.complete
        assert err.step >= 1

    def test_deterministic(self, planar_config):
        config = replace(planar_config, fibrosis=FibrosisSpec("diffuse", density=0.2, seed=9))
        a, b = run_simulation(config), run_simulation(config)
        np.testing.assert_array_equal(a.activation_times, b.activation_times)
        np.testing.assert_array_equal(a.inert_mask, b.inert_mask)
        assert len(a.snapshots) == len(b.snapshots)
        for sa, sb in zip(a.snapshots, b.snapshots):
            np.testing.assert_array_equal(sa.v, sb.v)

    def test_fibrotic_cells_stay_at_zero(self, planar_config):
        config = replace(planar_config, fibrosis=FibrosisSpec("diffuse", density=0.3, seed=4))
        results = run_simulation(config)
        mask = results.inert_mask
        assert mask.any()
        for snap in results.snapshots:
            assert np.all(snap.v[mask] == 0.0)
            assert np.all(snap.gate[mask] == 0.0)
        assert np.all(results.activation_times[mask] == -1.0)

    def test_obstacle_is_inert(self, planar_config):
        config = replace(planar_config, obstacle=ObstacleSpec(enabled=True, center_row=6, center_col=8, radius=2))
        results = run_simulation(config)
        assert results.inert_mask[6, 8]
        assert results.snapshots[-1].v[6, 8] == 0.0

    def test_stimulus_over_obstacle_does_not_leak(self, planar_config):
        # the obstacle covers exactly the two stimulated columns
        config = replace(
            planar_config,
            tissue=TissueDimensions(rows=3, cols=8, diffusion=1.0),
            stimuli=(PlanarWave(start=1.0, duration=1.0, width=2),),
            obstacle=ObstacleSpec(enabled=True, center_row=1, center_col=0, radius=1.9),
            duration=5.0,
        )
        results = run_simulation(config)
        assert results.inert_mask[:, :2].all()
        assert not results.inert_mask[:, 2:].any()
        for snapshot in results.snapshots:
            assert np.all(snapshot.v == 0.0)
        assert results.activation_counts.max() == 0

    def test_trace_and_dict(self, planar_config):
        results = run_simulation(planar_config)
        trace = results.trace_at(0, 0)
        assert len(trace) == len(results.snapshots)
        assert trace.v.max() > 0.9
        payload = results.to_dict()
        assert payload["status"] == "completed"
        assert len(payload["snapshots"]) == len(results.snapshots)
        assert payload["reentry_detected"] is False
        assert payload["inert_mask"] == results.inert_mask.tolist()
        assert len(payload["inert_mask"]) == planar_config.tissue.rows


class TestScenarios:
    def test_planar_wave(self):
        config = SimulationConfig(
            model=MitchellSchaefferParams(dt=0.01),
            tissue=TissueDimensions(rows=50, cols=50, diffusion=1.0),
            stimuli=(PlanarWave(start=1.0, duration=1.0, width=5),),
            duration=100.0,
            save_interval=1.0,
        )
        results = run_simulation(config)
        assert len(results.snapshots) == 101
        assert results.snapshots[0].time == 0.0
        assert results.snapshots[-1].time == pytest.approx(100.0)
        assert np.all(results.activation_times > 0)
        assert np.all(results.activation_counts == 1)
        # wave travels left to right
        assert np.all(np.diff(results.activation_times[25, 5:]) >= 0)
        assert not results.reentry_detected

    def _s1s2(self, s2, coupling, duration):
        s1 = StimulusSpec(row=0, col=0, width=5, height=30, start=1.0, duration=1.0)
        protocol = PairedProtocol.with_coupling_interval(s1, s2, coupling)
        config = SimulationConfig(
            model=MitchellSchaefferParams(dt=0.02),
            tissue=TissueDimensions(rows=30, cols=30, diffusion=1.0),
            stimuli=(protocol,),
            duration=duration,
            save_interval=1.0,
        )
        return run_simulation(config)

    def test_s2_in_refractory_window(self):
        s2 = StimulusSpec(row=10, col=2, width=6, height=10, duration=1.0)
        results = self._s1s2(s2, coupling=10.0, duration=60.0)
        assert results.activation_counts.max() == 1
        assert np.all(results.activation_counts == 1)

    def test_s2_after_recovery(self):
        s2 = StimulusSpec(row=10, col=10, width=10, height=10, duration=1.0)
        results = self._s1s2(s2, coupling=300.0, duration=400.0)
        counts = results.activation_counts
        assert np.all(counts[10:20, 10:20] == 2)
        for r, c in [(0, 0), (0, 29), (29, 0), (29, 29)]:
            assert counts[r, c] == 2
        assert counts.max() <= 2
        assert not results.reentry_detected

    @pytest.mark.parametrize("coupling,expected", [(60.0, 1), (120.0, 1), (220.0, 2), (300.0, 2)])
    def test_coupling_interval_sweep(self, coupling, expected):
        # the patch repolarizes around t=150, so S2 takes only past that point
        s2 = StimulusSpec(row=10, col=10, width=10, height=10, duration=1.0)
        results = self._s1s2(s2, coupling=coupling, duration=coupling + 80.0)
        counts = results.activation_counts
        assert counts.max() == expected
        assert np.all(counts[10:20, 10:20] == expected)

    def test_sustained_reentry_around_obstacle(self):
        # S1 bar below the obstacle; the band to its right is held at rest so
        # the wave leaves leftwards only and returns from the right
        s1 = StimulusSpec(row=20, col=15, width=5, height=20, start=1.0, duration=1.0)
        band = StimulusSpec(row=20, col=20, width=3, height=20, start=0.0, duration=35.0)
        config = SimulationConfig(
            model=MitchellSchaefferParams(dt=0.05, tau_open=20.0, tau_close=10.0),
            tissue=TissueDimensions(rows=40, cols=40, diffusion=0.5),
            stimuli=(ConductionBlock(band), PairedProtocol(s1)),
            obstacle=ObstacleSpec(enabled=True, center_row=20, center_col=20, radius=10),
            duration=450.0,
            save_interval=1.0,
        )
        results = run_simulation(config)
        assert results.reentry_detected
        assert len(results.reentry.locations) > 0
        counts = results.activation_counts
        assert counts[35, 17] >= 3
        assert counts[35, 25] >= 2
        assert np.all(counts[results.inert_mask] == 0)
        assert np.any(results.snapshots[-1].v > 0.7)
