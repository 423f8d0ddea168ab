"""
test_slice_sampler.py
---------------------

Tests for the slice-sampling MCMC engine.

Coverage:
- Particle bookkeeping and index contract
- Distributional correctness (Gaussian, uniform support)
- Non-finite densities, density exceptions, recovered step failures
- Configuration errors
- Reproducibility and in-place run semantics
"""

import copy
import logging

import jax.random as jr
import numpy as np
import pytest

from mcmcbo.errors import ConfigurationError
from mcmcbo.inference import MCMCAlgorithm, MCMCSampler, slice_sample

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def uniform_box():
    """Negative log density of U([-1, 2]) in every coordinate, +inf outside."""

    def density(x):
        x = np.asarray(x)
        if np.all((x >= -1.0) & (x <= 2.0)):
            return 0.0
        return np.inf

    return density


# ============================================================================
# Test particle bookkeeping
# ============================================================================


class TestParticles:
    """run() stores exactly n_particles particles."""

    @pytest.mark.parametrize("n_particles,n_burn_out", [(1, 0), (5, 3), (20, 10)])
    def test_particle_count(self, standard_normal, n_particles, n_burn_out):
        sampler = MCMCSampler(
            standard_normal, dim=2, key=jr.PRNGKey(0),
            n_particles=n_particles, n_burn_out=n_burn_out,
        )
        sampler.run(np.zeros(2))

        assert sampler.particles.shape == (n_particles, 2)
        for i in range(n_particles):
            assert sampler.get_particle(i).shape == (2,)
        with pytest.raises(IndexError):
            sampler.get_particle(n_particles)
        with pytest.raises(IndexError):
            sampler.get_particle(-1)

    def test_no_particles_before_run(self, standard_normal):
        sampler = MCMCSampler(standard_normal, dim=1, key=0)

        assert sampler.particles.shape == (0, 1)
        with pytest.raises(IndexError):
            sampler.get_particle(0)

    def test_particles_are_read_only(self, standard_normal):
        sampler = MCMCSampler(standard_normal, dim=2, key=0, n_particles=3, n_burn_out=2)
        sampler.run(np.zeros(2))

        with pytest.raises(ValueError):
            sampler.get_particle(0)[0] = 1.0
        with pytest.raises(ValueError):
            sampler.particles[0, 0] = 1.0

    def test_set_n_particles_takes_effect_next_run(self, standard_normal):
        sampler = MCMCSampler(standard_normal, dim=1, key=0, n_particles=3, n_burn_out=0)
        sampler.run(np.zeros(1))
        sampler.set_n_particles(7)
        sampler.run(np.zeros(1))

        assert sampler.particles.shape == (7, 1)
        sampler.get_particle(6)


# ============================================================================
# Test distributional correctness
# ============================================================================


class TestDistribution:
    """Particles follow the target density."""

    def test_standard_normal_moments(self, standard_normal):
        sampler = MCMCSampler(
            standard_normal, dim=1, key=jr.PRNGKey(0), n_particles=2000, n_burn_out=100
        )
        sampler.run(np.zeros(1))
        samples = sampler.particles[:, 0]

        assert abs(np.mean(samples)) < 0.1
        assert abs(np.var(samples) - 1.0) < 0.15

    def test_end_to_end_scenario(self, standard_normal, caplog):
        """N(0, 1), burn-in 100, 500 particles, step-out: no step failures."""
        caplog.set_level(logging.WARNING, logger="mcmcbo")
        sampler = MCMCSampler(
            standard_normal, dim=1, key=jr.PRNGKey(42),
            step_out=True, n_particles=500, n_burn_out=100,
        )
        sampler.run(np.zeros(1))

        assert sampler.diagnostics()["n_step_failures"] == 0
        assert not [r for r in caplog.records if "failed" in r.getMessage()]
        assert abs(np.mean(sampler.particles)) < 0.1

    def test_shifted_gaussian_without_step_out(self):
        """Fixed-width intervals still sample the right distribution."""

        def density(x):
            return 0.5 * float(np.sum((np.asarray(x) - 3.0) ** 2))

        sampler = MCMCSampler(
            density, dim=1, key=jr.PRNGKey(1),
            step_out=False, n_particles=2000, n_burn_out=100,
        )
        sampler.run(np.array([3.0]))

        assert abs(np.mean(sampler.particles) - 3.0) < 0.15

    def test_uniform_support(self, uniform_box):
        sampler = MCMCSampler(
            uniform_box, dim=2, key=jr.PRNGKey(3), n_particles=500, n_burn_out=20
        )
        sampler.run(np.array([0.5, 0.5]))
        particles = sampler.particles

        assert np.all(particles >= -1.0)
        assert np.all(particles <= 2.0)
        # covers the interval, not stuck near the start
        assert particles.min() < -0.5
        assert particles.max() > 1.5

    def test_nan_outside_support(self):
        """nan is treated like +inf: never accepted."""

        def density(x):
            return 0.0 if 0.0 <= float(x[0]) <= 1.0 else np.nan

        sampler = MCMCSampler(density, dim=1, key=jr.PRNGKey(5), n_particles=300, n_burn_out=10)
        sampler.run(np.array([0.5]))

        assert np.all((sampler.particles >= 0.0) & (sampler.particles <= 1.0))

    def test_ess_reported_per_dimension(self, standard_normal):
        sampler = MCMCSampler(standard_normal, dim=3, key=0, n_particles=200, n_burn_out=10)
        sampler.run(np.zeros(3))
        diag = sampler.diagnostics()

        assert diag["ess"].shape == (3,)
        assert np.all(diag["ess"] > 20)
        assert diag["n_density_evaluations"] > 0
        assert diag["n_particles"] == 200
        assert diag["n_burn_out"] == 10


# ============================================================================
# Test failure semantics
# ============================================================================


class TestFailures:
    """Non-finite values are rejections, exceptions are fatal, step failures recover."""

    def test_density_exception_propagates(self):
        calls = {"n": 0}

        def density(x):
            calls["n"] += 1
            if calls["n"] > 50:
                raise ValueError("objective crashed")
            return 0.5 * float(np.sum(np.asarray(x) ** 2))

        sampler = MCMCSampler(density, dim=2, key=0, n_particles=10, n_burn_out=10)
        with pytest.raises(ValueError, match="objective crashed"):
            sampler.run(np.zeros(2))

    def test_step_failure_is_recovered(self, caplog):
        """A slice that cannot be bracketed keeps the last valid point."""

        def flat(x):
            return 0.0 if np.all(np.abs(np.asarray(x)) < 1e6) else np.inf

        caplog.set_level(logging.WARNING, logger="mcmcbo")
        sampler = MCMCSampler(
            flat, dim=2, key=0, n_particles=4, n_burn_out=0, sigma=1.0, max_doublings=0
        )
        start = np.array([0.25, -0.5])
        sampler.run(start.copy())

        assert sampler.particles.shape == (4, 2)
        np.testing.assert_array_equal(sampler.particles, np.tile(start, (4, 1)))
        assert sampler.diagnostics()["n_step_failures"] == 4 * 2
        assert any("slice step failed" in r.getMessage() for r in caplog.records)


# ============================================================================
# Test configuration
# ============================================================================


class TestConfiguration:
    """Invalid configuration is rejected before sampling."""

    def test_zero_dimension(self, standard_normal):
        with pytest.raises(ConfigurationError):
            MCMCSampler(standard_normal, dim=0)

    def test_zero_particles(self, standard_normal):
        sampler = MCMCSampler(standard_normal, dim=1)
        with pytest.raises(ConfigurationError):
            sampler.set_n_particles(0)
        with pytest.raises(ConfigurationError):
            MCMCSampler(standard_normal, dim=1, n_particles=0)

    def test_negative_burn_in(self, standard_normal):
        sampler = MCMCSampler(standard_normal, dim=1)
        with pytest.raises(ConfigurationError):
            sampler.set_n_burn_out(-1)

    def test_algorithm_selection(self, standard_normal):
        sampler = MCMCSampler(standard_normal, dim=1)
        sampler.set_algorithm("slice")
        assert sampler.algorithm is MCMCAlgorithm.SLICE
        sampler.set_algorithm(MCMCAlgorithm.SLICE)
        assert sampler.algorithm is MCMCAlgorithm.SLICE
        with pytest.raises(ConfigurationError):
            sampler.set_algorithm("hamiltonian")

    @pytest.mark.parametrize("sigma", [0.0, -1.0, [1.0, 2.0, 3.0], [1.0, np.inf]])
    def test_invalid_sigma(self, standard_normal, sigma):
        with pytest.raises(ConfigurationError):
            MCMCSampler(standard_normal, dim=2, sigma=sigma)

    def test_per_dimension_sigma(self, standard_normal):
        sampler = MCMCSampler(standard_normal, dim=2, sigma=[0.5, 4.0])
        np.testing.assert_array_equal(sampler.sigma, [0.5, 4.0])

    def test_density_must_be_callable(self):
        with pytest.raises(TypeError):
            MCMCSampler(42, dim=1)

    def test_density_protocol_object(self):
        class Target:
            def evaluate(self, point):
                return 0.5 * float(np.sum(np.asarray(point) ** 2))

        sampler = MCMCSampler(Target(), dim=1, key=0, n_particles=5, n_burn_out=5)
        sampler.run(np.zeros(1))
        assert sampler.particles.shape == (5, 1)

    def test_cannot_copy(self, standard_normal):
        sampler = MCMCSampler(standard_normal, dim=1)
        with pytest.raises(TypeError):
            copy.copy(sampler)
        with pytest.raises(TypeError):
            copy.deepcopy(sampler)


# ============================================================================
# Test reproducibility and run semantics
# ============================================================================


class TestRun:
    """run() semantics and seeding."""

    def test_same_key_same_particles(self, standard_normal):
        particles = []
        for _ in range(2):
            sampler = MCMCSampler(
                standard_normal, dim=2, key=jr.PRNGKey(7), n_particles=20, n_burn_out=5
            )
            sampler.run(np.zeros(2))
            particles.append(sampler.particles)

        np.testing.assert_array_equal(particles[0], particles[1])

    def test_different_keys_differ(self, standard_normal):
        a = MCMCSampler(standard_normal, dim=2, key=1, n_particles=10, n_burn_out=5)
        b = MCMCSampler(standard_normal, dim=2, key=2, n_particles=10, n_burn_out=5)
        a.run(np.zeros(2))
        b.run(np.zeros(2))

        assert not np.array_equal(a.particles, b.particles)

    def test_consecutive_runs_advance_generator(self, standard_normal):
        sampler = MCMCSampler(standard_normal, dim=2, key=0, n_particles=10, n_burn_out=5)
        sampler.run(np.zeros(2))
        first = sampler.particles
        sampler.run(np.zeros(2))

        assert not np.array_equal(first, sampler.particles)

    def test_run_writes_final_position_in_place(self, standard_normal):
        sampler = MCMCSampler(standard_normal, dim=2, key=0, n_particles=5, n_burn_out=5)
        x = np.zeros(2)
        final = sampler.run(x)

        np.testing.assert_array_equal(x, final)
        np.testing.assert_array_equal(final, sampler.get_particle(4))

    def test_run_accepts_sequences(self, standard_normal):
        sampler = MCMCSampler(standard_normal, dim=2, key=0, n_particles=3, n_burn_out=1)
        final = sampler.run([0.0, 0.0])

        assert final.shape == (2,)

    def test_run_rejects_wrong_dimension(self, standard_normal):
        sampler = MCMCSampler(standard_normal, dim=2)
        with pytest.raises(ValueError):
            sampler.run(np.zeros(3))

    def test_evaluation_count_covers_last_run_only(self, standard_normal):
        calls = {"n": 0}

        def counted(x):
            calls["n"] += 1
            return standard_normal(x)

        sampler = MCMCSampler(counted, dim=2, key=0, n_particles=5, n_burn_out=5)
        sampler.run(np.zeros(2))
        first = sampler.diagnostics()["n_density_evaluations"]
        assert first == calls["n"]

        calls["n"] = 0
        sampler.run(np.zeros(2))

        assert sampler.diagnostics()["n_density_evaluations"] == calls["n"]

    def test_log_particles(self, standard_normal, caplog):
        caplog.set_level(logging.DEBUG, logger="mcmcbo.inference.mcmc_sampler")
        sampler = MCMCSampler(standard_normal, dim=1, key=0, n_particles=3, n_burn_out=2)
        sampler.run(np.zeros(1))
        values = sampler.log_particles()

        expected = [-standard_normal(p) for p in sampler.particles]
        np.testing.assert_allclose(values, expected)
        assert sum("particle" in r.getMessage() for r in caplog.records) == 3


# ============================================================================
# Test single sweep
# ============================================================================


class TestSliceSweep:
    """slice_sample() updates every coordinate once."""

    def test_sweep_does_not_modify_input(self, standard_normal):
        x = np.array([0.3, -0.2, 1.0])
        rng = np.random.default_rng(0)

        def log_density(p):
            return -standard_normal(p)

        new, n_failures = slice_sample(x, log_density, np.full(3, 2.0), rng)

        np.testing.assert_array_equal(x, [0.3, -0.2, 1.0])
        assert new.shape == (3,)
        assert n_failures == 0
        assert np.all(new != x)

    def test_sweep_stays_on_slice(self):
        """Every accepted value has log density above -inf."""
        rng = np.random.default_rng(1)

        def log_density(p):
            return 0.0 if np.all(np.abs(p) <= 1.0) else -np.inf

        x = np.zeros(2)
        for _ in range(100):
            x, _ = slice_sample(x, log_density, np.full(2, 5.0), rng)
            assert np.all(np.abs(x) <= 1.0)
