"""
test_ensemble.py
----------------

Tests for EnsemblePosterior: the fully-Bayesian surrogate built from MCMC
hyperparameter samples.

Coverage:
- Configuration validation
- Hyperparameter updates (particles, reproducibility, atomic rebuild)
- Surrogate fit / update and predictions
- Criterion averaging and the rotation protocol
- Member failures
"""

import copy

import jax
import jax.numpy as jnp
import jax.random as jr
import numpy as np
import pytest

from mcmcbo.acquisition import optimize_acqf_random
from mcmcbo.errors import ConfigurationError, MemberFailure
from mcmcbo.model import GaussianProcess
from mcmcbo.posterior import EnsembleConfig, EnsembleMember, EnsemblePosterior

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def small_config():
    """Few particles and short chains to keep tests fast."""
    return EnsembleConfig(n_particles=3, n_burn_out=5, sigma=1.0)


@pytest.fixture
def ensemble(small_config, training_data):
    X, y = training_data
    ens = EnsemblePosterior(2, small_config, key=jr.PRNGKey(0))
    ens.set_samples(X, y)
    ens.fit_surrogate_model()
    return ens


@pytest.fixture
def hedge_ensemble(training_data):
    X, y = training_data
    config = EnsembleConfig(
        n_particles=3,
        n_burn_out=5,
        sigma=1.0,
        criterion="hedge",
        criterion_params={"criteria": ("ei", "pi", "ucb")},
    )
    ens = EnsemblePosterior(2, config, key=jr.PRNGKey(1))
    ens.set_samples(X, y)
    ens.update_hyper_parameters()
    return ens


def _fail_fit_for(monkeypatch, should_fail):
    """Make GaussianProcess.fit raise LinAlgError whenever should_fail(gp) is true."""
    original = GaussianProcess.fit

    def fit(self):
        if should_fail(self):
            raise np.linalg.LinAlgError("injected failure")
        return original(self)

    monkeypatch.setattr(GaussianProcess, "fit", fit)


# ============================================================================
# Test configuration
# ============================================================================


class TestConfiguration:
    """EnsembleConfig and constructor validation."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"n_particles": 0},
            {"n_burn_out": -1},
            {"n_workers": 0},
            {"algorithm": "hmc"},
            {"surrogate": "random_forest"},
            {"criterion": "thompson"},
            {"sigma": 0.0},
            {"sigma": [1.0, -1.0, 1.0]},
        ],
    )
    def test_invalid_config(self, kwargs):
        with pytest.raises(ConfigurationError):
            EnsembleConfig(**kwargs)

    def test_invalid_input_dim(self, small_config):
        with pytest.raises(ConfigurationError):
            EnsemblePosterior(0, small_config)

    def test_initial_members_use_prior_mean(self, small_config):
        ens = EnsemblePosterior(2, small_config, key=0)

        assert ens.n_particles == 3
        assert ens.canonical is ens.members[0]
        assert all(isinstance(m, EnsembleMember) for m in ens.members)
        np.testing.assert_array_equal(ens.particles, np.zeros((3, 3)))

    def test_surrogates_share_observations(self, ensemble):
        for member in ensemble.members:
            assert member.surrogate.data is ensemble.data

    def test_surrogate_params_pass_through(self):
        config = EnsembleConfig(
            n_particles=2, n_burn_out=0, surrogate_params={"kernel": "matern52"}
        )
        ens = EnsemblePosterior(2, config, key=0)

        assert all(m.surrogate.kernel == "matern52" for m in ens.members)

    def test_copy_is_rejected(self, ensemble):
        with pytest.raises(TypeError):
            copy.copy(ensemble)
        with pytest.raises(TypeError):
            copy.deepcopy(ensemble)

    def test_member_is_frozen(self, ensemble):
        with pytest.raises(AttributeError):
            ensemble.canonical.particle = np.ones(3)
        assert not ensemble.canonical.particle.flags.writeable


# ============================================================================
# Test hyperparameter updates
# ============================================================================


class TestHyperParameters:
    """update_hyper_parameters() resamples and rebuilds every member."""

    def test_members_follow_sampler_particles(self, ensemble):
        ensemble.update_hyper_parameters()

        np.testing.assert_array_equal(ensemble.particles, ensemble.sampler.particles)
        for member in ensemble.members:
            np.testing.assert_array_equal(member.surrogate.hyperparameters, member.particle)

    def test_particles_move(self, ensemble):
        ensemble.update_hyper_parameters()

        assert not np.allclose(ensemble.particles, 0.0)
        assert np.all(np.isfinite(ensemble.particles))

    def test_same_seed_same_particles(self, small_config, training_data):
        X, y = training_data
        runs = []
        for _ in range(2):
            ens = EnsemblePosterior(2, small_config, key=jr.PRNGKey(42))
            ens.set_samples(X, y)
            ens.update_hyper_parameters()
            runs.append(ens.particles)

        np.testing.assert_array_equal(runs[0], runs[1])

    def test_different_seed_different_particles(self, small_config, training_data):
        X, y = training_data
        runs = []
        for seed in (1, 2):
            ens = EnsemblePosterior(2, small_config, key=seed)
            ens.set_samples(X, y)
            ens.update_hyper_parameters()
            runs.append(ens.particles)

        assert not np.array_equal(runs[0], runs[1])

    def test_failed_rebuild_keeps_previous_members(self, ensemble, monkeypatch):
        previous = ensemble.members
        calls = {"n": 0}

        def second_call(gp):
            calls["n"] += 1
            return calls["n"] == 2

        _fail_fit_for(monkeypatch, second_call)
        with pytest.raises(MemberFailure) as info:
            ensemble.update_hyper_parameters()

        assert info.value.index == 1
        assert info.value.operation == "update_hyper_parameters"
        assert isinstance(info.value.__cause__, np.linalg.LinAlgError)
        assert ensemble.members is previous

    def test_update_without_data_samples_prior(self, small_config):
        ens = EnsemblePosterior(2, small_config, key=0)
        ens.update_hyper_parameters()

        assert ens.particles.shape == (3, 3)
        assert np.all(np.isfinite(ens.particles))


# ============================================================================
# Test surrogates and predictions
# ============================================================================


class TestSurrogates:
    """fit_surrogate_model / update_surrogate_model / get_prediction."""

    def test_prediction_is_canonical(self, ensemble, query_points):
        ensemble.update_hyper_parameters()
        pred = ensemble.get_prediction(query_points)
        expected = ensemble.canonical.surrogate.predict(query_points)

        assert jnp.allclose(pred.mean, expected.mean)
        assert jnp.allclose(pred.variance, expected.variance)

    def test_update_matches_refit(self, small_config, training_data, query_points):
        X, y = training_data
        ens = EnsemblePosterior(2, small_config, key=0)
        ens.set_samples(X[:-1], y[:-1])
        ens.update_hyper_parameters()

        ens.add_sample(X[-1], y[-1])
        ens.update_surrogate_model()

        for member in ens.members:
            refit = GaussianProcess(2, ens.data, hyperparameters=member.particle).fit()
            a, b = member.surrogate.predict(query_points), refit.predict(query_points)
            assert jnp.allclose(a.mean, b.mean, atol=1e-6)
            assert jnp.allclose(a.variance, b.variance, atol=1e-6)

    def test_update_without_data_raises(self, small_config):
        ens = EnsemblePosterior(2, small_config, key=0)
        with pytest.raises(RuntimeError):
            ens.update_surrogate_model()

    def test_set_samples_replaces_history(self, ensemble, training_data):
        X, y = training_data
        ensemble.set_samples(X[:3], y[:3])

        assert len(ensemble.data) == 3
        assert all(len(m.surrogate.data) == 3 for m in ensemble.members)

    def test_update_after_set_samples_matches_refit(self, ensemble, query_points):
        rng = np.random.default_rng(5)
        X_new = rng.uniform(2.0, 3.0, size=(9, 2))
        y_new = np.sin(X_new[:, 0]) - X_new[:, 1]

        # one sample longer than the fitted history, but unrelated to it
        ensemble.set_samples(X_new, y_new)
        ensemble.update_surrogate_model()

        for member in ensemble.members:
            refit = GaussianProcess(2, ensemble.data, hyperparameters=member.particle).fit()
            a, b = member.surrogate.predict(query_points), refit.predict(query_points)
            assert jnp.allclose(a.mean, b.mean, atol=1e-6)
            assert jnp.allclose(a.variance, b.variance, atol=1e-6)

    def test_threaded_fit_matches_sequential(self, training_data, query_points):
        X, y = training_data
        preds = []
        for n_workers in (1, 3):
            config = EnsembleConfig(n_particles=3, n_burn_out=5, sigma=1.0, n_workers=n_workers)
            ens = EnsemblePosterior(2, config, key=jr.PRNGKey(7))
            ens.set_samples(X, y)
            ens.update_hyper_parameters()
            ens.fit_surrogate_model()
            preds.append([m.surrogate.predict(query_points).mean for m in ens.members])

        for a, b in zip(*preds):
            assert jnp.allclose(a, b)

    def test_threaded_failure_reports_lowest_index(self, training_data, monkeypatch):
        X, y = training_data
        config = EnsembleConfig(n_particles=4, n_burn_out=0, n_workers=3)
        ens = EnsemblePosterior(2, config, key=0)
        ens.set_samples(X, y)
        bad = (ens.members[1].surrogate, ens.members[3].surrogate)

        _fail_fit_for(monkeypatch, lambda gp: any(gp is s for s in bad))
        with pytest.raises(MemberFailure) as info:
            ens.fit_surrogate_model()

        assert info.value.index == 1
        assert info.value.operation == "fit_surrogate_model"


# ============================================================================
# Test criteria
# ============================================================================


class TestCriteria:
    """evaluate_criteria averages members; rotation pushes to canonical only."""

    def test_identical_members_match_single_criterion(self, ensemble, query_points):
        # before any hyperparameter update all members share the prior mean
        averaged = ensemble.evaluate_criteria(query_points)
        single = ensemble.canonical.criterion.evaluate(query_points)

        assert averaged.shape == (3,)
        assert jnp.allclose(averaged, single)

    def test_average_of_members(self, ensemble, query_points):
        ensemble.update_hyper_parameters()
        expected = jnp.mean(
            jnp.stack([m.criterion.evaluate(query_points) for m in ensemble.members]), axis=0
        )

        assert jnp.allclose(ensemble(query_points), expected)

    def test_single_point_returns_scalar(self, ensemble):
        assert ensemble.evaluate_criteria(jnp.array([0.5, 0.5])).shape == ()

    def test_differentiable(self, ensemble, query_points):
        ensemble.update_hyper_parameters()
        grad = jax.grad(lambda X: jnp.sum(ensemble.evaluate_criteria(X)))(query_points)

        assert grad.shape == query_points.shape
        assert jnp.all(jnp.isfinite(grad))

    def test_optimize_ensemble_criterion(self, ensemble):
        ensemble.update_hyper_parameters()
        bounds = jnp.array([[0.0, 1.0], [0.0, 1.0]])
        X_next, value = optimize_acqf_random(
            ensemble.evaluate_criteria, bounds, q=1, num_samples=200, key=jr.PRNGKey(0)
        )

        assert X_next.shape == (1, 2)
        assert jnp.all((X_next >= 0.0) & (X_next <= 1.0))
        assert jnp.isfinite(value[0])

    def test_requires_comparison_follows_criterion(self, ensemble, hedge_ensemble):
        assert not ensemble.criteria_requires_comparison()
        assert hedge_ensemble.criteria_requires_comparison()

    def test_single_strategy_rotation(self, ensemble):
        ensemble.set_first_criterium()

        assert ensemble.set_next_criterium([0.2, 0.3]) is True
        label, best = ensemble.get_best_criteria()
        assert label == "ei"
        np.testing.assert_array_equal(best, [0.2, 0.3])

    def test_hedge_rotation_wraps_after_all_candidates(self, hedge_ensemble):
        hedge_ensemble.set_first_criterium()
        proposals = [[0.1, 0.2], [0.5, 0.5], [0.9, 0.4]]
        flags = [hedge_ensemble.set_next_criterium(p) for p in proposals]

        assert flags == [False, False, True]
        assert all(m.criterion.index == 0 for m in hedge_ensemble.members)

    def test_feedback_reaches_canonical_only(self, hedge_ensemble):
        hedge_ensemble.set_first_criterium()
        for p in ([0.1, 0.2], [0.5, 0.5], [0.9, 0.4]):
            hedge_ensemble.set_next_criterium(p)

        label, _ = hedge_ensemble.get_best_criteria()
        assert label in ("ei", "pi", "ucb")
        for member in hedge_ensemble.members[1:]:
            with pytest.raises(RuntimeError):
                member.criterion.best_criterion()

    def test_feedback_uses_ensemble_average(self, hedge_ensemble):
        proposals = [np.array([0.1, 0.2]), np.array([0.5, 0.5]), np.array([0.9, 0.4])]
        hedge_ensemble.set_first_criterium()
        for p in proposals:
            hedge_ensemble.set_next_criterium(p)
        hedge_ensemble.get_best_criteria()

        expected = [
            np.mean([float(m.surrogate.predict(p).mean) for m in hedge_ensemble.members])
            for p in proposals
        ]
        np.testing.assert_allclose(hedge_ensemble.canonical.criterion.gains, expected)

    def test_best_criteria_fills_out(self, hedge_ensemble):
        hedge_ensemble.set_first_criterium()
        for p in ([0.1, 0.2], [0.5, 0.5], [0.9, 0.4]):
            hedge_ensemble.set_next_criterium(p)
        out = np.zeros(2)
        _, best = hedge_ensemble.get_best_criteria(out=out)

        np.testing.assert_array_equal(out, best)

    def test_best_criteria_before_round_raises(self, hedge_ensemble):
        hedge_ensemble.set_first_criterium()
        with pytest.raises(RuntimeError):
            hedge_ensemble.get_best_criteria()

    def test_next_criterium_checks_dimension(self, ensemble):
        with pytest.raises(ValueError):
            ensemble.set_next_criterium([0.1, 0.2, 0.3])


# ============================================================================
# Test member failures
# ============================================================================


class TestMemberFailure:
    def test_evaluate_failure_names_member(self, ensemble, query_points, monkeypatch):
        def broken(X):
            raise FloatingPointError("bad member")

        monkeypatch.setattr(ensemble.members[2].criterion, "evaluate", broken)
        with pytest.raises(MemberFailure) as info:
            ensemble.evaluate_criteria(query_points)

        assert info.value.index == 2
        assert info.value.operation == "evaluate_criteria"
        assert isinstance(info.value.cause, FloatingPointError)

    def test_next_criterium_failure_names_member(self, hedge_ensemble, monkeypatch):
        def broken(X):
            raise FloatingPointError("bad member")

        monkeypatch.setattr(hedge_ensemble.members[2].surrogate, "predict", broken)
        hedge_ensemble.set_first_criterium()
        with pytest.raises(MemberFailure) as info:
            hedge_ensemble.set_next_criterium([0.1, 0.2])

        assert info.value.index == 2
        assert info.value.operation == "set_next_criterium"
        assert isinstance(info.value.cause, FloatingPointError)
        # nothing was pushed to the canonical criterion
        assert hedge_ensemble.canonical.criterion.index == 0

    def test_construction_failure(self, small_config, monkeypatch):
        _fail_fit_for(monkeypatch, lambda gp: True)
        with pytest.raises(MemberFailure) as info:
            EnsemblePosterior(2, small_config, key=0)

        assert info.value.index == 0
        assert info.value.operation == "construction"
