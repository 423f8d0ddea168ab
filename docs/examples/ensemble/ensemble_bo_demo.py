"""
Ensemble example: fully-Bayesian GP on a 1D objective, GP-Hedge acquisition
----------------------------------------------------------------------------

This script runs a few iterations of Bayesian optimization by hand:

1. Evaluate a synthetic objective at a handful of random points.
2. Sample GP hyperparameters with the slice sampler and build one
   (GP, GP-Hedge) member per particle.
3. Each iteration:
   - maximize every Hedge candidate (EI, PI, UCB) of the ensemble-averaged
     criterion, feeding each proposal back with set_next_criterium,
   - let the canonical member's Hedge bandit pick the proposal to evaluate,
   - append the observation and update every surrogate incrementally.
4. Plot the member predictions and the hyperparameter particles.

The ensemble averages the criterion over hyperparameter particles:
    a(x) = 1/N sum_i a(x; θ_i),   θ_i ~ p(θ | data)
which accounts for hyperparameter uncertainty that a single ML / MAP
estimate ignores.
"""

from __future__ import annotations

import os
import sys

import jax.numpy as jnp
import jax.random as jr
import matplotlib.pyplot as plt
import numpy as np

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../../../src")))
# --8<-- [start:imports]
from mcmcbo.acquisition import optimize_acqf
from mcmcbo.model import HyperPrior
from mcmcbo.posterior import EnsembleConfig, EnsemblePosterior, effective_sample_size

# --8<-- [end:imports]

# Where to save figures
PLOTS_DIR = os.path.join(os.path.dirname(__file__), "plots")

BOUNDS = jnp.array([[0.0, 1.0]])
N_INITIAL = 5
N_ITERATIONS = 8


def objective(x: np.ndarray) -> float:
    """Multimodal test function on [0, 1], maximum near x = 0.76."""
    x = float(np.asarray(x).reshape(-1)[0])
    return float(np.sin(12.0 * x) * x + 0.3 * np.cos(5.0 * x))


# ---------- 1) Initial design ----------
print("[1/4] Evaluating the initial design...")
rng = np.random.default_rng(0)
X_init = rng.uniform(0.0, 1.0, size=(N_INITIAL, 1))
y_init = np.array([objective(x) for x in X_init])

# ---------- 2) Ensemble ----------
print("[2/4] Sampling hyperparameters and building the ensemble...")
# --8<-- [start:ensemble]
config = EnsembleConfig(
    n_particles=10,
    n_burn_out=100,
    surrogate="gp",
    surrogate_params={
        "kernel": "matern52",
        "noise": 1e-4,
        # log lengthscale around log(0.2), log signal std around 0
        "prior": HyperPrior(mean=[np.log(0.2), 0.0], scale=[1.0, 1.0]),
    },
    criterion="hedge",
    criterion_params={"criteria": ("ei", "pi", "ucb"), "maximize": True},
)
ensemble = EnsemblePosterior(input_dim=1, config=config, key=jr.PRNGKey(0))
ensemble.set_samples(X_init, y_init)
ensemble.update_hyper_parameters()
# --8<-- [end:ensemble]
print("    Particles (log lengthscale, log signal std):")
print(np.round(ensemble.particles, 3))
print("    ESS per hyperparameter:", np.asarray(effective_sample_size(ensemble.particles)))

# ---------- 3) Optimization loop ----------
print(f"[3/4] Running {N_ITERATIONS} iterations...")
# --8<-- [start:loop]
key = jr.PRNGKey(1)
chosen: list[str] = []
for it in range(N_ITERATIONS):
    ensemble.set_first_criterium()
    wrapped = False
    while not wrapped:
        key, subkey = jr.split(key)
        X_next, _ = optimize_acqf(
            ensemble.evaluate_criteria,
            BOUNDS,
            q=1,
            method="random",
            raw_samples=500,
            key=subkey,
        )
        wrapped = ensemble.set_next_criterium(X_next[0])
    label, x_next = ensemble.get_best_criteria()
    y_next = objective(x_next)
    chosen.append(label)

    ensemble.add_sample(x_next, y_next)
    ensemble.update_surrogate_model()
    if (it + 1) % 4 == 0:
        ensemble.update_hyper_parameters()
# --8<-- [end:loop]
    print(f"    iter {it}: {label:>3s} proposed x={x_next[0]:.4f}, f(x)={y_next:.4f}")

X_all, y_all = ensemble.data.to_numpy()
best = int(np.argmax(y_all))
print(f"    Best observed: x={X_all[best, 0]:.4f}, f(x)={y_all[best]:.4f}")

# ---------- 4) Plot ----------
print("[4/4] Rendering member predictions and particles...")
grid = jnp.linspace(0.0, 1.0, 200)[:, None]
truth = np.array([objective(x) for x in np.asarray(grid)])

fig, (ax_f, ax_p) = plt.subplots(1, 2, figsize=(12, 5))
for i, member in enumerate(ensemble.members):
    pred = member.surrogate.predict(grid)
    ax_f.plot(grid[:, 0], pred.mean, color="#377eb8", lw=1.0, alpha=0.4,
              label="Member means" if i == 0 else None)
canonical = ensemble.get_prediction(grid)
std = np.sqrt(np.asarray(canonical.variance))
ax_f.fill_between(np.asarray(grid[:, 0]), canonical.mean - 2 * std, canonical.mean + 2 * std,
                  color="#377eb8", alpha=0.15, label="Canonical ±2σ")
ax_f.plot(grid[:, 0], truth, color="k", lw=1.5, ls="--", label="Objective")
ax_f.scatter(X_all[:, 0], y_all, c="#d95f02", s=25, zorder=5, label="Observations")
ax_f.set_xlabel("x")
ax_f.set_ylabel("f(x)")
ax_f.set_title(f"Ensemble of {ensemble.n_particles} GPs\nHedge choices: {', '.join(chosen)}")
ax_f.legend(loc="lower left", frameon=True, facecolor="white", edgecolor="gray")
ax_f.grid(True, alpha=0.3)

particles = ensemble.particles
ax_p.scatter(particles[:, 0], particles[:, 1], c="#4daf4a", s=30)
ax_p.set_xlabel("log lengthscale")
ax_p.set_ylabel("log signal std")
ax_p.set_title("Hyperparameter particles (slice sampling)")
ax_p.grid(True, alpha=0.3)
plt.tight_layout()

os.makedirs(PLOTS_DIR, exist_ok=True)
path = os.path.join(PLOTS_DIR, "ensemble_bo_demo.png")
fig.savefig(path, dpi=200, bbox_inches="tight")
print(f"    Saved plot to {path}")
plt.show()
