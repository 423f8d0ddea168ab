"""
mcmcbo
======

Fully-Bayesian surrogates for Bayesian optimization.

The hyperparameters of the surrogate model are not fixed at a point
estimate: a slice-sampling Markov chain draws a set of particles from their
posterior, one surrogate (and one acquisition criterion) is built per
particle, and the ensemble is presented to the optimizer as a single
surrogate / criterion.

----------------------------------------------------------------------
Workflow
----------------------------------------------------------------------

Core design
-----------
1. MCMCSampler (inference/mcmc_sampler.py):
   - Samples an arbitrary negative log density with coordinate-wise slice
     sampling (doubling step-out, shrinkage, bounded loops).
   - Randomized restart, burn-in, then one particle per sweep.

2. EnsemblePosterior (posterior/ensemble.py):
   - Owns the particles, one surrogate and one criterion per particle.
   - Averages criteria over members; predicts with the canonical member.
   - Rotates GP-Hedge portfolios in lock-step, feedback to the canonical
     member only.

3. Surrogates (model/):
   - GaussianProcess with RBF / Matern 5/2 kernels, constant mean and
     log-normal hyperparameter prior (HyperPrior).
   - negative_log_posterior(theta) is the sampler's target density.

4. Criteria (acquisition/):
   - ExpectedImprovement, ProbabilityOfImprovement, ConfidenceBound,
     LogExpectedImprovement, and the GPHedge portfolio.
   - optimize_acqf*: gradient (Optax), random and discrete search.

Unified import style
--------------------
Top-level:
  from mcmcbo import EnsemblePosterior, EnsembleConfig, MCMCSampler

Subpackages:
  from mcmcbo.model import GaussianProcess, HyperPrior, create_surrogate
  from mcmcbo.inference import MCMCSampler, MCMCAlgorithm, slice_sample
  from mcmcbo.posterior import EnsemblePosterior, effective_sample_size, rhat
  from mcmcbo.acquisition import GPHedge, create_criterion, optimize_acqf
  from mcmcbo.data import Observations

Data flow
---------
- Observations (mcmcbo.data) holds the evaluated (x, y) history, shared by
  every surrogate of an ensemble.
- update_hyper_parameters() samples
      -log p(theta | data) = -log p(y | X, theta) - log p(theta)
  and rebuilds every member on the drawn particles.
- The optimizer maximizes evaluate_criteria(X) and feeds the new
  observation back with add_sample() + update_surrogate_model().

----------------------------------------------------------------------
"""

import jax

# GP factorisations with small noise are unreliable in float32
jax.config.update("jax_enable_x64", True)

# Re-export subpackages for unified import style (e.g., mcmcbo.model, mcmcbo.inference)
from . import acquisition as acquisition  # noqa: E402
from . import data as data  # noqa: E402
from . import inference as inference  # noqa: E402
from . import model as model  # noqa: E402
from . import posterior as posterior  # noqa: E402
from . import utils as utils  # noqa: E402

# Acquisition
from .acquisition import GPHedge, create_criterion  # noqa: E402

# Data
from .data.dataset import Observations  # noqa: E402
from .errors import ConfigurationError, MemberFailure, StepFailure  # noqa: E402

# Inference
from .inference import MCMCAlgorithm, MCMCSampler  # noqa: E402

# Model
from .model import GaussianProcess, HyperPrior, create_surrogate  # noqa: E402

# Posterior
from .posterior import EnsembleConfig, EnsemblePosterior  # noqa: E402

__all__ = [
    # Core
    "MCMCSampler",
    "MCMCAlgorithm",
    "EnsemblePosterior",
    "EnsembleConfig",
    # Surrogates and criteria
    "GaussianProcess",
    "HyperPrior",
    "create_surrogate",
    "GPHedge",
    "create_criterion",
    # Data handling
    "Observations",
    # Errors
    "ConfigurationError",
    "StepFailure",
    "MemberFailure",
    # Subpackages
    "acquisition",
    "data",
    "inference",
    "model",
    "posterior",
    "utils",
]
