# Copyright 2022 MIT Probabilistic Computing Project
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Standard parametric distributions, implemented with `jax.random`
samplers and `jax.scipy` densities.

Parameters broadcast: the shape of a draw is the broadcast shape of the
parameters, and `logpdf` sums over it.
"""

from dataclasses import dataclass

import jax
import jax.numpy as jnp
import jax.scipy.special as jsp
import jax.scipy.stats as jss

from soss.core.typing import Any
from soss.distributions.distribution import Distribution

__all__ = [
    "Normal",
    "HalfNormal",
    "LogNormal",
    "Cauchy",
    "HalfCauchy",
    "StudentT",
    "Laplace",
    "Exponential",
    "Gamma",
    "Beta",
    "Uniform",
    "Bernoulli",
    "Binomial",
    "Poisson",
    "Categorical",
    "Dirichlet",
    "MvNormal",
    "Dirac",
]


def _shape(*params):
    return jnp.broadcast_shapes(*map(jnp.shape, params))


def _positive(v, logp):
    return jnp.where(v >= 0, logp, -jnp.inf)


#####
# Continuous
#####


@dataclass
class Normal(Distribution):
    mu: Any = 0.0
    sigma: Any = 1.0

    def sample(self, key):
        z = jax.random.normal(key, _shape(self.mu, self.sigma))
        return self.mu + self.sigma * z

    def logpdf(self, v):
        return jnp.sum(jss.norm.logpdf(v, self.mu, self.sigma))


@dataclass
class HalfNormal(Distribution):
    sigma: Any = 1.0

    def sample(self, key):
        return jnp.abs(self.sigma * jax.random.normal(key, jnp.shape(self.sigma)))

    def logpdf(self, v):
        logp = jnp.log(2.0) + jss.norm.logpdf(v, 0.0, self.sigma)
        return jnp.sum(_positive(v, logp))


@dataclass
class LogNormal(Distribution):
    mu: Any = 0.0
    sigma: Any = 1.0

    def sample(self, key):
        return jnp.exp(Normal(self.mu, self.sigma).sample(key))

    def logpdf(self, v):
        logp = jss.norm.logpdf(jnp.log(v), self.mu, self.sigma) - jnp.log(v)
        return jnp.sum(logp)


@dataclass
class Cauchy(Distribution):
    loc: Any = 0.0
    scale: Any = 1.0

    def sample(self, key):
        z = jax.random.cauchy(key, _shape(self.loc, self.scale))
        return self.loc + self.scale * z

    def logpdf(self, v):
        return jnp.sum(jss.cauchy.logpdf(v, self.loc, self.scale))


@dataclass
class HalfCauchy(Distribution):
    scale: Any = 1.0

    def sample(self, key):
        z = jax.random.cauchy(key, jnp.shape(self.scale))
        return jnp.abs(self.scale * z)

    def logpdf(self, v):
        logp = jnp.log(2.0) + jss.cauchy.logpdf(v, 0.0, self.scale)
        return jnp.sum(_positive(v, logp))


@dataclass
class StudentT(Distribution):
    df: Any
    loc: Any = 0.0
    scale: Any = 1.0

    def sample(self, key):
        z = jax.random.t(key, self.df, _shape(self.df, self.loc, self.scale))
        return self.loc + self.scale * z

    def logpdf(self, v):
        return jnp.sum(jss.t.logpdf(v, self.df, self.loc, self.scale))


@dataclass
class Laplace(Distribution):
    loc: Any = 0.0
    scale: Any = 1.0

    def sample(self, key):
        z = jax.random.laplace(key, _shape(self.loc, self.scale))
        return self.loc + self.scale * z

    def logpdf(self, v):
        return jnp.sum(jss.laplace.logpdf(v, self.loc, self.scale))


@dataclass
class Exponential(Distribution):
    rate: Any = 1.0

    def sample(self, key):
        return jax.random.exponential(key, jnp.shape(self.rate)) / self.rate

    def logpdf(self, v):
        return jnp.sum(jss.expon.logpdf(v, scale=1.0 / self.rate))


@dataclass
class Gamma(Distribution):
    """Gamma distribution with shape `concentration` and inverse scale
    `rate`."""

    concentration: Any
    rate: Any = 1.0

    def sample(self, key):
        shape = _shape(self.concentration, self.rate)
        return jax.random.gamma(key, self.concentration, shape) / self.rate

    def logpdf(self, v):
        logp = jss.gamma.logpdf(v, self.concentration, scale=1.0 / self.rate)
        return jnp.sum(logp)


@dataclass
class Beta(Distribution):
    a: Any
    b: Any

    def sample(self, key):
        return jax.random.beta(key, self.a, self.b, _shape(self.a, self.b))

    def logpdf(self, v):
        return jnp.sum(jss.beta.logpdf(v, self.a, self.b))


@dataclass
class Uniform(Distribution):
    low: Any = 0.0
    high: Any = 1.0

    def sample(self, key):
        shape = _shape(self.low, self.high)
        return jax.random.uniform(key, shape, minval=self.low, maxval=self.high)

    def logpdf(self, v):
        logp = jss.uniform.logpdf(v, loc=self.low, scale=self.high - self.low)
        return jnp.sum(logp)


@dataclass
class Dirichlet(Distribution):
    alpha: Any

    def sample(self, key):
        return jax.random.dirichlet(key, self.alpha)

    def logpdf(self, v):
        return jnp.sum(jss.dirichlet.logpdf(v, self.alpha))


@dataclass
class MvNormal(Distribution):
    mean: Any
    cov: Any

    def sample(self, key):
        return jax.random.multivariate_normal(key, self.mean, self.cov)

    def logpdf(self, v):
        return jnp.sum(jss.multivariate_normal.logpdf(v, self.mean, self.cov))


#####
# Discrete
#####


@dataclass
class Bernoulli(Distribution):
    p: Any = 0.5

    def sample(self, key):
        return jax.random.bernoulli(key, self.p, jnp.shape(self.p))

    def logpdf(self, v):
        v = jnp.asarray(v, dtype=jnp.result_type(float))
        logp = jsp.xlogy(v, self.p) + jsp.xlog1py(1.0 - v, -self.p)
        return jnp.sum(logp)


@dataclass
class Binomial(Distribution):
    n: Any
    p: Any

    def sample(self, key):
        return jax.random.binomial(key, self.n, self.p, _shape(self.n, self.p))

    def logpdf(self, v):
        log_choose = (
            jsp.gammaln(self.n + 1.0)
            - jsp.gammaln(v + 1.0)
            - jsp.gammaln(self.n - v + 1.0)
        )
        logp = log_choose + jsp.xlogy(v, self.p) + jsp.xlog1py(self.n - v, -self.p)
        return jnp.sum(logp)


@dataclass
class Poisson(Distribution):
    rate: Any

    def sample(self, key):
        return jax.random.poisson(key, self.rate, jnp.shape(self.rate))

    def logpdf(self, v):
        return jnp.sum(jss.poisson.logpmf(v, self.rate))


@dataclass
class Categorical(Distribution):
    """Categorical distribution over `0, ..., k - 1`; `probs` has the
    categories along its last axis."""

    probs: Any

    def sample(self, key):
        return jax.random.categorical(key, jnp.log(self.probs))

    def logpdf(self, v):
        v = jnp.asarray(v)
        logp = jnp.log(self.probs)
        logp = jnp.broadcast_to(logp, v.shape + logp.shape[-1:])
        picked = jnp.take_along_axis(logp, v[..., None], axis=-1)
        return jnp.sum(picked)


@dataclass
class Dirac(Distribution):
    """A point mass at `value`."""

    value: Any

    def sample(self, key):
        return self.value

    def logpdf(self, v):
        return jnp.sum(jnp.where(v == self.value, 0.0, -jnp.inf))
