# Copyright 2023 MIT Probabilistic Computing Project
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

import jax
import jax.numpy as jnp
import jax.scipy.stats as jss
import jax.tree_util as jtu
import numpy as np
import pytest

import soss
from soss import (
    IID,
    Bernoulli,
    Categorical,
    Dirac,
    Exponential,
    For,
    Gamma,
    Normal,
    Poisson,
    iid,
)


class TestDistributions:
    key = jax.random.PRNGKey(314159)

    def test_broadcast_parameters(self):
        d = Normal(jnp.zeros(3), 1.0)
        v = d.sample(self.key)
        assert v.shape == (3,)
        expected = jnp.sum(jss.norm.logpdf(v, 0.0, 1.0))
        assert d.logpdf(v) == pytest.approx(expected, 1e-5)

    def test_scores(self):
        assert Exponential(2.0).logpdf(0.5) == pytest.approx(np.log(2.0) - 1.0, 1e-5)
        assert Gamma(2.0, 1.0).logpdf(1.0) == pytest.approx(-1.0, 1e-5)
        assert Poisson(3.0).logpdf(2) == pytest.approx(
            2 * np.log(3.0) - 3.0 - np.log(2.0), 1e-5
        )
        assert Bernoulli(0.25).logpdf(True) == pytest.approx(np.log(0.25), 1e-5)
        assert Dirac(1.0).logpdf(2.0) == -jnp.inf

    def test_categorical(self):
        probs = jnp.array([0.2, 0.3, 0.5])
        d = Categorical(probs)
        assert d.logpdf(2) == pytest.approx(np.log(0.5), 1e-5)
        v = jnp.array([0, 2])
        assert d.logpdf(v) == pytest.approx(np.log(0.2) + np.log(0.5), 1e-5)

    def test_iid(self):
        d = iid((2, 3), Normal(0.0, 1.0))
        assert isinstance(d, IID)
        assert d.shape == (2, 3)
        v = d.sample(self.key)
        assert v.shape == (2, 3)
        expected = jnp.sum(jss.norm.logpdf(v))
        assert d.logpdf(v) == pytest.approx(expected, 1e-5)

    def test_iid_method(self):
        assert Normal(0.0, 1.0).iid(4).shape == (4,)

    def test_for_over_range(self):
        mu = jnp.arange(6.0)
        d = For(range(2, 5), lambda j: Normal(mu[j], 0.01))
        v = d.sample(self.key)
        np.testing.assert_allclose(v, jnp.array([2.0, 3.0, 4.0]), atol=0.1)

    def test_for_over_grid(self):
        d = For((2, 3), lambda i, j: Normal(10.0 * i + j, 0.01))
        v = d.sample(self.key)
        assert v.shape == (2, 3)
        np.testing.assert_allclose(v[1, 2], 12.0, atol=0.1)
        expected = jnp.sum(
            jss.norm.logpdf(v, 10.0 * jnp.arange(2)[:, None] + jnp.arange(3), 0.01)
        )
        assert d.logpdf(v) == pytest.approx(expected, 1e-4)

    def test_for_over_array(self):
        d = For(jnp.array([1.0, 2.0]), lambda s: Normal(0.0, s))
        v = jnp.array([0.5, 0.5])
        expected = jss.norm.logpdf(0.5, 0.0, 1.0) + jss.norm.logpdf(0.5, 0.0, 2.0)
        assert d.logpdf(v) == pytest.approx(expected, 1e-5)

    def test_weighted_sample(self):
        w, v = Normal(0.0, 1.0).weighted_sample(self.key, 0.5)
        assert v == 0.5
        assert w == pytest.approx(jss.norm.logpdf(0.5), 1e-5)

    def test_distributions_are_pytrees(self):
        d = Normal(1.0, 2.0)
        leaves = jtu.tree_leaves(d)
        assert leaves == [1.0, 2.0]
        doubled = jtu.tree_map(lambda v: 2 * v, d)
        assert isinstance(doubled, Normal)
        assert doubled.sigma == 4.0

    def test_distributions_under_jit(self):
        @jax.jit
        def score(mu):
            return Normal(mu, 1.0).logpdf(0.0)

        assert score(0.0) == pytest.approx(jss.norm.logpdf(0.0), 1e-5)

    def test_not_a_distribution(self):
        from soss.distributions.distribution import as_distribution

        with pytest.raises(soss.NotADistributionError) as info:
            as_distribution("x", 3.0)
        assert info.value.site == "x"
