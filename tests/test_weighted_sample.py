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
import numpy as np
import pytest

import soss
from soss import For, Normal, Record


@soss.model
def linear(x, n):
    a <~ Normal(0.0, 1.0)
    b <~ Normal(0.0, 1.0)
    yhat = a * x + b
    y <~ For(n, lambda j: Normal(yhat[j], 1.0))


@soss.model
def inner(mu):
    z <~ Normal(mu, 1.0)


@soss.model
def outer():
    mu <~ Normal(0.0, 1.0)
    w <~ inner(mu)
    v <~ Normal(mu, 1.0)


class TestWeightedSample:
    key = jax.random.PRNGKey(314159)
    x = jnp.linspace(-1.0, 1.0, 6)

    def test_nothing_observed(self):
        jd = linear(self.x, 6)
        w, r = jd.weighted_sample(self.key)
        expected = jd.sample(self.key)
        assert w == 0.0
        for name in expected:
            np.testing.assert_allclose(r[name], expected[name], rtol=1e-6, atol=1e-6)

    def test_everything_observed(self, benchmark):
        jd = linear(self.x, 6)
        full = jd.sample(jax.random.PRNGKey(1)).select("a", "b", "y")
        w, r = benchmark(jd.weighted_sample, self.key, full)
        assert w == pytest.approx(jd.logdensity(full), 1e-5)
        np.testing.assert_allclose(r["y"], full["y"])
        assert r["a"] == full["a"]

    def test_partial_observation(self):
        jd = linear(self.x, 6)
        y = jnp.ones(6)
        w, r = jd.weighted_sample(self.key, Record(y=y))
        unobserved = jd.sample(self.key)
        assert r["a"] == pytest.approx(unobserved["a"], 1e-6)
        assert r["b"] == pytest.approx(unobserved["b"], 1e-6)
        np.testing.assert_allclose(r["y"], y)
        expected = jnp.sum(jss.norm.logpdf(y, r["a"] * self.x + r["b"], 1.0))
        assert w == pytest.approx(expected, 1e-5)

    def test_nested_partial_observation(self):
        jd = outer()
        w, r = jd.weighted_sample(self.key, Record(w=Record(z=0.25)))
        assert r["w"]["z"] == 0.25
        assert w == pytest.approx(jss.norm.logpdf(0.25, r["mu"], 1.0), 1e-5)
        unobserved = jd.sample(self.key)
        assert r["v"] == pytest.approx(unobserved["v"], 1e-6)

    def test_observed_set_changes_procedure(self):
        jd = linear(self.x, 6)
        jd.weighted_sample(self.key, Record(a=0.0))
        before = soss.cache_info().misses
        jd.weighted_sample(self.key, Record(a=0.5))
        assert soss.cache_info().misses == before
        jd.weighted_sample(self.key, Record(b=0.5))
        assert soss.cache_info().misses == before + 1

    def test_importance_sampling(self):
        # Self-normalized importance sampling recovers the posterior mean of
        # a conjugate Normal model.
        @soss.model
        def conjugate():
            mu <~ Normal(0.0, 1.0)
            y <~ Normal(mu, 1.0)

        jd = conjugate()
        keys = jax.random.split(self.key, 5000)
        ws, rs = jax.vmap(lambda k: jd.weighted_sample(k, Record(y=1.0)))(keys)
        probs = jax.nn.softmax(ws)
        assert jnp.sum(probs * rs["mu"]) == pytest.approx(0.5, abs=0.05)
