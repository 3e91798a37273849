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
from soss import For, HalfNormal, Normal, Record


@soss.model
def normal(mu, sigma):
    x <~ Normal(mu, sigma)


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


def linear_logdensity(x, r):
    return (
        jss.norm.logpdf(r["a"], 0.0, 1.0)
        + jss.norm.logpdf(r["b"], 0.0, 1.0)
        + jnp.sum(jss.norm.logpdf(r["y"], r["a"] * x + r["b"], 1.0))
    )


class TestLogdensity:
    key = jax.random.PRNGKey(314159)

    def test_simple_normal_logdensity(self, benchmark):
        jd = normal(0.0, 1.0)
        score = benchmark(jd.logdensity, Record(x=0.5))
        assert score == pytest.approx(jss.norm.logpdf(0.5, 0.0, 1.0), 1e-5)

    def test_logpdf_alias(self):
        jd = normal(1.0, 2.0)
        r = Record(x=0.3)
        assert jd.logpdf(r) == jd.logdensity(r)

    def test_linear_logdensity(self):
        x = jnp.linspace(-1.0, 1.0, 8)
        jd = linear(x, 8)
        r = jd.sample(self.key)
        assert jd.logdensity(r) == pytest.approx(linear_logdensity(x, r), 1e-5)

    def test_assignments_and_extras_are_ignored(self):
        x = jnp.arange(3.0)
        jd = linear(x, 3)
        r = jd.sample(self.key)
        sites = r.select("a", "b", "y")
        extra = sites.merge(Record(unrelated=jnp.ones(7)))
        assert jd.logdensity(r) == pytest.approx(jd.logdensity(sites), 1e-6)
        assert jd.logdensity(extra) == pytest.approx(jd.logdensity(sites), 1e-6)

    def test_missing_observation(self):
        jd = linear(jnp.arange(3.0), 3)
        with pytest.raises(soss.MissingObservationError) as info:
            jd.logdensity(Record(a=0.0, y=jnp.zeros(3)))
        assert info.value.missing == ("b",)
        assert isinstance(info.value, KeyError)
        assert "b" in str(info.value)

    def test_plain_mappings(self):
        jd = normal(0.0, 1.0)
        assert jd.logdensity({"x": 0.5}) == jd.logdensity(Record(x=0.5))

    def test_outside_support(self):
        @soss.model
        def scale():
            s <~ HalfNormal(1.0)

        assert scale().logdensity(Record(s=-1.0)) == -jnp.inf

    def test_nested_logdensity(self):
        jd = outer()
        r = jd.sample(self.key)
        expected = jss.norm.logpdf(r["mu"], 0.0, 1.0) + jss.norm.logpdf(
            r["w"]["z"], r["mu"], 1.0
        )
        assert jd.logdensity(r) == pytest.approx(expected, 1e-5)

    def test_gradient(self):
        jd = normal(0.0, 1.0)
        grad = jax.grad(lambda x: jd.logdensity(Record(x=x)))(0.5)
        assert grad == pytest.approx(-0.5, 1e-5)

    def test_gradient_with_respect_to_arguments(self):
        r = Record(x=1.0)
        grad = jax.grad(lambda mu: normal(mu, 1.0).logdensity(r))(0.0)
        assert grad == pytest.approx(1.0, 1e-5)

    def test_vmap_over_records(self):
        jd = normal(0.0, 1.0)
        xs = jnp.linspace(-2.0, 2.0, 5)
        scores = jax.vmap(lambda x: jd.logdensity(Record(x=x)))(xs)
        np.testing.assert_allclose(
            scores, jss.norm.logpdf(xs, 0.0, 1.0), rtol=1e-5
        )
