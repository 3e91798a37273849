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
def prior(mu):
    x <~ Normal(mu, 1.0)


@soss.model
def likelihood(x, s):
    y <~ Normal(x, s)


class TestPredictive:
    key = jax.random.PRNGKey(314159)
    x = jnp.linspace(-1.0, 1.0, 4)

    def test_predictive_reads_supplied_values(self):
        p = linear.predictive("a", "b")
        r = p(self.x, 4, a=2.0, b=-1.0).sample(self.key)
        assert r.names() == ("yhat", "y")
        np.testing.assert_allclose(r["yhat"], 2.0 * self.x - 1.0, rtol=1e-6)

    def test_predictive_of_assignment(self):
        p = linear.predictive("yhat")
        yhat = jnp.zeros(4)
        r = p(self.x, 4, yhat=yhat).sample(self.key)
        assert r.names() == ("a", "b", "y")
        jd = p(self.x, 4, yhat=yhat)
        expected = (
            jss.norm.logpdf(r["a"]) + jss.norm.logpdf(r["b"])
            + jnp.sum(jss.norm.logpdf(r["y"]))
        )
        assert jd.logdensity(r) == pytest.approx(expected, 1e-5)

    def test_predict_from_draws(self):
        jd = linear(self.x, 4)
        draws = jd.sample_n(self.key, 10).select("a", "b")
        out = soss.predict(jax.random.PRNGKey(1), jd, draws)
        assert out["y"].shape == (10, 4)
        np.testing.assert_allclose(
            out["yhat"],
            draws["a"][:, None] * self.x + draws["b"][:, None],
            rtol=1e-5,
            atol=1e-6,
        )

    def test_predict_from_model(self):
        draws = Record(a=jnp.ones(3), b=jnp.zeros(3))
        out = soss.predict(self.key, linear, draws, x=self.x, n=4)
        np.testing.assert_allclose(out["yhat"], jnp.tile(self.x, (3, 1)), rtol=1e-6)


class TestCompose:
    key = jax.random.PRNGKey(314159)

    def test_compose_structure(self):
        m = prior >> likelihood
        assert m.args == ("mu", "s")
        assert m.sites == ("x", "y")

    def test_compose_is_cached(self):
        assert (prior >> likelihood) is soss.compose(prior, likelihood)

    def test_compose_sample_and_logdensity(self):
        jd = (prior >> likelihood)(1.0, 0.5)
        r = jd.sample(self.key)
        expected = jss.norm.logpdf(r["x"], 1.0, 1.0) + jss.norm.logpdf(
            r["y"], r["x"], 0.5
        )
        assert jd.logdensity(r) == pytest.approx(expected, 1e-5)

    def test_compose_collision(self):
        with pytest.raises(soss.DuplicateSiteError):
            prior >> prior
