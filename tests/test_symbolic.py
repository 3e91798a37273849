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
import numpy as np
import pytest
import sympy as sp

import soss
from soss import (
    Bernoulli,
    Beta,
    For,
    Gamma,
    Laplace,
    Normal,
    Poisson,
    Record,
    StudentT,
    iid,
)
from soss.symbolic import evaluate, expand_sums, fold_constants, simplify, symlogdensity


@soss.model
def normal_iid(n):
    mu <~ Normal(0.0, 1.0)
    y <~ iid(n, Normal(mu, 2.0))


@soss.model
def linear(x, n):
    a <~ Normal(0.0, 1.0)
    b <~ Normal(0.0, 1.0)
    yhat = a * x + b
    y <~ For(n, lambda j: Normal(yhat[j], 1.0))


@soss.model
def counts(n):
    rate <~ Gamma(2.0, 1.0)
    k <~ iid(n, Poisson(rate))


@soss.model
def coins(n):
    p <~ Beta(2.0, 2.0)
    flips <~ iid(n, Bernoulli(p))


@soss.model
def offsets(mu):
    y <~ For(range(2, 5), lambda j: Laplace(mu[j], 1.0))


def agree(jd, r):
    numeric = jd.logdensity(r)
    symbolic = jd.symbolic_logdensity(r)
    assert symbolic == pytest.approx(numeric, rel=1e-4)


class TestSymbolicLogdensity:
    key = jax.random.PRNGKey(314159)

    def test_normal_iid(self):
        jd = normal_iid(20)
        agree(jd, jd.sample(self.key))

    def test_linear_regression(self):
        jd = linear(jnp.linspace(-1.0, 1.0, 12), 12)
        agree(jd, jd.sample(self.key))

    def test_poisson_gamma(self):
        jd = counts(15)
        agree(jd, jd.sample(self.key))

    def test_beta_bernoulli(self):
        jd = coins(10)
        agree(jd, jd.sample(self.key))

    def test_range_offsets(self):
        jd = offsets(jnp.arange(5.0))
        agree(jd, jd.sample(self.key))

    def test_gradients_agree(self):
        jd = normal_iid(5)
        r = jd.sample(self.key)

        def numeric(mu):
            return jd.logdensity(r.merge(Record(mu=mu)))

        def symbolic(mu):
            return jd.symbolic_logdensity(r.merge(Record(mu=mu)))

        assert jax.grad(symbolic)(0.3) == pytest.approx(jax.grad(numeric)(0.3), 1e-4)

    def test_unsupported_distribution(self):
        @soss.model
        def heavy(nu):
            x <~ StudentT(nu)

        jd = heavy(3.0)
        with pytest.raises(soss.SymbolicError):
            jd.symbolic_logdensity(jd.sample(self.key))

    def test_unsupported_expression(self):
        @soss.model
        def dotted(x):
            w <~ iid(3, Normal(0.0, 1.0))
            y <~ Normal(jnp.dot(x, w), 1.0)

        jd = dotted(jnp.ones(3))
        with pytest.raises(soss.SymbolicError):
            jd.symbolic_logdensity(jd.sample(self.key))


class TestSimplification:
    key = jax.random.PRNGKey(314159)

    def test_sufficient_statistics(self):
        jd = normal_iid(20)
        expr = symlogdensity(jd, jd.sample(self.key))
        mu = sp.Symbol("mu")
        sums = expr.atoms(sp.Sum)
        assert sums
        assert all(not s.function.has(mu) for s in sums)

    def test_constants_are_folded(self):
        jd = normal_iid(20)
        expr = symlogdensity(jd, jd.sample(self.key))
        assert all(not log.is_number for log in expr.atoms(sp.log))

    def test_simplify_is_idempotent(self):
        for jd in (normal_iid(8), linear(jnp.arange(4.0), 4), counts(3)):
            raw = symlogdensity(jd, jd.sample(self.key), simplified=False)
            once = simplify(raw)
            assert simplify(once) == once

    def test_each_pass_is_idempotent(self):
        for jd in (normal_iid(8), linear(jnp.arange(4.0), 4), counts(3)):
            raw = symlogdensity(jd, jd.sample(self.key), simplified=False)
            for simplify_pass in (expand_sums, fold_constants):
                once = simplify_pass(raw)
                assert simplify_pass(once) == once

    def test_passes_compose_in_either_order(self):
        jd = linear(jnp.linspace(-1.0, 1.0, 6), 6)
        r = jd.sample(self.key)
        raw = symlogdensity(jd, r, simplified=False)
        reversed_order = simplify(raw, (fold_constants, expand_sums))
        env = {
            sp.Symbol(name): jnp.asarray(v, dtype=jnp.float32)
            for (name, v) in {**jd.arguments(), **r}.items()
            if name != "n"
        }
        expected = jd.logdensity(r)
        assert evaluate(reversed_order, env) == pytest.approx(expected, rel=1e-4)

    def test_expand_sums_preserves_value(self):
        k = sp.Dummy("k", integer=True)
        y = sp.IndexedBase("y", shape=(10,))
        mu = sp.Symbol("mu")
        expr = sp.Sum((y[k] - mu) ** 2 + sp.log(2 * sp.pi), (k, 0, 9))
        expanded = expand_sums(expr)
        env = {sp.Symbol("y"): jnp.linspace(0.0, 1.0, 10), mu: 0.3}
        assert evaluate(expanded, env) == pytest.approx(evaluate(expr, env), 1e-5)
        assert expanded.has(sp.Sum(y[k] ** 2, (k, 0, 9)))

    def test_evaluate_applied_functions(self):
        x = sp.Symbol("x")
        expr = sp.log(x) + sp.exp(x) + sp.Abs(x - 3) + sp.loggamma(x + 1)
        value = evaluate(expr, {x: jnp.asarray(2.0)})
        expected = np.log(2.0) + np.exp(2.0) + 1.0 + np.log(2.0)
        assert value == pytest.approx(expected, rel=1e-5)
        assert evaluate(sp.exp(sp.Integer(0)), {}) == pytest.approx(1.0)

    def test_fold_constants(self):
        x = sp.Symbol("x")
        folded = fold_constants(sp.log(2 * sp.pi) / 2 + sp.loggamma(4) + x)
        assert folded.atoms(sp.Float)
        assert not folded.atoms(sp.log, sp.loggamma)
        assert float(folded.subs(x, 0.0)) == pytest.approx(
            float(np.log(2 * np.pi) / 2 + np.log(6.0))
        )

    def test_empty_model(self):
        @soss.model
        def nothing():
            pass

        jd = nothing()
        assert symlogdensity(jd, Record()) == 0
        assert jd.symbolic_logdensity(Record()) == 0.0
