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

"""Evaluates a symbolic log density with `jax.numpy`, so the result can be
traced, jitted and differentiated like a generated procedure."""

import functools
import operator

import jax
import jax.numpy as jnp
import jax.scipy.special as jsp
import sympy as sp
from plum import dispatch

from soss.core.errors import SymbolicError

__all__ = [
    "evaluate",
]

# Applied functions are looked up by `expr.func`.
FUNCTIONS = {
    sp.log: jnp.log,
    sp.exp: jnp.exp,
    sp.Abs: jnp.abs,
    sp.loggamma: jsp.gammaln,
}


@dispatch
def evaluate(expr: sp.Basic, env):
    if expr.func in FUNCTIONS:
        return FUNCTIONS[expr.func](*(evaluate(a, env) for a in expr.args))
    if expr.is_number:
        if expr.is_Integer:
            return int(expr)
        return float(expr)
    raise SymbolicError(f"Cannot evaluate `{expr}` ({type(expr).__name__}).")


@dispatch
def evaluate(expr: sp.Symbol, env):
    try:
        return env[expr]
    except KeyError:
        raise SymbolicError(f"No value for '{expr}'.") from None


@dispatch
def evaluate(expr: sp.Indexed, env):
    base = evaluate(expr.base.label, env)
    return base[tuple(evaluate(i, env) for i in expr.indices)]


@dispatch
def evaluate(expr: sp.Add, env):
    return functools.reduce(operator.add, (evaluate(a, env) for a in expr.args))


@dispatch
def evaluate(expr: sp.Mul, env):
    return functools.reduce(operator.mul, (evaluate(a, env) for a in expr.args))


@dispatch
def evaluate(expr: sp.Pow, env):
    base, exponent = expr.args
    if exponent.is_Integer:
        return evaluate(base, env) ** int(exponent)
    return evaluate(base, env) ** evaluate(exponent, env)


@dispatch
def evaluate(expr: sp.Sum, env):
    # Nested limits are stored innermost first.
    (k, start, stop), *outer = expr.limits
    inner = sp.Sum(expr.function, (k, start, stop))
    if outer:
        return evaluate(sp.Sum(inner, *outer), env)
    if not (start.is_Integer and stop.is_Integer):
        raise SymbolicError(f"Summation bounds of `{expr}` must be integers.")
    ks = jnp.arange(int(start), int(stop) + 1)
    terms = jax.vmap(lambda i: evaluate(expr.function, {**env, k: i}))(ks)
    return jnp.sum(terms)
