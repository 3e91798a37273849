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

"""
Translates a model into a `sympy` expression for its log joint density.

Scalar arguments and sites become `Symbol`s and array-valued ones become
`IndexedBase`s; static arguments are substituted as numbers. Repeated
structure (`iid`, `For`, array-valued sites) becomes a `Sum` over a dummy
index, so the simplifier can rewrite sums of terms into sufficient
statistics.

Only a subset of Python expressions and distributions has a symbolic
counterpart; anything else raises `SymbolicError`.
"""

import ast
import builtins
import dataclasses
import math
import operator
from dataclasses import dataclass

import jax.numpy as jnp
import numpy as np
import sympy as sp

from soss.core.errors import SymbolicError
from soss.core.typing import Any, Tuple
from soss.distributions.distribution import IID, For, iid
from soss.distributions.standard import (
    Bernoulli,
    Beta,
    Cauchy,
    Exponential,
    Gamma,
    HalfNormal,
    Laplace,
    Normal,
    Poisson,
)
from soss.language.statements import Sample

__all__ = [
    "logdensity_expression",
    "SYMBOLIC_LOGPDFS",
]

#####
# Log densities
#####


def _normal(x, mu, sigma):
    return -((x - mu) ** 2) / (2 * sigma**2) - sp.log(sigma) - sp.log(2 * sp.pi) / 2


def _half_normal(x, sigma):
    return sp.log(2) + _normal(x, 0, sigma)


def _exponential(x, rate):
    return sp.log(rate) - rate * x


def _cauchy(x, loc, scale):
    return -sp.log(sp.pi) - sp.log(scale) - sp.log(1 + ((x - loc) / scale) ** 2)


def _laplace(x, loc, scale):
    return -sp.log(2 * scale) - sp.Abs(x - loc) / scale


def _gamma(x, concentration, rate):
    return (
        concentration * sp.log(rate)
        - sp.loggamma(concentration)
        + (concentration - 1) * sp.log(x)
        - rate * x
    )


def _beta(x, a, b):
    return (
        (a - 1) * sp.log(x)
        + (b - 1) * sp.log(1 - x)
        + sp.loggamma(a + b)
        - sp.loggamma(a)
        - sp.loggamma(b)
    )


def _poisson(x, rate):
    return x * sp.log(rate) - rate - sp.loggamma(x + 1)


def _bernoulli(x, p):
    return x * sp.log(p) + (1 - x) * sp.log(1 - p)


# Densities are written for values inside the support.
SYMBOLIC_LOGPDFS = {
    Normal: _normal,
    HalfNormal: _half_normal,
    Exponential: _exponential,
    Cauchy: _cauchy,
    Laplace: _laplace,
    Gamma: _gamma,
    Beta: _beta,
    Poisson: _poisson,
    Bernoulli: _bernoulli,
}


def _elementary_functions():
    table = {builtins.abs: sp.Abs}
    names = {
        "exp": sp.exp,
        "log": sp.log,
        "sqrt": sp.sqrt,
        "abs": sp.Abs,
        "fabs": sp.Abs,
        "log1p": lambda x: sp.log(1 + x),
        "square": lambda x: x**2,
    }
    for module in (jnp, np, math):
        for (name, fn) in names.items():
            if hasattr(module, name):
                table[getattr(module, name)] = fn
    return table


FUNCTIONS = _elementary_functions()

BINOPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
}

#####
# Values
#####


def variable(name, shape):
    if shape == ():
        return sp.Symbol(name)
    return sp.IndexedBase(name, shape=shape)


@dataclass(frozen=True)
class _Slot:
    # The part of a site's value a density term scores: `base` indexed by
    # `indices`, with `shape` axes still unindexed.
    base: Any
    shape: Tuple
    indices: Tuple = ()

    def at(self, indices):
        if len(indices) > len(self.shape):
            raise SymbolicError(f"Too many indices into '{self.base}'.")
        return _Slot(self.base, self.shape[len(indices):], self.indices + indices)

    def expr(self):
        if self.shape != ():
            raise SymbolicError(
                f"Cannot score '{self.base}' with a scalar density; "
                f"{len(self.shape)} axes are unaccounted for."
            )
        if not self.indices:
            return self.base
        return self.base[self.indices]


def _index(expr, indices):
    # Elementwise semantics: every unindexed array in `expr` is indexed at
    # `indices`.
    if isinstance(expr, sp.IndexedBase):
        if len(expr.shape) != len(indices):
            raise SymbolicError(
                f"'{expr}' has {len(expr.shape)} axes, expected {len(indices)}."
            )
        return expr[indices]
    if isinstance(expr, sp.Indexed) or not expr.args:
        return expr
    return expr.func(*(_index(a, indices) for a in expr.args))


def _dummies(n):
    return tuple(sp.Dummy(f"i{d}", integer=True) for d in range(n))


def _sum(body, dummies, bounds):
    for (k, (start, stop)) in reversed(list(zip(dummies, bounds))):
        body = sp.Sum(body, (k, start, stop - 1))
    return body


def _check_prefix(slot, shape, what):
    if tuple(slot.shape[: len(shape)]) != tuple(shape):
        raise SymbolicError(
            f"{what} has shape {tuple(shape)}, but the value of '{slot.base}' "
            f"has shape {tuple(slot.shape)}."
        )


def _constant(v):
    if isinstance(v, (bool, int, np.integer, np.bool_)):
        return sp.Integer(int(v))
    return v


#####
# Translation
#####


class Translator:
    def __init__(self, model, static, shapes):
        self.model = model
        self.shapes = shapes
        self.scope = {}
        for a in model.args:
            if a in static:
                self.scope[a] = _constant(static[a])
            else:
                self.scope[a] = variable(a, shapes[a])

    def logdensity(self):
        terms = []
        for s in self.model.statements:
            if isinstance(s, Sample):
                value = variable(s.name, self.shapes[s.name])
                slot = _Slot(value, tuple(self.shapes[s.name]))
                terms.append(self.logpdf(s.expr, slot, {}))
                self.scope[s.name] = value
            else:
                self.scope[s.name] = self.value(s.expr, {})
        return sp.Add(*terms)

    # Expressions.

    def lookup(self, name, local):
        if name in local:
            return local[name]
        if name in self.scope:
            return self.scope[name]
        if name in self.model.env:
            return self.model.env[name]
        if hasattr(builtins, name):
            return getattr(builtins, name)
        raise SymbolicError(f"Name '{name}' is not defined.")

    def resolve(self, node, local):
        if isinstance(node, ast.Name):
            return self.lookup(node.id, local)
        if isinstance(node, ast.Attribute):
            return getattr(self.resolve(node.value, local), node.attr)
        raise SymbolicError(f"Cannot resolve `{ast.unparse(node)}`.")

    def value(self, node, local):
        v = self.expr(node, local)
        if isinstance(v, sp.Basic):
            return v
        if isinstance(v, (bool, int, float, np.number)):
            return sp.sympify(v)
        raise SymbolicError(
            f"`{ast.unparse(node)}` evaluates to {type(v).__name__}, "
            "which has no symbolic form."
        )

    def expr(self, node, local):
        if isinstance(node, ast.Constant):
            if isinstance(node.value, (bool, int)):
                return sp.Integer(int(node.value))
            if isinstance(node.value, float):
                return sp.Float(node.value)
        elif isinstance(node, (ast.Name, ast.Attribute)):
            return _constant(self.resolve(node, local))
        elif isinstance(node, ast.BinOp) and type(node.op) in BINOPS:
            op = BINOPS[type(node.op)]
            return op(self.value(node.left, local), self.value(node.right, local))
        elif isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub):
            return -self.value(node.operand, local)
        elif isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.UAdd):
            return self.value(node.operand, local)
        elif isinstance(node, ast.Tuple):
            return tuple(self.static(e, local) for e in node.elts)
        elif isinstance(node, ast.Subscript):
            return self.subscript(node, local)
        elif isinstance(node, ast.Call):
            fn = self.resolve(node.func, local)
            if fn is range:
                return range(*(self.static(a, local) for a in node.args))
            if fn in FUNCTIONS and not node.keywords:
                return FUNCTIONS[fn](*(self.value(a, local) for a in node.args))
        raise SymbolicError(f"No symbolic form for `{ast.unparse(node)}`.")

    def subscript(self, node, local):
        base = self.expr(node.value, local)
        elts = node.slice.elts if isinstance(node.slice, ast.Tuple) else [node.slice]
        if any(isinstance(e, ast.Slice) for e in elts):
            raise SymbolicError(f"Slicing is not supported: `{ast.unparse(node)}`.")
        indices = tuple(self.value(e, local) for e in elts)
        if isinstance(base, sp.Basic):
            return _index(base, indices)
        raise SymbolicError(f"Cannot index `{ast.unparse(node.value)}`.")

    def static(self, node, local):
        v = self.expr(node, local)
        if isinstance(v, (range, tuple, int)):
            return v
        if isinstance(v, sp.Basic) and v.is_Integer:
            return int(v)
        raise SymbolicError(
            f"`{ast.unparse(node)}` must be a static integer, range or tuple."
        )

    # Densities.

    def logpdf(self, node, slot, local):
        if not isinstance(node, ast.Call):
            raise SymbolicError(f"No symbolic density for `{ast.unparse(node)}`.")
        func = node.func
        if isinstance(func, ast.Attribute) and func.attr == "iid":
            if isinstance(func.value, ast.Call):
                return self.iid(node.args[0], func.value, slot, local)
        callee = self.resolve(func, local)
        if callee is iid or callee is IID:
            shape_node, dist_node = node.args
            return self.iid(shape_node, dist_node, slot, local)
        if callee is For:
            index_node, family_node = node.args
            return self.family(index_node, family_node, slot, local)
        if callee in SYMBOLIC_LOGPDFS:
            params = self.params(callee, node, local)
            return self.elementwise(SYMBOLIC_LOGPDFS[callee], slot, params)
        raise SymbolicError(f"No symbolic density for `{ast.unparse(node)}`.")

    def params(self, cls, node, local):
        fields = dataclasses.fields(cls)
        if len(node.args) > len(fields):
            raise SymbolicError(f"Too many arguments: `{ast.unparse(node)}`.")
        given = {f.name: self.value(a, local) for (f, a) in zip(fields, node.args)}
        for kw in node.keywords:
            if kw.arg is None or kw.arg not in {f.name for f in fields}:
                raise SymbolicError(f"Unknown keyword in `{ast.unparse(node)}`.")
            given[kw.arg] = self.value(kw.value, local)
        params = []
        for f in fields:
            if f.name in given:
                params.append(given[f.name])
            elif f.default is not dataclasses.MISSING:
                params.append(sp.sympify(f.default))
            else:
                raise SymbolicError(
                    f"Missing parameter '{f.name}': `{ast.unparse(node)}`."
                )
        return params

    def elementwise(self, logpdf, slot, params):
        if slot.shape == ():
            return logpdf(slot.expr(), *params)
        dummies = _dummies(len(slot.shape))
        value = slot.at(dummies).expr()
        params = [_index(p, dummies) for p in params]
        bounds = [(0, n) for n in slot.shape]
        return _sum(logpdf(value, *params), dummies, bounds)

    def iid(self, shape_node, dist_node, slot, local):
        shape = self.static(shape_node, local)
        shape = (shape,) if isinstance(shape, int) else tuple(shape)
        _check_prefix(slot, shape, f"`{ast.unparse(shape_node)}`")
        dummies = _dummies(len(shape))
        body = self.logpdf(dist_node, slot.at(dummies), local)
        return _sum(body, dummies, [(0, n) for n in shape])

    def family(self, index_node, family_node, slot, local):
        index = self.static(index_node, local)
        if isinstance(index, int):
            bounds = [(0, index)]
        elif isinstance(index, range) and index.step == 1:
            bounds = [(index.start, index.stop)]
        elif isinstance(index, tuple) and all(isinstance(n, int) for n in index):
            bounds = [(0, n) for n in index]
        else:
            raise SymbolicError(f"Unsupported index `{ast.unparse(index_node)}`.")
        shape = tuple(stop - start for (start, stop) in bounds)
        _check_prefix(slot, shape, f"`{ast.unparse(index_node)}`")
        if not isinstance(family_node, ast.Lambda):
            raise SymbolicError("The family of a `For` must be a lambda.")
        params = [a.arg for a in family_node.args.args]
        if len(params) != len(bounds):
            raise SymbolicError(
                f"The family takes {len(params)} indices, expected {len(bounds)}."
            )
        dummies = _dummies(len(bounds))
        inner = dict(local)
        for (p, k, (start, _)) in zip(params, dummies, bounds):
            inner[p] = k + start
        body = self.logpdf(family_node.body, slot.at(dummies), inner)
        return _sum(body, dummies, [(0, n) for n in shape])


def logdensity_expression(model, static, shapes):
    """Returns the unsimplified log joint density of `model` as a `sympy`
    expression, given static argument values and the shapes of the dynamic
    arguments and sites."""
    missing = [n for n in model.sites if n not in shapes]
    if missing:
        raise SymbolicError(f"No shapes for sites: {', '.join(missing)}.")
    return Translator(model, static, shapes).logdensity()
