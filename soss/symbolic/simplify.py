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
Rewrite passes over symbolic log densities.

A pass is a function from a `sympy` expression to an equivalent expression.
`simplify` composes passes; both passes here are idempotent, so running
`simplify` twice gives the same expression as running it once.
"""

import logging
from collections import defaultdict

import sympy as sp

__all__ = [
    "expand_sums",
    "fold_constants",
    "simplify",
    "DEFAULT_PASSES",
]

logger = logging.getLogger(__name__)


def _is_leaf(expr):
    return not expr.args or isinstance(expr, (sp.Indexed, sp.IndexedBase))


def _count(start, stop):
    return stop - start + 1


def _expand_sum(body, limit):
    k, start, stop = limit
    independent = []
    dependent = defaultdict(list)
    for term in sp.Add.make_args(sp.expand(body)):
        coeff, rest = term.as_independent(k, as_Add=False)
        if rest.has(k):
            dependent[rest].append(coeff)
        else:
            independent.append(term)
    count = _count(start, stop)
    result = sp.Add(*independent) * count
    for (rest, coeffs) in dependent.items():
        result += sp.Add(*coeffs) * sp.Sum(rest, (k, start, stop))
    return result


def expand_sums(expr):
    """
    Distributes every `Sum` over the terms of its body and pulls factors
    that do not depend on the summation index out of it: a term free of the
    index becomes the term times the number of summands, and a term
    `c * f(k)` becomes `c * Sum(f(k))`. For a Normal likelihood this leaves
    sums of `y[k]` and `y[k]**2`, the sufficient statistics.
    """
    if _is_leaf(expr):
        return expr
    if isinstance(expr, sp.Sum):
        result = expand_sums(expr.function)
        for limit in expr.limits:
            result = _expand_sum(result, limit)
        return result
    return expr.func(*(expand_sums(a) for a in expr.args))


def fold_constants(expr):
    """Evaluates every numeric subexpression (`log(2*pi)`, `loggamma(3)`) to
    a float, and collapses sums whose body does not use the index."""
    if _is_leaf(expr):
        return expr
    if isinstance(expr, sp.Sum):
        body = fold_constants(expr.function)
        for (k, start, stop) in expr.limits:
            if body.has(k):
                body = sp.Sum(body, (k, start, stop))
            else:
                body = body * _count(start, stop)
        return body
    folded = expr.func(*(fold_constants(a) for a in expr.args))
    if folded.is_number and not folded.is_Number:
        value = folded.evalf()
        if value.is_Float:
            return value
    return folded


DEFAULT_PASSES = (expand_sums, fold_constants)


def simplify(expr, passes=DEFAULT_PASSES):
    for rewrite in passes:
        expr = rewrite(expr)
        logger.debug("After %s: %s", rewrite.__name__, expr)
    return expr
