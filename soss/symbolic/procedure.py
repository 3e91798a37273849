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

"""Builds the `SYMBOLIC_LOGDENSITY` procedure of a model: translate to
`sympy`, simplify, and evaluate the simplified expression with JAX."""

import logging

import jax.numpy as jnp
import jax.tree_util as jtu
import sympy as sp

from soss.compiler.primitives import Primitive
from soss.core.errors import SymbolicError
from soss.core.specialization import shape_descriptor
from soss.symbolic.evaluate import evaluate
from soss.symbolic.simplify import simplify
from soss.symbolic.translate import logdensity_expression

logger = logging.getLogger(__name__)

__all__ = [
    "build_symbolic_logdensity",
    "symlogdensity",
]


def _shapes(descriptor):
    shapes = {}
    for (name, treedef, leaves) in descriptor:
        if not jtu.treedef_is_leaf(treedef) or len(leaves) != 1:
            raise SymbolicError(f"'{name}' must be a single array to be symbolic.")
        (shape, _), = leaves
        shapes[name] = shape
    return shapes


def _expression(m, static, descriptor, simplified):
    expr = logdensity_expression(m, static, _shapes(descriptor))
    return simplify(expr) if simplified else expr


def build_symbolic_logdensity(key):
    expr = _expression(key.model, key.static_values(), key.args + key.observed, True)
    logger.debug("Symbolic log density of '%s': %s", key.model.name, expr)

    def _soss_symbolic_logdensity(_key, args, observed):
        env = {
            sp.Symbol(name): jnp.asarray(v, dtype=jnp.result_type(float))
            for (name, v) in {**args, **observed}.items()
        }
        return evaluate(expr, env)

    return expr, _soss_symbolic_logdensity


def symlogdensity(jd, record, simplified=True):
    """
    Returns the log density of `jd` at values shaped like `record` as a
    `sympy` expression, simplified or as translated. Static arguments appear
    as numbers; dynamic arguments and sites appear as symbols.
    """
    if simplified:
        return jd.source(Primitive.SYMBOLIC_LOGDENSITY, record)
    observed = jd._observations(record, require_all=True)
    descriptor = shape_descriptor(jd.dynamic) + shape_descriptor(observed)
    return _expression(jd.model, jd.static, descriptor, False)
