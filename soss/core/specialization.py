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
This module holds the JAX-specific utilities which decide how a value
participates in specialization.

A value is either *static* -- it is baked into a generated procedure and
becomes part of the cache key by value (sizes, index ranges, flags) -- or
*dynamic* -- it is passed to the compiled procedure and only its pytree
structure, shapes and dtypes enter the cache key.
"""

import jax
import jax.numpy as jnp
import jax.tree_util as jtu
import numpy as np

STATIC_SCALARS = (bool, int, str, range, type(None), np.integer, np.bool_)


def is_concrete(x):
    return not isinstance(x, jax.core.Tracer)


def all_concrete(tree):
    return all(map(is_concrete, jtu.tree_leaves(tree)))


def is_static_value(v):
    if isinstance(v, STATIC_SCALARS):
        return True
    if isinstance(v, tuple):
        return all(map(is_static_value, v))
    return False


def as_dynamic_value(v):
    # Plain Python containers of numbers are data, not structure.
    if isinstance(v, (list, np.ndarray)):
        return jnp.asarray(v)
    return v


def leaf_descriptor(v):
    return (tuple(jnp.shape(v)), str(jnp.result_type(v)))


def shape_descriptor(values):
    """
    Returns a hashable description of a `dict` of dynamic values: for each
    name, the pytree structure of the value and the shape and dtype of each
    leaf. Two calls whose descriptors are equal can share one compiled
    procedure.
    """
    desc = []
    for name in sorted(values):
        leaves, treedef = jtu.tree_flatten(values[name])
        desc.append((name, treedef, tuple(map(leaf_descriptor, leaves))))
    return tuple(desc)


def static_descriptor(values):
    return tuple(sorted(values.items(), key=lambda kv: kv[0]))
