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
This module contains the `Distribution` abstract base class, and the two
structural distributions used to express repeated structure in models:
`IID` (independent copies of one distribution) and `For` (an indexed family
of distributions).
"""

import abc
import dataclasses
import math
from dataclasses import dataclass

import jax
import jax.numpy as jnp
import jax.tree_util as jtu

from soss.core.errors import NotADistributionError
from soss.core.pytree import Pytree
from soss.core.typing import Any, Callable, PRNGKey, Score

__all__ = [
    "Distribution",
    "IID",
    "For",
    "iid",
]

#####
# Distribution
#####


class Distribution(Pytree):
    """
    A distribution exposes the two operations every inference primitive is
    built from: `sample` draws a value with a PRNG key, and `logpdf` scores a
    value, summing over any batch dimensions so the result is a scalar.

    Concrete distributions are dataclasses whose fields are their
    parameters; the fields are the pytree leaves.
    """

    def flatten(self):
        fields = dataclasses.fields(self)
        return tuple(getattr(self, f.name) for f in fields), ()

    @classmethod
    def unflatten(cls, data, xs):
        return cls(*xs)

    @abc.abstractmethod
    def sample(self, key: PRNGKey):
        pass

    @abc.abstractmethod
    def logpdf(self, v) -> Score:
        pass

    def weighted_sample(self, key: PRNGKey, v):
        """Scores an observed value. Returns `(weight, value)`, mirroring
        `JointDistribution.weighted_sample`, which may also draw."""
        return self.logpdf(v), v

    def iid(self, shape):
        return IID(shape, self)


def as_distribution(site, value):
    if not isinstance(value, Distribution):
        raise NotADistributionError(site, value)
    return value


def _as_shape(shape):
    if isinstance(shape, int):
        return (shape,)
    return tuple(shape)


def _reshape_leading(tree, shape, ndim):
    # Replaces the first `ndim` axes of every leaf with `shape`.
    return jtu.tree_map(
        lambda v: jnp.reshape(v, shape + jnp.shape(v)[ndim:]),
        tree,
    )


#####
# IID
#####


@dataclass
class IID(Distribution):
    """Independent copies of `dist`, arranged in an array of shape `shape`."""

    shape: Any
    dist: Distribution

    def __post_init__(self):
        self.shape = _as_shape(self.shape)

    def flatten(self):
        return (self.dist,), (self.shape,)

    @classmethod
    def unflatten(cls, data, xs):
        return cls(data[0], xs[0])

    def size(self):
        return math.prod(self.shape)

    def sample(self, key):
        keys = jax.random.split(key, self.size())
        draws = jax.vmap(self.dist.sample)(keys)
        return _reshape_leading(draws, self.shape, 1)

    def logpdf(self, v):
        flat = _reshape_leading(v, (self.size(),), len(self.shape))
        return jnp.sum(jax.vmap(self.dist.logpdf)(flat))


def iid(shape, dist: Distribution):
    return IID(shape, dist)


#####
# For
#####


@dataclass
class For(Distribution):
    """
    An indexed family of independent distributions. `family` maps an index
    to a distribution, and `index` describes the indices:

    * an `int` `n` indexes `range(n)`,
    * a `range` indexes its elements,
    * a tuple of ints `(n, m, ...)` indexes the grid of multi-indices, with
      `family` receiving one argument per axis,
    * an array (or sequence) indexes its elements along the leading axis.

    The value is an array with one entry per index, in index order.
    """

    index: Any
    family: Callable

    def flatten(self):
        return (self.index,), (self.family,)

    @classmethod
    def unflatten(cls, data, xs):
        return cls(xs[0], data[0])

    def indices(self):
        """Returns the flat index arrays (one per family argument) and the
        shape of the family."""
        index = self.index
        if isinstance(index, int):
            return (jnp.arange(index),), (index,)
        elif isinstance(index, range):
            return (jnp.arange(index.start, index.stop, index.step),), (len(index),)
        elif isinstance(index, tuple) and all(isinstance(n, int) for n in index):
            grids = jnp.meshgrid(*map(jnp.arange, index), indexing="ij")
            return tuple(g.reshape(-1) for g in grids), index
        else:
            index = jnp.asarray(index)
            return (index,), (index.shape[0],)

    def sample(self, key):
        idx, shape = self.indices()
        keys = jax.random.split(key, math.prod(shape))
        draws = jax.vmap(lambda k, *i: self.family(*i).sample(k))(keys, *idx)
        return _reshape_leading(draws, shape, 1)

    def logpdf(self, v):
        idx, shape = self.indices()
        flat = _reshape_leading(v, (math.prod(shape),), len(shape))
        scores = jax.vmap(lambda x, *i: self.family(*i).logpdf(x))(flat, *idx)
        return jnp.sum(scores)
