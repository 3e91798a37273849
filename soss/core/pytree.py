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

"""Contains the Pytree class."""

import abc

import jax.numpy as jnp
import jax.tree_util as jtu

__all__ = [
    "Pytree",
    "tree_leading_dim",
]


class Pytree(metaclass=abc.ABCMeta):
    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        jtu.register_pytree_node(
            cls,
            cls.flatten,
            cls.unflatten,
        )

    @abc.abstractmethod
    def flatten(self):
        pass

    @classmethod
    @abc.abstractmethod
    def unflatten(cls, data, xs):
        pass


#####
# Utilities
#####


def tree_leading_dim(tree):
    """Returns the shared leading dimension of a stacked tree, e.g. the
    output of `sample_n`."""
    leaves = jtu.tree_leaves(tree)
    dims = {jnp.shape(leaf)[0] for leaf in leaves if jnp.ndim(leaf) > 0}
    if len(dims) != 1:
        raise ValueError(f"Expected one shared leading dimension, got {dims}.")
    return dims.pop()
