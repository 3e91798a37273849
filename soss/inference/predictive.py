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

"""Posterior predictive simulation: re-running a model with some of its
declared names fixed to values from posterior draws."""

import jax

from soss.core.datatypes import Record
from soss.core.pytree import tree_leading_dim
from soss.core.typing import PRNGKey, typecheck
from soss.inference.joint import JointDistribution

__all__ = [
    "predict",
]


@typecheck
def predict(key: PRNGKey, target, draws, **arguments) -> Record:
    """
    Simulates `target` once per draw in `draws`, with the names `draws`
    holds fixed to the drawn values.

    `target` is a `JointDistribution` (whose arguments are reused, and may
    be overridden by `arguments`) or a `Model` (applied to `arguments`).
    `draws` is a record whose leaves carry a leading axis of draws, e.g. the
    output of `sample_n`. Returns one record per draw, stacked the same way.
    """
    if isinstance(target, JointDistribution):
        model = target.model
        arguments = {**target.arguments(), **arguments}
    else:
        model = target
    fixed = model.predictive(*draws.keys())
    n = tree_leading_dim(draws)
    keys = jax.random.split(key, n)

    def _one(key, draw):
        return fixed(**arguments, **dict(draw.items())).sample(key)

    return jax.vmap(_one)(keys, Record(draws))
