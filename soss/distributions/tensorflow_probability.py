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

"""Wrappers which expose TensorFlow Probability distributions as `soss`
distributions, so any `tfd` distribution can appear on the right-hand side
of a sampling statement.

Requires the `tfp` extra (`pip install soss[tfp]`).
"""

from dataclasses import dataclass

import jax.numpy as jnp
from tensorflow_probability.substrates import jax as tfp

from soss.core.typing import Any, Callable, Dict, Tuple
from soss.distributions.distribution import Distribution

tfd = tfp.distributions

__all__ = [
    "TFPDistribution",
    "tfp_distribution",
    "tfd",
    "TFPNormal",
    "TFPGumbel",
    "TFPVonMises",
    "TFPInverseGamma",
]


@dataclass
class TFPDistribution(Distribution):
    make: Callable[..., Any]
    args: Tuple
    kwargs: Dict

    def flatten(self):
        return (self.args, self.kwargs), (self.make,)

    @classmethod
    def unflatten(cls, data, xs):
        return cls(data[0], *xs)

    def instance(self):
        return self.make(*self.args, **self.kwargs)

    def sample(self, key):
        return self.instance().sample(seed=key)

    def logpdf(self, v):
        return jnp.sum(self.instance().log_prob(v))


def tfp_distribution(make: Callable[..., Any]):
    """Turns a `tfd` constructor into a `soss` distribution constructor."""

    def constructor(*args, **kwargs):
        return TFPDistribution(make, args, kwargs)

    return constructor


#####################
# Wrapper instances #
#####################

TFPNormal = tfp_distribution(tfd.Normal)
"""A `tfp_distribution` which wraps the [`tfd.Normal`](https://www.tensorflow
.org/probability/api_docs/python/tfp/distributions/Normal) distribution."""

TFPGumbel = tfp_distribution(tfd.Gumbel)
"""A `tfp_distribution` which wraps the [`tfd.Gumbel`](https://www.tensorflow
.org/probability/api_docs/python/tfp/distributions/Gumbel) distribution."""

TFPVonMises = tfp_distribution(tfd.VonMises)
"""A `tfp_distribution` which wraps the [`tfd.VonMises`](https://www.tensorfl
ow.org/probability/api_docs/python/tfp/distributions/VonMises) distribution."""

TFPInverseGamma = tfp_distribution(tfd.InverseGamma)
"""A `tfp_distribution` which wraps the [`tfd.InverseGamma`](https://www.tens
orflow.org/probability/api_docs/python/tfp/distributions/InverseGamma)
distribution."""
