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

"""The inference primitives a `JointDistribution` exposes, and the small
runtime functions generated procedures call at each sampling statement."""

import enum

from soss.distributions.distribution import as_distribution

__all__ = [
    "Primitive",
]


class Primitive(enum.Enum):
    SAMPLE = "sample"
    LOGDENSITY = "logdensity"
    WEIGHTED_SAMPLE = "weighted_sample"
    SYMBOLIC_LOGDENSITY = "symbolic_logdensity"

    def __str__(self):
        return self.value


#####
# Runtime
#####


def draw(site, dist, key):
    return as_distribution(site, dist).sample(key)


def score(site, dist, value):
    return as_distribution(site, dist).logpdf(value)


def observe(site, dist, key, value):
    return as_distribution(site, dist).weighted_sample(key, value)
