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
`soss` is a probabilistic programming library in which models are
*symbolic* objects: a model is an ordered list of sampling statements and
assignments, and every inference primitive is generated from that structure
and compiled with [JAX](https://github.com/google/jax) on first use.

## High-level

- Models are written as decorated functions whose bodies are read, never
  run: `x <~ dist` declares a random site and `y = expr` a deterministic one.
- Applying a model to its free variables gives a `JointDistribution`, which
  exposes the inference primitives below as specialized, cached procedures.

  | Primitive             | Semantics (informal)                                                    |
  | --------------------- | ----------------------------------------------------------------------- |
  | `sample`              | Draw a record of every site and assignment                              |
  | `logdensity`          | Log joint density of a record                                           |
  | `weighted_sample`     | Draw the unobserved sites, score the observed ones, return `(w, record)` |
  | `symbolic_logdensity` | Log density from a simplified `sympy` expression, evaluated with JAX    |

- Models compose (`m1 >> m2`), nest (a joint distribution is a distribution),
  and can be turned into posterior predictive models (`m.predictive("p")`).
"""

__version__ = "0.1.0"

# Public exports.
from .core import *
from .distributions import *
from .language import *
from .inference import *
from .compiler import Primitive, cache_info, clear_cache

from .core.console import pretty
from .core.config import config


def source(jd, primitive=Primitive.SAMPLE, observed=None):
    """The generated source of `primitive` for the joint distribution `jd`."""
    return jd.source(primitive, observed)
