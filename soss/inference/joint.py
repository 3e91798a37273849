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
This module contains `JointDistribution`, the result of applying a `Model`
to values for its free variables.

A joint distribution is itself a `Distribution` over records: it can be
sampled and scored, and it can appear on the right-hand side of a sampling
statement in another model, where its value is a nested `Record`.
"""

import logging

import jax
import rich.tree as rich_tree
from jax.experimental import checkify

from soss.compiler.primitives import Primitive
from soss.compiler.specializer import specialize
from soss.core.config import config
from soss.core.datatypes import Record
from soss.core.errors import MissingObservationError, ShapeMismatchError, SossError
from soss.core.pretty_printing import tree_pformat
from soss.core.specialization import (
    all_concrete,
    as_dynamic_value,
    is_static_value,
    static_descriptor,
)
from soss.core.typing import Mapping, PRNGKey, Score, Tuple, typecheck
from soss.distributions.distribution import Distribution

logger = logging.getLogger(__name__)

__all__ = [
    "JointDistribution",
]


class JointDistribution(Distribution):
    def __init__(self, model, arguments):
        arguments = model.bind(**arguments)
        static = {k: v for (k, v) in arguments.items() if is_static_value(v)}
        dynamic = {
            k: as_dynamic_value(v)
            for (k, v) in arguments.items()
            if not is_static_value(v)
        }
        self._set(model, static, dynamic)
        if config.check_shapes and all_concrete(self.dynamic):
            self._check_shapes()

    def _set(self, model, static, dynamic):
        self.model = model
        self.static = static
        self.dynamic = dynamic

    # Static arguments are structure, dynamic arguments are leaves.
    def flatten(self):
        return (self.dynamic,), (self.model, static_descriptor(self.static))

    @classmethod
    def unflatten(cls, data, xs):
        model, static = data
        jd = cls.__new__(cls)
        jd._set(model, dict(static), xs[0])
        return jd

    def _check_shapes(self):
        logger.debug("Checking argument shapes of model '%s'.", self.model.name)
        # One draw with index checks surfaces incompatible argument shapes
        # when the model is applied, not at the first draw. Out-of-range
        # indices are otherwise clamped by JAX.
        procedure = self._procedure(Primitive.SAMPLE, {})
        try:
            error, _ = procedure.checked(jax.random.PRNGKey(0), self.dynamic, {})
            error.throw()
        except (SossError, jax.errors.ConcretizationTypeError):
            raise
        except (TypeError, ValueError, IndexError, checkify.JaxRuntimeError) as e:
            raise ShapeMismatchError(
                f"Arguments of model '{self.model.name}' have incompatible shapes: {e}"
            ) from e

    def _procedure(self, primitive, observed):
        return specialize(self.model, primitive, self.static, self.dynamic, observed)

    def _observations(self, record, require_all):
        if not isinstance(record, Mapping):
            raise TypeError(
                f"Expected a Record of values for model '{self.model.name}', "
                f"got {type(record).__name__}."
            )
        sites = self.model.sites
        if require_all:
            missing = [s for s in sites if s not in record]
            if missing:
                raise MissingObservationError(missing)
        # Entries for assignments or unknown names are ignored.
        return {s: as_dynamic_value(record[s]) for s in sites if s in record}

    def arguments(self):
        values = {**self.static, **self.dynamic}
        return {a: values[a] for a in self.model.args}

    ###########
    # Queries #
    ###########

    @property
    def sites(self):
        return self.model.sites

    @property
    def names(self):
        return self.model.names

    def __repr__(self):
        args = ", ".join(
            f"{k}={tree_pformat(v)}" for (k, v) in self.arguments().items()
        )
        return f"JointDistribution({self.model.name}({args}))"

    def __rich__(self):
        tree = rich_tree.Tree(f"[bold](JointDistribution) {self.model.name}")
        for (k, v) in self.arguments().items():
            tree.add(f"[bold]:{k}[/bold] {tree_pformat(v)}")
        tree.add(self.model.__rich__())
        return tree

    ##############
    # Primitives #
    ##############

    @typecheck
    def sample(self, key: PRNGKey) -> Record:
        """Draws every site in declaration order. The record holds the sites
        and the assignments."""
        return self._procedure(Primitive.SAMPLE, {})(key, self.dynamic, {})

    def logdensity(self, record) -> Score:
        """Log joint density of a record holding a value for every site."""
        observed = self._observations(record, require_all=True)
        procedure = self._procedure(Primitive.LOGDENSITY, observed)
        return procedure(None, self.dynamic, observed)

    logpdf = logdensity

    def weighted_sample(self, key: PRNGKey, partial=None) -> Tuple:
        """
        Draws the sites absent from `partial` and scores the ones present.
        Returns `(weight, record)`, where `weight` is the log density of the
        observed sites given everything drawn before them.

        The key is split exactly as in `sample`, so with nothing observed the
        record equals `sample(key)` and the weight is zero.
        """
        if partial is None:
            partial = Record()
        observed = self._observations(partial, require_all=False)
        procedure = self._procedure(Primitive.WEIGHTED_SAMPLE, observed)
        return procedure(key, self.dynamic, observed)

    def sample_n(self, key: PRNGKey, n: int) -> Record:
        """`n` independent draws, as one record whose leaves have a leading
        axis of size `n`."""
        keys = jax.random.split(key, n)
        return jax.vmap(self.sample)(keys)

    def symbolic_logdensity(self, record) -> Score:
        """Log density computed from a simplified symbolic expression.
        Agrees with `logdensity` for values in the support of every site."""
        observed = self._observations(record, require_all=True)
        procedure = self._procedure(Primitive.SYMBOLIC_LOGDENSITY, observed)
        return procedure(None, self.dynamic, observed)

    def source(self, primitive=Primitive.SAMPLE, observed=None):
        """The generated source of `primitive`, for observations shaped like
        `observed`."""
        primitive = Primitive(primitive)
        if observed is None:
            observed = Record()
        require_all = primitive in (Primitive.LOGDENSITY, Primitive.SYMBOLIC_LOGDENSITY)
        observed = self._observations(observed, require_all=require_all)
        return self._procedure(primitive, observed).source
