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
This module contains the `Model` class: an immutable, symbolic description
of a generative model as an ordered list of statements over a set of free
variables (its arguments).

A `Model` never runs anything itself. Applying it to arguments produces a
`JointDistribution`, whose inference primitives are specialized to the
model's structure by `soss.compiler`.
"""

import builtins
import functools
from collections import ChainMap
from collections.abc import Mapping
from dataclasses import dataclass, field

import rich.tree as rich_tree
from rich.markup import escape

from soss.core.errors import (
    ArgumentError,
    DuplicateSiteError,
    MissingArgumentError,
    ModelSyntaxError,
    UnknownArgumentError,
    UnknownSiteError,
)
from soss.core.typing import Any, Name, Tuple, typecheck
from soss.language.parser import parse_function
from soss.language.statements import Assign, Sample, Statement

__all__ = [
    "Model",
    "model",
    "compose",
    "RESERVED_PREFIX",
]

RESERVED_PREFIX = "_soss_"


def _env_identity(env):
    # Module namespaces compare by identity, closure variables by the
    # identity of their values; empty layers are ignored.
    maps = env.maps if isinstance(env, ChainMap) else [env]
    key = []
    for m in maps:
        if isinstance(m, ChainMap):
            key.extend(_env_identity(m))
        elif "__builtins__" in m or "__name__" in m:
            key.append(id(m))
        elif m:
            key.append(tuple(sorted((k, id(v)) for (k, v) in m.items())))
    return tuple(key)


def _defaults_identity(defaults):
    # Unhashable defaults (arrays, lists) are keyed by identity.
    key = []
    for (k, v) in defaults:
        try:
            hash(v)
        except TypeError:
            v = ("id", id(v))
        key.append((k, v))
    return tuple(key)


#####
# Model
#####


@dataclass(frozen=True, eq=False)
class Model:
    name: str
    args: Tuple
    statements: Tuple
    env: Mapping = field(default_factory=lambda: ChainMap({}, vars(builtins)))
    defaults: Tuple = ()
    doc: Any = None

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "statements", tuple(self.statements))
        defaults = self.defaults
        if isinstance(defaults, Mapping):
            defaults = tuple(defaults.items())
        object.__setattr__(self, "defaults", tuple(defaults))
        object.__setattr__(self, "_env_key", _env_identity(self.env))
        object.__setattr__(self, "_defaults_key", _defaults_identity(self.defaults))
        self._check_names()

    def _check_names(self):
        seen = set()
        for name in self.args + tuple(s.name for s in self.statements):
            if name.startswith(RESERVED_PREFIX):
                raise ModelSyntaxError(
                    f"Names starting with '{RESERVED_PREFIX}' are reserved: '{name}'."
                )
            if name in seen:
                raise DuplicateSiteError(name)
            seen.add(name)
        for s in self.statements:
            if not isinstance(s, Statement):
                raise TypeError(f"Expected a Sample or an Assign, got {s!r}.")
        for (name, _) in self.defaults:
            if name not in self.args:
                raise UnknownArgumentError(self.name, (name,))

    # Structural equality: two models written the same way, resolving names
    # in the same environment, are the same model.
    def _identity(self):
        return (
            self.name,
            self.args,
            self.statements,
            self._defaults_key,
            self._env_key,
        )

    def __eq__(self, other):
        if not isinstance(other, Model):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self):
        return hash(self._identity())

    ###########
    # Queries #
    ###########

    @property
    def sites(self) -> Tuple:
        return tuple(s.name for s in self.statements if isinstance(s, Sample))

    @property
    def assignments(self) -> Tuple:
        return tuple(s.name for s in self.statements if isinstance(s, Assign))

    @property
    def names(self) -> Tuple:
        """Sites and assignments, in declaration order."""
        return tuple(s.name for s in self.statements)

    def defaults_dict(self):
        return dict(self.defaults)

    def statement(self, name):
        for s in self.statements:
            if s.name == name:
                return s
        raise UnknownSiteError(name)

    def dependencies(self):
        """Maps each declared name to the arguments and declared names its
        expression reads."""
        known = set(self.args) | set(self.names)
        return {s.name: s.free_names() & known for s in self.statements}

    def source(self):
        params = []
        defaults = self.defaults_dict()
        for a in self.args:
            params.append(f"{a}={defaults[a]!r}" if a in defaults else a)
        lines = [f"@model\ndef {self.name}({', '.join(params)}):"]
        if self.doc:
            lines.append(f'    """{self.doc}"""')
        lines.extend(f"    {s.declaration()}" for s in self.statements)
        if not self.statements:
            lines.append("    pass")
        return "\n".join(lines)

    def __str__(self):
        return self.source()

    def __repr__(self):
        return f"Model({self.name}({', '.join(self.args)}))"

    def __rich__(self):
        tree = rich_tree.Tree(f"[bold](Model) {self.name}({', '.join(self.args)})")
        for s in self.statements:
            tree.add(escape(s.declaration()))
        return tree

    ###############
    # Application #
    ###############

    def bind(self, *args, **kwargs):
        """Matches positional and keyword arguments to the model's free
        variables, filling in defaults. Returns a `dict` in argument order."""
        if len(args) > len(self.args):
            raise ArgumentError(
                f"Model '{self.name}' takes {len(self.args)} arguments "
                f"but {len(args)} were given."
            )
        bound = dict(zip(self.args, args))
        unknown = [k for k in kwargs if k not in self.args]
        if unknown:
            raise UnknownArgumentError(self.name, unknown)
        for (k, v) in kwargs.items():
            if k in bound:
                raise ArgumentError(
                    f"Model '{self.name}' got multiple values for argument '{k}'."
                )
            bound[k] = v
        defaults = self.defaults_dict()
        missing = []
        for a in self.args:
            if a not in bound:
                if a in defaults:
                    bound[a] = defaults[a]
                else:
                    missing.append(a)
        if missing:
            raise MissingArgumentError(self.name, missing)
        return {a: bound[a] for a in self.args}

    def __call__(self, *args, **kwargs):
        from soss.inference.joint import JointDistribution

        return JointDistribution(self, self.bind(*args, **kwargs))

    ##################
    # Transformation #
    ##################

    @typecheck
    def predictive(self, *names: Name) -> "Model":
        """
        Returns the model in which each of `names` is a free variable rather
        than a declared name. Every other statement is kept as is, so
        downstream statements read the supplied values.
        """
        for name in names:
            if name not in self.names:
                raise UnknownSiteError(name)
        names = tuple(dict.fromkeys(names))
        return _predictive(self, names)

    def __rshift__(self, other):
        return compose(self, other)


@functools.lru_cache(maxsize=None)
def _predictive(m, names):
    # Cached so repeated calls return the same model, and therefore share
    # compiled procedures.
    return Model(
        name=m.name,
        args=m.args + names,
        statements=tuple(s for s in m.statements if s.name not in names),
        env=m.env,
        defaults=m.defaults,
        doc=m.doc,
    )


@functools.lru_cache(maxsize=None)
def compose(first: Model, second: Model) -> Model:
    """
    Sequential composition. The free variables of `second` which `first`
    declares are bound to the values `first` produces; any other free
    variable of `second` stays free (shared with `first` if both have it).
    Declaring a name in both models raises `DuplicateSiteError`.
    """
    for name in second.names:
        if name in first.names or name in first.args:
            raise DuplicateSiteError(name)
    threaded = set(first.names)
    args = first.args + tuple(
        a for a in second.args if a not in threaded and a not in first.args
    )
    defaults = dict(second.defaults)
    defaults.update(first.defaults)
    defaults = tuple((k, v) for (k, v) in defaults.items() if k in args)
    return Model(
        name=f"{first.name}_{second.name}",
        args=args,
        statements=first.statements + second.statements,
        env=ChainMap(first.env, second.env),
        defaults=defaults,
    )


def model(fn) -> Model:
    """
    Decorator which turns a function into a `Model`.

    The function is never called; its body is read as a sequence of
    sampling statements (`x <~ dist`) and assignments (`y = expr`), and its
    parameters become the model's free variables.

    ```python
    @soss.model
    def linear(x, n):
        a <~ Normal(0, 1)
        b <~ Normal(0, 1)
        yhat = a * x + b
        y <~ For(n, lambda j: Normal(yhat[j], 1))
    ```
    """
    name, args, statements, env, defaults, doc = parse_function(fn)
    return Model(name, args, statements, env, defaults, doc)
