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

from collections.abc import Mapping

import rich.tree as rich_tree

from soss.core.errors import UnknownSiteError
from soss.core.pretty_printing import tree_pformat
from soss.core.pytree import Pytree

__all__ = [
    "Record",
]

#####
# Record
#####


class Record(Pytree, Mapping):
    """
    An immutable, ordered mapping from names to values.

    Records are what sampling returns and what log-density evaluation
    consumes. They are pytrees: the names are static structure, the values
    are leaves, so records pass through `jax.jit` and `jax.vmap` unchanged
    (e.g. `sample_n` returns one `Record` whose leaves carry a leading axis).

    Values are read with `r[name]`. Attribute access (`r.name`) is a
    shorthand which only reaches names that are not also methods: a site
    called `items`, `keys`, `values`, `get`, `names`, `merge`, `select` or
    `drop` is only available by indexing.
    """

    def __init__(self, *args, **kwargs):
        data = dict(*args, **kwargs)
        object.__setattr__(self, "_names", tuple(data.keys()))
        object.__setattr__(self, "_values", tuple(data.values()))

    # Implement the `Pytree` interface methods.
    def flatten(self):
        return self._values, self._names

    @classmethod
    def unflatten(cls, data, xs):
        return cls(zip(data, xs))

    # Implement the `Mapping` interface methods.
    def __getitem__(self, k):
        try:
            idx = self._names.index(k)
        except ValueError:
            raise UnknownSiteError(k) from None
        return self._values[idx]

    def __iter__(self):
        return iter(self._names)

    def __len__(self):
        return len(self._names)

    def __contains__(self, k):
        return k in self._names

    def __getattr__(self, k):
        if k.startswith("_"):
            raise AttributeError(k)
        try:
            return self[k]
        except UnknownSiteError:
            raise AttributeError(k) from None

    def __setattr__(self, k, v):
        raise AttributeError("Record is immutable.")

    def __delattr__(self, k):
        raise AttributeError("Record is immutable.")

    def __repr__(self):
        inner = ", ".join(f"{k}={v!r}" for (k, v) in self.items())
        return f"Record({inner})"

    def __rich__(self):
        tree = rich_tree.Tree("[bold](Record)")
        for (k, v) in self.items():
            if isinstance(v, Record):
                subtree = v.__rich__()
                subtree.label = f"[bold]:{k} {subtree.label}"
                tree.add(subtree)
            else:
                tree.add(f"[bold]:{k}[/bold] {tree_pformat(v)}")
        return tree

    def names(self):
        return self._names

    def merge(self, other):
        """Returns a new record with the entries of `other` overriding (and
        appended after) the entries of `self`."""
        data = dict(self.items())
        data.update(other.items())
        return Record(data)

    def select(self, *names):
        return Record((k, self[k]) for k in names)

    def drop(self, *names):
        return Record((k, v) for (k, v) in self.items() if k not in names)
