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
Specialization of inference primitives, and the cache of specialized
procedures.

A procedure is specialized to a `SpecializationKey`: the model, the
primitive, the values of the static arguments, the structure, shapes and
dtypes of the dynamic arguments and of the observations, and whether
procedures are wrapped in `jax.jit`. Looking up a key either returns the
cached procedure or generates, compiles and caches a new one; the cache is
safe to use from several threads, and each key is built exactly once.
"""

import functools
import logging
import threading
from dataclasses import dataclass

import jax
from jax.experimental import checkify
from rich.markup import escape

from soss.compiler import codegen
from soss.compiler.primitives import Primitive
from soss.core.config import config
from soss.core.specialization import shape_descriptor, static_descriptor
from soss.core.typing import Any, Callable, Hashable, Tuple

logger = logging.getLogger(__name__)

__all__ = [
    "SpecializationKey",
    "SpecializedProcedure",
    "ProcedureCache",
    "CacheInfo",
    "specialize",
    "cache_info",
    "clear_cache",
]


@dataclass(frozen=True)
class SpecializationKey:
    model: Hashable
    primitive: Primitive
    static: Tuple
    args: Tuple
    observed: Tuple
    jit: bool

    def static_values(self):
        return dict(self.static)

    def observed_names(self):
        return tuple(name for (name, _, _) in self.observed)


@dataclass
class SpecializedProcedure:
    key: SpecializationKey
    source: Any
    fn: Callable

    def __call__(self, key, args, observed):
        return self.fn(key, args, observed)

    @functools.cached_property
    def checked(self):
        """`fn` with out-of-bounds index checks; returns `(error, result)`."""
        checked = checkify.checkify(self.fn, errors=checkify.index_checks)
        return jax.jit(checked) if self.key.jit else checked

    def __rich__(self):
        source = escape(str(self.source))
        return f"[bold](SpecializedProcedure)[/bold] {self.key.primitive}\n{source}"


@dataclass(frozen=True)
class CacheInfo:
    hits: int
    misses: int
    size: int


#####
# Builders
#####


def _build_generated(key):
    m = key.model
    static = key.static_values()
    source = codegen.generate(m, key.primitive, static, key.observed_names())
    logger.debug("Generated %s for model '%s':\n%s", key.primitive, m.name, source)
    fn = codegen.compile_procedure(m, key.primitive, source, static)
    return source, fn


def _builder(primitive):
    if primitive is Primitive.SYMBOLIC_LOGDENSITY:
        from soss.symbolic.procedure import build_symbolic_logdensity

        return build_symbolic_logdensity
    return _build_generated


def build(key) -> SpecializedProcedure:
    source, fn = _builder(key.primitive)(key)
    if key.jit:
        fn = jax.jit(fn)
    return SpecializedProcedure(key, source, fn)


#####
# Cache
#####


class ProcedureCache:
    def __init__(self):
        self._procedures = {}
        self._locks = {}
        self._registry_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def _count(self, hit):
        with self._stats_lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1

    def _lock_for(self, key):
        with self._registry_lock:
            return self._locks.setdefault(key, threading.Lock())

    def get(self, key, build=build):
        procedure = self._procedures.get(key)
        if procedure is not None:
            self._count(hit=True)
            return procedure
        # One lock per key: concurrent requests for the same key wait for a
        # single build, requests for other keys proceed.
        with self._lock_for(key):
            procedure = self._procedures.get(key)
            if procedure is not None:
                self._count(hit=True)
                return procedure
            logger.info(
                "Specializing %s of model '%s' (jit=%s).",
                key.primitive,
                key.model.name,
                key.jit,
            )
            procedure = build(key)
            self._procedures[key] = procedure
            self._count(hit=False)
            return procedure

    def info(self):
        with self._stats_lock:
            return CacheInfo(self._hits, self._misses, len(self._procedures))

    def clear(self):
        with self._registry_lock, self._stats_lock:
            self._procedures.clear()
            self._locks.clear()
            self._hits = 0
            self._misses = 0


_cache = ProcedureCache()


def specialize(m, primitive, static, args, observed) -> SpecializedProcedure:
    key = SpecializationKey(
        m,
        primitive,
        static_descriptor(static),
        shape_descriptor(args),
        shape_descriptor(observed),
        bool(config.jit),
    )
    return _cache.get(key)


def cache_info() -> CacheInfo:
    return _cache.info()


def clear_cache():
    _cache.clear()
