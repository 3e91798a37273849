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
Generates the Python source of an inference procedure from a model.

Each primitive is emitted as one straight-line function

    def _soss_<primitive>(_soss_key, _soss_args, _soss_observed): ...

whose body has one block per statement of the model, in declaration order.
Static arguments are baked in from the namespace the source is executed in;
dynamic arguments and observations are read from the `_soss_args` and
`_soss_observed` dicts. All generated names carry the reserved `_soss_`
prefix, so they never collide with names declared by a model.
"""

import linecache

import jax

from soss.compiler.primitives import Primitive, draw, observe, score
from soss.core.datatypes import Record
from soss.language.statements import Sample

__all__ = [
    "generate",
    "compile_procedure",
]

INDENT = "    "


def _header(primitive):
    return f"def _soss_{primitive}(_soss_key, _soss_args, _soss_observed):"


def _prologue(m, static):
    lines = []
    for a in m.args:
        if a in static:
            lines.append(f"{a} = _soss_static[{a!r}]")
        else:
            lines.append(f"{a} = _soss_args[{a!r}]")
    return lines


def _record(m):
    items = ", ".join(f"({n!r}, {n})" for n in m.names)
    return f"_soss_Record([{items}])"


def _split():
    return "_soss_key, _soss_subkey = _soss_split(_soss_key)"


#####
# Primitives
#####


def _sample_body(m, observed):
    lines = []
    for s in m.statements:
        if isinstance(s, Sample):
            lines.append(_split())
            lines.append(f"{s.name} = _soss_draw({s.name!r}, {s.source}, _soss_subkey)")
        else:
            lines.append(f"{s.name} = {s.source}")
    lines.append(f"return {_record(m)}")
    return lines


def _logdensity_body(m, observed):
    lines = ["_soss_logp = 0.0"]
    for s in m.statements:
        if isinstance(s, Sample):
            value = f"_soss_observed[{s.name!r}]"
            score = f"_soss_score({s.name!r}, {s.source}, {value})"
            lines.append(f"_soss_logp = _soss_logp + {score}")
            lines.append(f"{s.name} = {value}")
        else:
            lines.append(f"{s.name} = {s.source}")
    lines.append("return _soss_logp")
    return lines


def _weighted_sample_body(m, observed):
    # Every site splits the key, observed or not, so the draws of the
    # unobserved sites match `sample` under the same key.
    lines = ["_soss_weight = 0.0"]
    for s in m.statements:
        if isinstance(s, Sample):
            lines.append(_split())
            if s.name in observed:
                value = f"_soss_observed[{s.name!r}]"
                lines.append(
                    f"_soss_w, {s.name} = _soss_observe({s.name!r}, {s.source}, "
                    f"_soss_subkey, {value})"
                )
                lines.append("_soss_weight = _soss_weight + _soss_w")
            else:
                lines.append(
                    f"{s.name} = _soss_draw({s.name!r}, {s.source}, _soss_subkey)"
                )
        else:
            lines.append(f"{s.name} = {s.source}")
    lines.append(f"return _soss_weight, {_record(m)}")
    return lines


BODIES = {
    Primitive.SAMPLE: _sample_body,
    Primitive.LOGDENSITY: _logdensity_body,
    Primitive.WEIGHTED_SAMPLE: _weighted_sample_body,
}


def generate(m, primitive, static, observed=()):
    """Returns the source of `primitive` specialized to `m`, the names of its
    static arguments and the names of the observed sites."""
    body = _prologue(m, static) + BODIES[primitive](m, frozenset(observed))
    lines = [_header(primitive)] + [INDENT + line for line in body]
    return "\n".join(lines) + "\n"


def compile_procedure(m, primitive, source, static):
    """Executes generated `source` in the model's environment and returns
    the resulting Python function."""
    filename = f"<soss:{m.name}.{primitive}:{id(source):x}>"
    # Registering the source lets tracebacks show generated lines.
    linecache.cache[filename] = (len(source), None, source.splitlines(True), filename)
    namespace = dict(m.env)
    namespace.update(
        _soss_static=dict(static),
        _soss_split=jax.random.split,
        _soss_draw=draw,
        _soss_score=score,
        _soss_observe=observe,
        _soss_Record=Record,
    )
    code = compile(source, filename, "exec")
    exec(code, namespace)
    return namespace[f"_soss_{primitive}"]
