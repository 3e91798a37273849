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
Reads the body of a decorated Python function as a model.

A sampling statement is written `x <~ Normal(0, 1)`, which Python parses as
the comparison `x < (~Normal(0, 1))`; the parser recognizes that shape in the
syntax tree and never executes the function. Any other statement except a
single-name assignment, a docstring or `pass` is rejected.
"""

import ast
import inspect
import logging
import textwrap
from collections import ChainMap

from soss.core.errors import ModelSyntaxError
from soss.language.statements import Assign, Sample

logger = logging.getLogger(__name__)

__all__ = [
    "parse_function",
    "parse_statement",
]


def _function_def(fn):
    try:
        lines, start = inspect.getsourcelines(fn)
    except (OSError, TypeError) as e:
        raise ModelSyntaxError(
            f"Cannot read the source of {fn!r}; models must be defined in a file."
        ) from e
    tree = ast.parse(textwrap.dedent("".join(lines)))
    node = tree.body[0]
    if not isinstance(node, ast.FunctionDef):
        raise ModelSyntaxError("A model must be defined with a plain `def`.")
    return node, start


def _arguments(node, lineno):
    spec = node.args
    if spec.vararg is not None or spec.kwarg is not None:
        raise ModelSyntaxError(
            "Models do not accept `*args` or `**kwargs`.", lineno(node)
        )
    params = spec.posonlyargs + spec.args + spec.kwonlyargs
    return tuple(a.arg for a in params)


def _is_sample(node):
    return (
        isinstance(node, ast.Compare)
        and len(node.ops) == 1
        and isinstance(node.ops[0], ast.Lt)
        and isinstance(node.comparators[0], ast.UnaryOp)
        and isinstance(node.comparators[0].op, ast.Invert)
    )


def parse_statement(node, lineno=None):
    """Turns one statement of a model body into a `Sample` or an `Assign`.
    Returns `None` for statements with no meaning in a model (`pass`)."""
    if isinstance(node, ast.Pass):
        return None

    if isinstance(node, ast.Expr) and _is_sample(node.value):
        compare = node.value
        if not isinstance(compare.left, ast.Name):
            raise ModelSyntaxError(
                "The left-hand side of `<~` must be a single name.", lineno
            )
        return Sample.from_ast(compare.left.id, compare.comparators[0].operand, lineno)

    if isinstance(node, ast.Assign):
        if len(node.targets) != 1 or not isinstance(node.targets[0], ast.Name):
            raise ModelSyntaxError("Assignments must bind a single name.", lineno)
        return Assign.from_ast(node.targets[0].id, node.value, lineno)

    if isinstance(node, ast.Return):
        raise ModelSyntaxError(
            "Models return the record of their sites; `return` is not allowed.",
            lineno,
        )

    kind = type(node).__name__
    raise ModelSyntaxError(
        f"`{kind}` statements are not allowed in a model body; "
        "use `name <~ dist` or `name = expr`.",
        lineno,
    )


def _environment(fn):
    # Closure variables shadow module globals, as they do in Python.
    closure = inspect.getclosurevars(fn)
    return ChainMap(dict(closure.nonlocals), fn.__globals__)


def _defaults(fn):
    signature = inspect.signature(fn)
    return {
        name: p.default
        for (name, p) in signature.parameters.items()
        if p.default is not inspect.Parameter.empty
    }


def parse_function(fn):
    """
    Returns `(name, args, statements, env, defaults, doc)` for a model
    function. Line numbers in errors refer to the file `fn` is defined in.
    """
    node, start = _function_def(fn)
    first = start - 1

    def lineno(n):
        return n.lineno + first

    args = _arguments(node, lineno)
    body = node.body
    doc = ast.get_docstring(node)
    if doc is not None:
        body = body[1:]

    statements = []
    for stmt in body:
        parsed = parse_statement(stmt, lineno(stmt))
        if parsed is not None:
            statements.append(parsed)

    logger.debug("Parsed model '%s' with %d statements.", fn.__name__, len(statements))
    return (
        fn.__name__,
        args,
        tuple(statements),
        _environment(fn),
        _defaults(fn),
        doc,
    )
