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

import ast
from dataclasses import dataclass, field

from soss.core.typing import Any, Optional

__all__ = [
    "Statement",
    "Sample",
    "Assign",
]

#####
# Statements
#####


@dataclass(frozen=True)
class Statement:
    """
    One line of a model: a name and the expression which defines it.

    Statements compare and hash by their name and the normalized source of
    their expression (`ast.unparse`), so two models written the same way
    share compiled procedures.
    """

    name: str
    source: str
    expr: Any = field(default=None, compare=False, hash=False, repr=False)
    lineno: Optional[int] = field(default=None, compare=False, hash=False, repr=False)

    def __post_init__(self):
        expr = self.expr
        if expr is None:
            expr = ast.parse(self.source.strip(), mode="eval").body
            object.__setattr__(self, "expr", expr)
        object.__setattr__(self, "source", ast.unparse(expr))

    @classmethod
    def from_ast(cls, name, expr, lineno=None):
        return cls(name, ast.unparse(expr), expr, lineno)

    def free_names(self):
        """Names read by the expression, excluding names bound inside it
        (lambda parameters, comprehension targets)."""
        loaded, bound = set(), set()
        for node in ast.walk(self.expr):
            if isinstance(node, ast.Name):
                if isinstance(node.ctx, ast.Load):
                    loaded.add(node.id)
                else:
                    bound.add(node.id)
            elif isinstance(node, ast.arg):
                bound.add(node.arg)
        return frozenset(loaded - bound)

    def declaration(self):
        raise NotImplementedError


@dataclass(frozen=True)
class Sample(Statement):
    """A sampling statement, `name <~ distribution`."""

    def declaration(self):
        return f"{self.name} <~ {self.source}"


@dataclass(frozen=True)
class Assign(Statement):
    """A deterministic assignment, `name = expression`."""

    def declaration(self):
        return f"{self.name} = {self.source}"
