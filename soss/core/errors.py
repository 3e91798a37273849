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

"""Exceptions raised by `soss`.

Every exception derives from `SossError`, and additionally from the builtin
exception a caller would reasonably expect (`KeyError` for absent names,
`TypeError` for bad arguments, and so on).
"""

__all__ = [
    "SossError",
    "ModelSyntaxError",
    "DuplicateSiteError",
    "ArgumentError",
    "MissingArgumentError",
    "UnknownArgumentError",
    "ShapeMismatchError",
    "MissingObservationError",
    "UnknownSiteError",
    "NotADistributionError",
    "SymbolicError",
]


class SossError(Exception):
    pass


class ModelSyntaxError(SossError, SyntaxError):
    """A model body contains a statement which is not a sampling statement
    (`name <~ dist`) or a single-name assignment (`name = expr`)."""

    def __init__(self, msg, lineno=None):
        if lineno is not None:
            msg = f"line {lineno}: {msg}"
        super().__init__(msg)
        self.lineno = lineno


class DuplicateSiteError(SossError, ValueError):
    """Attempt to declare a name twice in a model.

    Sites, assignments and free variables share a single namespace: any
    given name may only be defined once.
    """

    def __init__(self, name):
        super().__init__(f"'{name}' is declared more than once.")
        self.name = name


class ArgumentError(SossError, TypeError):
    pass


class MissingArgumentError(ArgumentError):
    def __init__(self, model_name, missing):
        names = ", ".join(missing)
        super().__init__(f"Model '{model_name}' is missing arguments: {names}.")
        self.missing = tuple(missing)


class UnknownArgumentError(ArgumentError):
    def __init__(self, model_name, unknown):
        names = ", ".join(unknown)
        super().__init__(f"Model '{model_name}' got unknown arguments: {names}.")
        self.unknown = tuple(unknown)


class ShapeMismatchError(SossError, ValueError):
    pass


class MissingObservationError(SossError, KeyError):
    def __init__(self, missing):
        super().__init__(tuple(missing))
        self.missing = tuple(missing)

    def __str__(self):
        return f"No values provided for sites: {', '.join(self.missing)}."


class UnknownSiteError(SossError, KeyError):
    def __init__(self, name):
        super().__init__(name)
        self.name = name

    def __str__(self):
        return f"'{self.name}' is not declared in the model."


class NotADistributionError(SossError, TypeError):
    def __init__(self, site, value):
        super().__init__(
            f"The right-hand side of site '{site}' evaluated to "
            f"{type(value).__name__}, not a Distribution."
        )
        self.site = site


class SymbolicError(SossError, NotImplementedError):
    pass
