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

"""This module contains a set of types and type aliases which are used
throughout the codebase.

Type annotations in the codebase are exported out of this module for
consistency.
"""

import typing

import beartype.typing as btyping
import jaxtyping as jtyping
from beartype import BeartypeConf, beartype

conf = BeartypeConf(is_color=False)
typecheck = beartype(conf=conf)

PRNGKey = typing.Union[
    jtyping.Key[jtyping.Array, ""],
    jtyping.UInt32[jtyping.Array, "2"],
]
FloatArray = typing.Union[float, jtyping.Float[jtyping.Array, "..."]]
Score = typing.Union[float, jtyping.Float[jtyping.Array, ""]]
ArrayLike = jtyping.ArrayLike
Any = typing.Any
Union = typing.Union
Callable = btyping.Callable
Sequence = btyping.Sequence
Mapping = btyping.Mapping
Tuple = btyping.Tuple
Dict = btyping.Dict
List = btyping.List
Iterable = btyping.Iterable
Hashable = btyping.Hashable
Optional = btyping.Optional
Name = str

__all__ = [
    "PRNGKey",
    "FloatArray",
    "Score",
    "ArrayLike",
    "Any",
    "Union",
    "Callable",
    "Sequence",
    "Mapping",
    "Tuple",
    "Dict",
    "List",
    "Iterable",
    "Hashable",
    "Optional",
    "Name",
    "typecheck",
]
