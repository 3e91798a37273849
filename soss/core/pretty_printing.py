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

import jax
import jax.numpy as jnp
import numpy as np


def simple_dtype(dtype) -> str:
    if isinstance(dtype, type):
        dtype = dtype(0).dtype
    dtype = dtype.name
    dtype = dtype.replace("complex", "c")
    dtype = dtype.replace("double", "d")
    dtype = dtype.replace("float", "f")
    dtype = dtype.replace("uint", "u")
    dtype = dtype.replace("int", "i")
    return dtype


def _pformat_array(obj, short_arrays):
    if isinstance(obj, jax.core.Tracer):
        return f"traced {simple_dtype(obj.dtype)}[{','.join(map(str, obj.shape))}]"
    if obj.ndim == 0 or not short_arrays:
        return repr(obj.tolist())
    dtype_str = simple_dtype(obj.dtype)
    shape_str = ",".join(map(str, obj.shape))
    backend = "(numpy) " if isinstance(obj, np.ndarray) else ""
    return f"{backend}{dtype_str}[{shape_str}]"


def tree_pformat(obj, short_arrays: bool = True) -> str:
    """Formats a leaf value for display, condensing non-scalar arrays down to
    their dtype and shape (e.g. `f32[3,2]`)."""
    if isinstance(obj, (np.ndarray, jnp.ndarray)):
        return _pformat_array(obj, short_arrays)
    return repr(obj)
