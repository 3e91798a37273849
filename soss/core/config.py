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

"""Library-wide options, set with `soss.config.update(name, value)` in the
same way as `jax.config.update`.

| Option         | Default | Meaning                                                    |
| -------------- | ------- | ---------------------------------------------------------- |
| `jit`          | `True`  | Wrap generated procedures in `jax.jit`.                    |
| `check_shapes` | `True`  | Draw once with index checks when binding model arguments.  |
"""

from contextlib import contextmanager

__all__ = [
    "Config",
    "config",
]

DEFAULTS = {
    "jit": True,
    "check_shapes": True,
}


class Config:
    def __init__(self, **values):
        values = {**DEFAULTS, **values}
        object.__setattr__(self, "_values", values)

    def __getattr__(self, name):
        try:
            return self._values[name]
        except KeyError:
            raise AttributeError(f"Unknown soss option '{name}'.") from None

    def __setattr__(self, name, value):
        self.update(name, value)

    def update(self, name, value):
        if name not in self._values:
            raise AttributeError(f"Unknown soss option '{name}'.")
        self._values[name] = value

    def values(self):
        return dict(self._values)

    @contextmanager
    def override(self, **values):
        previous = self.values()
        for (name, value) in values.items():
            self.update(name, value)
        try:
            yield self
        finally:
            self._values.update(previous)


config = Config()
