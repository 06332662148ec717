# Copyright 2024 The Tensor Contracts Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Configuration values that can be overridden for a delimited scope."""

from __future__ import annotations

import contextlib
import contextvars
from typing import Generic, TypeVar

T = TypeVar("T")


class ContextualValue(Generic[T]):
  """A configuration value that can only be changed for a delimited scope.

  Reads are allowed anywhere. Changes apply for the duration of a ``with``
  block and are undone when the block exits, e.g.

  ::

    with config.error_prefix.set_scoped("In the encoder: "):
      tc.assert_tensor(x).has_dims([8, 16])

  The value is stored in a `contextvars.ContextVar`, so a scope opened in one
  thread or asyncio task is not visible to the others.
  """

  def __init__(self, initial_value: T, name: str):
    """Creates the value.

    Args:
      initial_value: The value outside of any scope.
      name: Qualified name of the value, used in its repr.
    """
    self._var = contextvars.ContextVar(name, default=initial_value)

  def __repr__(self) -> str:
    return f"<ContextualValue {self._var.name}={self.get()!r}>"

  def get(self) -> T:
    """Returns the value in the current context."""
    return self._var.get()

  @contextlib.contextmanager
  def set_scoped(self, new_value: T):
    # pylint: disable=g-doc-return-or-yield
    """Returns a context manager in which the value is ``new_value``.

    Args:
      new_value: The value to use inside the ``with`` block.
    """
    # pylint: enable=g-doc-return-or-yield
    token = self._var.set(new_value)
    try:
      yield
    finally:
      self._var.reset(token)
