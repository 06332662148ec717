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

"""Reading shapes from array-like values.

Contracts only need an array's shape. Anything with a ``shape`` attribute
works (NumPy and JAX arrays, `jax.ShapeDtypeStruct`, PyTorch tensors, ...), as
do Python scalars and nested lists.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import jax.numpy as jnp
import numpy as np


def normalize_shape(dims: Iterable[Any]) -> tuple[int, ...]:
  """Converts a sequence of dimension sizes into a tuple of Python ints.

  Args:
    dims: Dimension sizes. NumPy integers are accepted.

  Returns:
    The sizes as a tuple of ``int``.

  Raises:
    TypeError: If ``dims`` is not iterable or a size is not an integer (for
      instance an unknown dimension represented as None).
    ValueError: If a size is negative.
  """
  if isinstance(dims, str | bytes) or not isinstance(dims, Iterable):
    raise TypeError(f"Expected a sequence of dimension sizes, got {dims!r}")
  result = []
  for i, dim in enumerate(dims):
    if isinstance(dim, bool) or not isinstance(dim, int | np.integer):
      raise TypeError(
          f"Dimension {i} must be an integer size, got {dim!r} in {dims!r}"
      )
    if dim < 0:
      raise ValueError(f"Dimension {i} has negative size {dim} in {dims!r}")
    result.append(int(dim))
  return tuple(result)


def shape_of(value: Any) -> tuple[int, ...]:
  """Returns the shape of an array-like value.

  Args:
    value: An array, array-like, or anything with a ``shape`` attribute.

  Returns:
    The shape as a tuple of ``int``.

  Raises:
    TypeError: If ``value`` has no readable shape, for instance a ragged
      nested list.
  """
  if hasattr(value, "shape"):
    dims = value.shape
  elif isinstance(value, bool | int | float | complex | np.generic):
    dims = jnp.shape(value)
  elif isinstance(value, list | tuple):
    try:
      dims = np.shape(value)
    except ValueError as exc:
      raise TypeError(
          f"Cannot read a shape from ragged nested sequence {value!r}"
      ) from exc
  else:
    raise TypeError(
        f"Cannot read a shape from {type(value).__name__} value {value!r}"
    )
  return normalize_shape(dims)
