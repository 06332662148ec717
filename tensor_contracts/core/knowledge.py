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

"""Tables of axis sizes that are known before matching a pattern."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import dataclasses
from typing import Any

import numpy as np
from tensor_contracts.core import patterns


def _check_size(name: str, size: Any) -> int:
  if isinstance(size, bool) or not isinstance(size, int | np.integer):
    raise TypeError(
        f"Known size for axis {repr(name)} must be an integer. Got"
        f" {repr(size)}"
    )
  if size <= 0:
    raise ValueError(
        f"Known size for axis {repr(name)} must be positive. Got {size}"
    )
  return int(size)


@dataclasses.dataclass(frozen=True, eq=False)
class AxisKnowledge(Mapping[str, int]):
  """An immutable mapping from axis names to known positive sizes.

  Knowledge tables are usually built implicitly from whatever the caller
  passes as ``knowns``; use `as_knowledge` to build one explicitly.

  Attributes:
    _sizes: The known sizes. Should not be modified.
  """

  _sizes: dict[str, int] = dataclasses.field(default_factory=dict)

  def __len__(self) -> int:
    return len(self._sizes)

  def __iter__(self):
    return iter(self._sizes)

  def __getitem__(self, name: str) -> int:
    return self._sizes[name]

  def __repr__(self) -> str:
    return f"AxisKnowledge({self._sizes!r})"

  def sorted_items(self) -> tuple[tuple[str, int], ...]:
    """Returns the known sizes as ``(name, size)`` pairs sorted by name."""
    return tuple(sorted(self._sizes.items()))

  def merged(self, overrides: Any) -> AxisKnowledge:
    """Returns a table with ``overrides`` layered on top of this one.

    Args:
      overrides: Additional known sizes. Where a name is in both tables, the
        size from ``overrides`` is used.

    Returns:
      The combined table.
    """
    overrides = as_knowledge(overrides)
    if not overrides:
      return self
    if not self:
      return overrides
    return AxisKnowledge({**self._sizes, **overrides._sizes})


EMPTY = AxisKnowledge()

# Anything `as_knowledge` accepts: a mapping (including a previous match
# result), an iterable of ``(name, size)`` pairs, or None for no knowns.
KnowledgeSource = (
    Mapping[str, int] | Iterable[tuple[str, int]] | AxisKnowledge | None
)


def as_knowledge(source: KnowledgeSource) -> AxisKnowledge:
  """Builds a knowledge table.

  Args:
    source: Known axis sizes, as a mapping from axis names to sizes, an
      iterable of ``(name, size)`` pairs, a previous `ShapeMatch`, or None.

  Returns:
    An `AxisKnowledge` with the same sizes. Tables are returned unchanged.

  Raises:
    TypeError: If a name is not a string or a size is not an integer.
    ValueError: If a name is not a valid axis name, a size is not positive, or
      a name is given twice with different sizes.
  """
  if source is None:
    return EMPTY
  if isinstance(source, AxisKnowledge):
    return source
  if isinstance(source, Mapping):
    items = source.items()
  elif isinstance(source, str | bytes) or not isinstance(source, Iterable):
    raise TypeError(
        "Known sizes must be a mapping or an iterable of (name, size) pairs."
        f" Got {repr(source)}"
    )
  else:
    items = source

  sizes = {}
  for item in items:
    try:
      name, size = item
    except (TypeError, ValueError) as exc:
      raise TypeError(
          f"Expected a (name, size) pair of known sizes, got {repr(item)}"
      ) from exc
    if not isinstance(name, str):
      raise TypeError(f"Axis names must be strings. Got {repr(name)}")
    if not patterns.is_axis_name(name):
      raise ValueError(f"{repr(name)} is not a valid axis name")
    size = _check_size(name, size)
    if name in sizes and sizes[name] != size:
      raise ValueError(
          f"Conflicting known sizes for axis {repr(name)}: {sizes[name]} and"
          f" {size}"
      )
    sizes[name] = size
  return AxisKnowledge(sizes) if sizes else EMPTY
