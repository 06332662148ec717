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

"""Structured descriptions of why a shape contract failed.

Mismatches are plain data. They are returned by the result-shaped checking
functions and attached to `ContractViolationError` by the raising ones; they
are never raised themselves. Rendering them into messages is the job of
`tensor_contracts.core.formatting`.
"""

from __future__ import annotations

import dataclasses
import typing

if typing.TYPE_CHECKING:
  from tensor_contracts.core import patterns


@dataclasses.dataclass(frozen=True)
class Mismatch:
  """Base class for all mismatch reports."""


@dataclasses.dataclass(frozen=True)
class UnpackMismatch(Mismatch):
  """Base class for failures of a pattern against a shape.

  Attributes:
    pattern: The pattern text as given by the caller.
    shape: The shape that was checked, or None if the pattern was rejected
      before matching.
    knowns: The knowledge table used for the match, as sorted ``(name, size)``
      pairs.
  """

  pattern: str
  shape: tuple[int, ...] | None
  knowns: tuple[tuple[str, int], ...]


@dataclasses.dataclass(frozen=True)
class MalformedPattern(UnpackMismatch):
  """The pattern text is not well formed.

  Attributes:
    position: Character offset of the offending fragment in ``pattern``.
    fragment: The offending fragment.
    reason: Why the fragment was rejected.
  """

  position: int
  fragment: str
  reason: str


@dataclasses.dataclass(frozen=True)
class DuplicateAxisName(UnpackMismatch):
  """An axis name was repeated where it must be unique.

  Attributes:
    name: The repeated name.
    position: Character offset of the repeated occurrence.
  """

  name: str
  position: int


@dataclasses.dataclass(frozen=True)
class MultipleEllipsis(UnpackMismatch):
  """The pattern contains more than one ``...``.

  Attributes:
    positions: Character offsets of every ellipsis in the pattern.
  """

  positions: tuple[int, ...]


@dataclasses.dataclass(frozen=True)
class RankMismatch(UnpackMismatch):
  """The shape has a rank the pattern cannot cover.

  Attributes:
    fixed_rank: Number of positions claimed by non-ellipsis tokens.
    has_ellipsis: Whether the pattern allows extra positions.
  """

  fixed_rank: int
  has_ellipsis: bool


@dataclasses.dataclass(frozen=True)
class GroupUnsolvable(UnpackMismatch):
  """A group has factors whose sizes cannot be solved for.

  Either more than one factor has no known size, or a single one does but
  another factor is known to be 0.

  Attributes:
    dim: Shape position of the group.
    group: The group token.
    unresolved: Names of the unresolved factors, in pattern order.
  """

  dim: int
  group: patterns.Group
  unresolved: tuple[str, ...]


@dataclasses.dataclass(frozen=True)
class DivisionNotExact(UnpackMismatch):
  """A dimension is not a multiple of the known part of its group.

  Attributes:
    dim: Shape position of the group.
    group: The group token.
    size: The actual dimension size.
    divisor: Product of the group's resolved factors.
    factor: Name of the factor that could not be solved for.
  """

  dim: int
  group: patterns.Group
  size: int
  divisor: int
  factor: str


@dataclasses.dataclass(frozen=True)
class AxisValueMismatch(UnpackMismatch):
  """A dimension disagrees with a size that was already determined.

  Attributes:
    dim: Shape position being checked.
    token: The axis or group token at that position.
    size: The actual dimension size.
    expected: The size implied by the knowns or earlier bindings.
    source: Where ``expected`` came from, e.g. ``"the knowns"`` or
      ``"dim 0"``.
  """

  dim: int
  token: patterns.Axis | patterns.Group
  size: int
  expected: int
  source: str


@dataclasses.dataclass(frozen=True)
class UnknownFactor(UnpackMismatch):
  """A requested name is not bound by the pattern.

  Attributes:
    missing: The requested names that have no binding.
    available: Names the pattern does bind, in pattern order.
  """

  missing: tuple[str, ...]
  available: tuple[str, ...]


@dataclasses.dataclass(frozen=True)
class DimsMismatch(Mismatch):
  """The shape differs from an exact expected shape."""

  expected: tuple[int, ...]
  actual: tuple[int, ...]


@dataclasses.dataclass(frozen=True)
class NamedDimsMismatch(Mismatch):
  """The shape differs from an expected shape with labelled dimensions."""

  expected: tuple[tuple[str, int], ...]
  actual: tuple[int, ...]
