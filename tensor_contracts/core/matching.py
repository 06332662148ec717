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

"""Matching parsed shape patterns against concrete shapes.

Matching is positional and never backtracks. Tokens before the ellipsis are
aligned with the leading dimensions, tokens after it with the trailing
dimensions, and the ellipsis takes whatever is left in between. Tokens are then
resolved left to right:

* A bare axis binds its name to the dimension size, or checks the size against
  a known or previously bound value.
* A group multiplies its literal and already-known factors. If no factor is
  left over, the product must equal the dimension size. If exactly one is left
  over, the dimension size must be an exact multiple of the product and the
  quotient is bound to the leftover name. Two or more leftover factors cannot
  be solved for and are reported as such, as is a single leftover factor
  next to a factor already bound to 0.

A name may appear in several groups (e.g. the shared patch size in
``"(h p) (w p)"``). Its first binding wins and later uses read it back.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
import dataclasses
import logging

from tensor_contracts.core import knowledge
from tensor_contracts.core import mismatch
from tensor_contracts.core import patterns

log = logging.getLogger(__name__)

_FROM_KNOWNS = "the knowns"
_FROM_PRODUCT = "the product of its factors"


@dataclasses.dataclass(frozen=True, eq=False)
class ShapeMatch(Mapping[str, int]):
  """The result of a successful match.

  The bound sizes can be read in several ways:

  * Ordinary mapping access, e.g. ``result["h"]`` or ``dict(result)``.

  * Several keys at once, e.g. ``result["h", "w"]`` is the same as
    ``(result["h"], result["w"])``.

  * Attribute access, e.g. ``result.h``, for names that do not clash with the
    attributes below.

  * `select`, which takes a list of names.

  Like other mappings, a match compares equal to any mapping with the same
  bindings.

  Attributes:
    shape: The shape that was matched.
    bindings: The size of every axis named in the pattern, in pattern order.
      Includes names whose size was given in the knowns.
    ellipsis_range: The dimensions covered by the ellipsis, or None if the
      pattern has no ellipsis.
  """

  shape: tuple[int, ...]
  bindings: dict[str, int]
  ellipsis_range: range | None = None

  def __len__(self) -> int:
    return len(self.bindings)

  def __iter__(self):
    return iter(self.bindings)

  def __getitem__(self, key_or_keys: str | tuple[str, ...]):
    if isinstance(key_or_keys, str):
      return self.bindings[key_or_keys]
    else:
      return tuple(self.bindings[key] for key in key_or_keys)

  def __getattr__(self, key: str):
    # Looked up through __dict__ so that copying an instance before its
    # fields are set cannot recurse.
    bindings = self.__dict__.get("bindings", {})
    if key in bindings:
      return bindings[key]
    else:
      raise AttributeError(name=key, obj=self)

  def select(self, names: Sequence[str]) -> tuple[int, ...]:
    """Returns the sizes bound to ``names``, in the same order.

    Raises:
      KeyError: If a name is not bound by the pattern.
    """
    return tuple(self.bindings[name] for name in names)

  @property
  def ellipsis_shape(self) -> tuple[int, ...]:
    """The sizes of the dimensions covered by the ellipsis."""
    if self.ellipsis_range is None:
      return ()
    return self.shape[self.ellipsis_range.start : self.ellipsis_range.stop]


def _aligned_tokens(
    pattern: patterns.ShapePattern, rank: int
) -> Iterator[tuple[int, patterns.Axis | patterns.Group]]:
  """Yields ``(dimension, token)`` pairs for every non-ellipsis token."""
  yield from enumerate(pattern.prefix)
  suffix = pattern.suffix
  yield from zip(range(rank - len(suffix), rank), suffix)


def match_shape(
    pattern: patterns.ShapePattern,
    shape: Sequence[int],
    knowns: knowledge.KnowledgeSource = None,
) -> ShapeMatch | mismatch.UnpackMismatch:
  """Matches a shape against a parsed pattern.

  Args:
    pattern: The parsed pattern.
    shape: The dimension sizes to match.
    knowns: Sizes of axes that are known in advance. Names that do not appear
      in the pattern are ignored.

  Returns:
    A `ShapeMatch` binding every name in the pattern if the shape matches.
    Otherwise, a mismatch report describing the first problem found: one of
    `mismatch.RankMismatch`, `mismatch.AxisValueMismatch`,
    `mismatch.GroupUnsolvable` or `mismatch.DivisionNotExact`.
  """
  shape = tuple(shape)
  knowns = knowledge.as_knowledge(knowns)
  rank = len(shape)

  def fail(report_type, **details) -> mismatch.UnpackMismatch:
    report = report_type(
        pattern=pattern.text,
        shape=shape,
        knowns=knowns.sorted_items(),
        **details,
    )
    log.debug("Shape %s does not match %r: %r", shape, pattern.text, report)
    return report

  fixed_rank = pattern.fixed_rank
  if rank < fixed_rank or (not pattern.has_ellipsis and rank != fixed_rank):
    return fail(
        mismatch.RankMismatch,
        fixed_rank=fixed_rank,
        has_ellipsis=pattern.has_ellipsis,
    )

  ellipsis_range = None
  if pattern.has_ellipsis:
    start = pattern.ellipsis_index
    ellipsis_range = range(start, start + rank - fixed_rank)

  bindings: dict[str, int] = {}
  # Where each binding came from, for messages.
  sources: dict[str, str] = {}

  def lookup(name: str) -> tuple[int, str] | None:
    if name in bindings:
      return bindings[name], sources[name]
    elif name in knowns:
      return knowns[name], _FROM_KNOWNS
    else:
      return None

  for dim, token in _aligned_tokens(pattern, rank):
    size = shape[dim]
    if isinstance(token, patterns.Axis):
      previous = lookup(token.name)
      if previous is not None:
        expected, source = previous
        if expected != size:
          return fail(
              mismatch.AxisValueMismatch,
              dim=dim,
              token=token,
              size=size,
              expected=expected,
              source=source,
          )
      else:
        source = f"dim {dim}"
      bindings[token.name] = size
      sources[token.name] = source
      continue

    product = 1
    unresolved = []
    for factor in token.factors:
      if isinstance(factor, int):
        product *= factor
        continue
      previous = lookup(factor)
      if previous is None:
        unresolved.append(factor)
      else:
        product *= previous[0]
        bindings[factor], sources[factor] = previous

    if len(unresolved) > 1:
      return fail(
          mismatch.GroupUnsolvable,
          dim=dim,
          group=token,
          unresolved=tuple(unresolved),
      )
    elif unresolved:
      [factor] = unresolved
      if product == 0:
        # A factor bound to zero hides the size of the unresolved one.
        if size != 0:
          return fail(
              mismatch.AxisValueMismatch,
              dim=dim,
              token=token,
              size=size,
              expected=0,
              source=_FROM_PRODUCT,
          )
        return fail(
            mismatch.GroupUnsolvable,
            dim=dim,
            group=token,
            unresolved=(factor,),
        )
      if size % product != 0:
        return fail(
            mismatch.DivisionNotExact,
            dim=dim,
            group=token,
            size=size,
            divisor=product,
            factor=factor,
        )
      bindings[factor] = size // product
      sources[factor] = f"dim {dim}"
    elif product != size:
      return fail(
          mismatch.AxisValueMismatch,
          dim=dim,
          token=token,
          size=size,
          expected=product,
          source=_FROM_PRODUCT,
      )

  # Report bindings in pattern order, regardless of which occurrence bound
  # them.
  ordered = {name: bindings[name] for name in pattern.names()}
  log.debug("Shape %s matched %r: %s", shape, pattern.text, ordered)
  return ShapeMatch(
      shape=shape, bindings=ordered, ellipsis_range=ellipsis_range
  )
