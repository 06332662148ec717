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

"""Fluent shape contracts for arrays.

There are two entry points over the same checks:

* `assert_tensor` returns a `TensorAssertions`, whose methods raise
  `ContractViolationError` as soon as a contract fails. This is the usual
  choice in tests and in contract checks that should halt the program.

* `check_tensor` returns a `TensorChecks`, whose methods never raise for a
  failed contract and instead return a `CheckResult` to be inspected.

For example::

  tc.assert_tensor(images).has_dims([10, 3, 32, 32])
  b, h, w = tc.assert_tensor(patches).unpacks_shape(
      ["b", "h", "w"], "b ... (h p) (w p) c", {"p": 4, "c": 3}
  )

  result = tc.check_tensor(patches).unpacks_shape(["h"], "(h p)", {"p": 4})
  if not result.ok:
    print(result.message)

`assert_shape` and `check_shape` do the same for a shape given directly.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import dataclasses
import logging
from typing import Any, Generic, TypeVar

from tensor_contracts.core import config
from tensor_contracts.core import formatting
from tensor_contracts.core import knowledge
from tensor_contracts.core import matching
from tensor_contracts.core import mismatch
from tensor_contracts.core import patterns
from tensor_contracts.core import shapes

log = logging.getLogger(__name__)

T = TypeVar("T")

PatternLike = str | patterns.ShapePattern


class ContractViolationError(AssertionError):
  """Raised when a shape contract does not hold.

  Attributes:
    mismatch: The report describing the failure.
  """

  def __init__(self, report: mismatch.Mismatch, message: str | None = None):
    if message is None:
      message = formatting.format_failure(report)
    super().__init__(message)
    self.mismatch = report


@dataclasses.dataclass(frozen=True)
class CheckResult(Generic[T]):
  """The outcome of a non-raising contract check.

  Attributes:
    value: The value produced by a successful check (None for checks that
      only pass or fail).
    mismatch: The report describing a failure, or None on success.
    message: The rendered failure message, or None on success. Rendered when
      the check runs, so it reflects the configuration in effect at that time.
  """

  value: T | None = None
  mismatch: mismatch.Mismatch | None = None
  message: str | None = None

  @property
  def ok(self) -> bool:
    return self.mismatch is None

  def unwrap(self) -> T | None:
    """Returns the value, or raises the failure.

    Raises:
      ContractViolationError: If the check failed.
    """
    if self.mismatch is not None:
      raise ContractViolationError(self.mismatch, self.message)
    return self.value


def _normalize_named_dims(expected: Any) -> tuple[tuple[str, int], ...]:
  if isinstance(expected, Mapping):
    expected = expected.items()
  pairs = []
  for item in expected:
    try:
      name, size = item
    except (TypeError, ValueError) as exc:
      raise TypeError(
          f"Expected a (name, size) pair of dimensions, got {item!r}"
      ) from exc
    if not isinstance(name, str):
      raise TypeError(f"Dimension names must be strings. Got {name!r}")
    pairs.append((name, size))
  sizes = shapes.normalize_shape(size for _, size in pairs)
  return tuple((name, size) for (name, _), size in zip(pairs, sizes))


def check_dims(
    shape: Sequence[int], expected: Sequence[int]
) -> mismatch.DimsMismatch | None:
  """Compares a shape with an exact expected shape.

  Returns:
    None if the shapes are equal, otherwise a `mismatch.DimsMismatch`.
  """
  shape = tuple(shape)
  expected = shapes.normalize_shape(expected)
  if shape == expected:
    return None
  return mismatch.DimsMismatch(expected=expected, actual=shape)


def check_named_dims(
    shape: Sequence[int],
    expected: Sequence[tuple[str, int]] | Mapping[str, int],
) -> mismatch.NamedDimsMismatch | None:
  """Compares a shape with expected sizes labelled by name.

  The names only label the message; the comparison is by position.

  Returns:
    None if the sizes equal the shape, otherwise a
    `mismatch.NamedDimsMismatch`.
  """
  shape = tuple(shape)
  expected = _normalize_named_dims(expected)
  if shape == tuple(size for _, size in expected):
    return None
  return mismatch.NamedDimsMismatch(expected=expected, actual=shape)


def check_matches(
    shape: Sequence[int],
    pattern: PatternLike,
    knowns: knowledge.KnowledgeSource = None,
    cache: patterns.PatternCache | None = None,
) -> matching.ShapeMatch | mismatch.UnpackMismatch:
  """Parses a pattern and matches a shape against it.

  Args:
    shape: The shape to match.
    pattern: The pattern text, or an already parsed pattern.
    knowns: Known axis sizes, layered over `config.ambient_knowns`.
    cache: Optional cache to parse the pattern with.

  Returns:
    The match on success, otherwise the report from parsing or matching.
  """
  shape = shapes.normalize_shape(shape)
  knowns = config.ambient_knowns.get().merged(knowns)
  if isinstance(pattern, patterns.ShapePattern):
    parsed = pattern
  else:
    try:
      if cache is not None:
        parsed = cache.parse(pattern)
      else:
        parsed = patterns.parse_pattern(pattern)
    except patterns.PatternSyntaxError as exc:
      log.debug("Rejected shape pattern %r: %s", pattern, exc)
      return dataclasses.replace(exc.mismatch, knowns=knowns.sorted_items())
  return matching.match_shape(parsed, shape, knowns)


def check_unpacks(
    shape: Sequence[int],
    names: Sequence[str],
    pattern: PatternLike,
    knowns: knowledge.KnowledgeSource = None,
    cache: patterns.PatternCache | None = None,
) -> tuple[int, ...] | mismatch.UnpackMismatch:
  """Matches a shape against a pattern and extracts some axis sizes.

  Args:
    shape: The shape to match.
    names: The axis names whose sizes to return.
    pattern: The pattern text, or an already parsed pattern.
    knowns: Known axis sizes, layered over `config.ambient_knowns`.
    cache: Optional cache to parse the pattern with.

  Returns:
    The sizes of ``names`` in the requested order on success, otherwise the
    report from parsing, matching, or a `mismatch.UnknownFactor` if a
    requested name does not appear in the pattern.
  """
  if isinstance(names, str):
    raise TypeError(
        f"Expected a sequence of axis names, got the string {names!r}"
    )
  names = tuple(names)
  knowns = config.ambient_knowns.get().merged(knowns)
  result = check_matches(shape, pattern, knowns, cache)
  if isinstance(result, mismatch.Mismatch):
    return result
  missing = tuple(name for name in names if name not in result)
  if missing:
    return mismatch.UnknownFactor(
        pattern=pattern if isinstance(pattern, str) else pattern.text,
        shape=result.shape,
        knowns=knowns.sorted_items(),
        missing=missing,
        available=tuple(result),
    )
  return result.select(names)


@dataclasses.dataclass(frozen=True)
class TensorAssertions:
  """Shape assertions that raise `ContractViolationError` on failure.

  Attributes:
    shape: The shape being checked.
  """

  shape: tuple[int, ...]

  def has_dims(self, dims: Sequence[int]) -> TensorAssertions:
    """Asserts that the shape is exactly ``dims``.

    Args:
      dims: The expected dimension sizes.

    Returns:
      This object, so that assertions can be chained.

    Raises:
      ContractViolationError: If the shape differs.
    """
    report = check_dims(self.shape, dims)
    if report is not None:
      raise ContractViolationError(report)
    return self

  def has_named_dims(
      self, dims: Sequence[tuple[str, int]] | Mapping[str, int]
  ) -> TensorAssertions:
    """Asserts that the shape matches sizes labelled by name.

    The names only appear in the failure message, e.g.
    ``has_named_dims([("rows", 2), ("cols", 3)])`` checks for shape ``(2, 3)``.

    Args:
      dims: ``(name, size)`` pairs, or a mapping from names to sizes, in
        dimension order.

    Returns:
      This object, so that assertions can be chained.

    Raises:
      ContractViolationError: If the shape differs.
    """
    report = check_named_dims(self.shape, dims)
    if report is not None:
      raise ContractViolationError(report)
    return self

  def unpacks_shape(
      self,
      names: Sequence[str],
      pattern: PatternLike,
      knowns: knowledge.KnowledgeSource = None,
      *,
      cache: patterns.PatternCache | None = None,
  ) -> tuple[int, ...]:
    """Asserts that the shape matches a pattern and extracts axis sizes.

    Args:
      names: The axis names whose sizes to return.
      pattern: A shape pattern such as ``"b ... (h p) (w p) c"``, or a parsed
        `patterns.ShapePattern`.
      knowns: Axis sizes known in advance, as a mapping or ``(name, size)``
        pairs. Needed to solve groups with more than one named factor.
      cache: Optional `patterns.PatternCache` to parse the pattern with.

    Returns:
      The sizes bound to ``names``, in the same order.

    Raises:
      ContractViolationError: If the pattern is invalid, does not match the
        shape, or does not bind one of ``names``.
    """
    result = check_unpacks(self.shape, names, pattern, knowns, cache)
    if isinstance(result, mismatch.Mismatch):
      raise ContractViolationError(result)
    return result

  def matches_shape(
      self,
      pattern: PatternLike,
      knowns: knowledge.KnowledgeSource = None,
      *,
      cache: patterns.PatternCache | None = None,
  ) -> matching.ShapeMatch:
    """Like `unpacks_shape`, but returns every binding as a `ShapeMatch`."""
    result = check_matches(self.shape, pattern, knowns, cache)
    if isinstance(result, mismatch.Mismatch):
      raise ContractViolationError(result)
    return result


@dataclasses.dataclass(frozen=True)
class TensorChecks:
  """Shape checks that return a `CheckResult` instead of raising.

  Attributes:
    shape: The shape being checked.
  """

  shape: tuple[int, ...]

  def _wrap(self, result: Any) -> CheckResult:
    if isinstance(result, mismatch.Mismatch):
      return CheckResult(
          mismatch=result, message=formatting.format_failure(result)
      )
    return CheckResult(value=result)

  def has_dims(self, dims: Sequence[int]) -> CheckResult[None]:
    """Checks that the shape is exactly ``dims``."""
    return self._wrap(check_dims(self.shape, dims))

  def has_named_dims(
      self, dims: Sequence[tuple[str, int]] | Mapping[str, int]
  ) -> CheckResult[None]:
    """Checks that the shape matches sizes labelled by name."""
    return self._wrap(check_named_dims(self.shape, dims))

  def unpacks_shape(
      self,
      names: Sequence[str],
      pattern: PatternLike,
      knowns: knowledge.KnowledgeSource = None,
      *,
      cache: patterns.PatternCache | None = None,
  ) -> CheckResult[tuple[int, ...]]:
    """Checks the shape against a pattern; the value holds the sizes."""
    return self._wrap(check_unpacks(self.shape, names, pattern, knowns, cache))

  def matches_shape(
      self,
      pattern: PatternLike,
      knowns: knowledge.KnowledgeSource = None,
      *,
      cache: patterns.PatternCache | None = None,
  ) -> CheckResult[matching.ShapeMatch]:
    """Checks the shape against a pattern; the value holds the match."""
    return self._wrap(check_matches(self.shape, pattern, knowns, cache))


def assert_tensor(value: Any) -> TensorAssertions:
  """Starts raising assertions on the shape of an array-like value."""
  return TensorAssertions(shapes.shape_of(value))


def check_tensor(value: Any) -> TensorChecks:
  """Starts non-raising checks on the shape of an array-like value."""
  return TensorChecks(shapes.shape_of(value))


def assert_shape(shape: Sequence[int]) -> TensorAssertions:
  """Starts raising assertions on an explicit shape."""
  return TensorAssertions(shapes.normalize_shape(shape))


def check_shape(shape: Sequence[int]) -> TensorChecks:
  """Starts non-raising checks on an explicit shape."""
  return TensorChecks(shapes.normalize_shape(shape))
