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

"""Rendering of mismatch reports into failure messages.

Messages depend only on the report, so the same failure always produces the
same text. Tests may compare against it literally.
"""

from __future__ import annotations

from collections.abc import Sequence

from tensor_contracts.core import config
from tensor_contracts.core import mismatch
from tensor_contracts.core import patterns


def show_dims(dims: Sequence[int]) -> str:
  """Summarizes dimension sizes as a bracketed list, e.g. ``[2, 3]``."""
  return "[" + ", ".join(str(d) for d in dims) + "]"


def show_named_dims(named_dims: Sequence[tuple[str, int]]) -> str:
  """Summarizes labelled sizes, e.g. ``[("rows", 2), ("cols", 3)]``."""
  return (
      "["
      + ", ".join(f'("{name}", {size})' for name, size in named_dims)
      + "]"
  )


def show_shape(shape: Sequence[int]) -> str:
  """Summarizes a shape as a tuple, e.g. ``(2, 3)`` or ``(5,)``."""
  return repr(tuple(shape))


def show_knowns(knowns: Sequence[tuple[str, int]]) -> str:
  """Summarizes sorted known sizes, e.g. ``{"c": 3, "p": 4}``."""
  return "{" + ", ".join(f'"{name}": {size}' for name, size in knowns) + "}"


def _show_names(names: Sequence[str]) -> str:
  return ", ".join(f'"{name}"' for name in names)


def _show_token(token: patterns.Axis | patterns.Group) -> str:
  if isinstance(token, patterns.Axis):
    return f'axis "{token.name}"'
  return f"group {token}"


def describe(report: mismatch.Mismatch) -> str:
  """Describes a single mismatch, without the surrounding context.

  Args:
    report: The mismatch to describe.

  Returns:
    A one-line description of the problem, e.g.
    ``Dim 3: Size 21 of group (h p) is not divisible by 4 ...``.
  """
  if isinstance(report, mismatch.DimsMismatch):
    return (
        f"Expected tensor to have dimensions {show_dims(report.expected)},"
        f" but got {show_dims(report.actual)}"
    )
  elif isinstance(report, mismatch.NamedDimsMismatch):
    return (
        "Expected tensor to have dimensions"
        f" {show_named_dims(report.expected)} but got"
        f" {show_dims(report.actual)}"
    )
  elif isinstance(report, mismatch.MalformedPattern):
    return (
        f'{report.reason} at position {report.position}: "{report.fragment}"'
    )
  elif isinstance(report, mismatch.DuplicateAxisName):
    return (
        f'axis name "{report.name}" is repeated at position {report.position}'
    )
  elif isinstance(report, mismatch.MultipleEllipsis):
    positions = ", ".join(str(p) for p in report.positions)
    return (
        f'only one "..." is allowed, found ellipses at positions {positions}'
    )
  elif isinstance(report, mismatch.RankMismatch):
    rank = len(report.shape)
    if report.has_ellipsis:
      return (
          f"Rank {rank} is too small; the pattern needs at least"
          f" {report.fixed_rank} dimensions"
      )
    return (
        f"Rank {rank} does not match the {report.fixed_rank} dimensions of"
        " the pattern"
    )
  elif isinstance(report, mismatch.GroupUnsolvable):
    if len(report.unresolved) == 1:
      return (
          f"Dim {report.dim}: Group {report.group} has a factor of size 0;"
          f" cannot solve for {_show_names(report.unresolved)}"
      )
    return (
        f"Dim {report.dim}: Group {report.group} has"
        f" {len(report.unresolved)} factors of unknown size"
        f" ({_show_names(report.unresolved)}); at most one can be solved for"
    )
  elif isinstance(report, mismatch.DivisionNotExact):
    return (
        f"Dim {report.dim}: Size {report.size} of group {report.group} is not"
        f" divisible by {report.divisor} (the product of its known factors);"
        f' cannot solve for "{report.factor}"'
    )
  elif isinstance(report, mismatch.AxisValueMismatch):
    return (
        f"Dim {report.dim}: Size {report.size} of {_show_token(report.token)}"
        f" does not match expected size {report.expected} from {report.source}"
    )
  elif isinstance(report, mismatch.UnknownFactor):
    return (
        f"Requested {_show_names(report.missing)} not bound by the pattern;"
        f" bound names are [{_show_names(report.available)}]"
    )
  else:
    raise TypeError(f"Unknown mismatch type {type(report)}: {report}")


def format_failure(
    report: mismatch.Mismatch, prefix: str | None = None
) -> str:
  """Renders a mismatch as a complete failure message.

  Args:
    report: The mismatch to render.
    prefix: Text to prepend to the message. Defaults to the current value of
      `config.error_prefix`.

  Returns:
    The failure message.
  """
  if prefix is None:
    prefix = config.error_prefix.get()
  if not isinstance(report, mismatch.UnpackMismatch):
    return prefix + describe(report)
  elif report.shape is None:
    knowns = ""
    if report.knowns:
      knowns = f" with knowns {show_knowns(report.knowns)}"
    return (
        f'{prefix}Invalid shape pattern "{report.pattern}"{knowns}: '
        + describe(report)
    )
  else:
    return (
        f"{prefix}Shape {show_shape(report.shape)} does not match pattern"
        f' "{report.pattern}" with knowns {show_knowns(report.knowns)}:\n  '
        + describe(report)
    )
