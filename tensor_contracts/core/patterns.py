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

"""Parser for shape patterns.

A shape pattern is a compact, einops-like description of how the dimensions of
an array decompose into named axes. For instance, ``"b ... (h p) (w p) c"``
describes an array whose first dimension is ``b``, whose last dimension is
``c``, whose two dimensions before that are multiples of ``p``, and which may
have any number of other dimensions in between.

The pattern language is intentionally small:

* ``name`` claims exactly one dimension and binds its size to ``name``.
* ``(f1 f2 ...)`` claims exactly one dimension, whose size must be the product
  of the factors. Factors are names or positive integer literals.
* ``...`` claims zero or more dimensions that are not bound to anything. At
  most one ellipsis may appear in a pattern.

Nested groups, axis modifiers and arithmetic other than multiplication are not
supported.
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import re
import typing

import ordered_set
from tensor_contracts.core import mismatch

log = logging.getLogger(__name__)

# Lexemes are parentheses or maximal runs of anything else that is not
# whitespace. Classification happens after splitting, so that fragments like
# "1a" or "...x" are rejected as a whole.
_LEXEME_RE = re.compile(r"[()]|[^\s()]+")
_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_INTEGER_RE = re.compile(r"[0-9]+")


def is_axis_name(name: typing.Any) -> bool:
  """Returns True if ``name`` can be used as an axis name in a pattern."""
  return isinstance(name, str) and _IDENTIFIER_RE.fullmatch(name) is not None


@dataclasses.dataclass(frozen=True)
class Axis:
  """A single named dimension.

  Attributes:
    name: The name bound to the size of the matched dimension.
  """

  name: str

  def __str__(self) -> str:
    return self.name


@dataclasses.dataclass(frozen=True)
class Group:
  """A dimension that is the product of several factors.

  Attributes:
    factors: The factors, each either an axis name or a positive integer
      literal.
  """

  factors: tuple[str | int, ...]

  def names(self) -> tuple[str, ...]:
    """Returns the named factors of this group, in order."""
    return tuple(f for f in self.factors if isinstance(f, str))

  def __str__(self) -> str:
    return "(" + " ".join(str(f) for f in self.factors) + ")"


@dataclasses.dataclass(frozen=True)
class EllipsisToken:
  """Marker for a run of zero or more unnamed dimensions."""

  def __str__(self) -> str:
    return "..."


ELLIPSIS = EllipsisToken()

PatternToken: typing.TypeAlias = Axis | Group | EllipsisToken


@dataclasses.dataclass(frozen=True)
class ShapePattern:
  """A parsed shape pattern.

  Attributes:
    tokens: The tokens of the pattern, in order.
    source: The text the pattern was parsed from, if any. Only used for
      messages; two patterns with the same tokens compare equal.
  """

  tokens: tuple[PatternToken, ...]
  source: str | None = dataclasses.field(default=None, compare=False)

  def __str__(self) -> str:
    return " ".join(str(token) for token in self.tokens)

  @property
  def text(self) -> str:
    """The pattern as the caller wrote it, or its canonical form."""
    return str(self) if self.source is None else self.source

  @property
  def ellipsis_index(self) -> int | None:
    """Index of the ellipsis token, or None if there is no ellipsis."""
    for i, token in enumerate(self.tokens):
      if isinstance(token, EllipsisToken):
        return i
    return None

  @property
  def has_ellipsis(self) -> bool:
    return self.ellipsis_index is not None

  @property
  def prefix(self) -> tuple[PatternToken, ...]:
    """Tokens before the ellipsis (all tokens if there is none)."""
    index = self.ellipsis_index
    return self.tokens if index is None else self.tokens[:index]

  @property
  def suffix(self) -> tuple[PatternToken, ...]:
    """Tokens after the ellipsis (empty if there is none)."""
    index = self.ellipsis_index
    return () if index is None else self.tokens[index + 1 :]

  @property
  def fixed_rank(self) -> int:
    """Number of dimensions claimed by tokens other than the ellipsis."""
    return len(self.prefix) + len(self.suffix)

  def names(self) -> tuple[str, ...]:
    """Returns every axis name in the pattern, in order of first use."""
    names = ordered_set.OrderedSet()
    for token in self.tokens:
      if isinstance(token, Axis):
        names.add(token.name)
      elif isinstance(token, Group):
        names.update(token.names())
    return tuple(names)


class PatternSyntaxError(ValueError):
  """Raised when a shape pattern cannot be parsed.

  Attributes:
    mismatch: The report describing the problem. One of
      `mismatch.MalformedPattern`, `mismatch.DuplicateAxisName` or
      `mismatch.MultipleEllipsis`.
  """

  def __init__(self, report: mismatch.UnpackMismatch):
    # pylint: disable=g-import-not-at-top
    from tensor_contracts.core import formatting
    # pylint: enable=g-import-not-at-top

    super().__init__(formatting.format_failure(report, prefix=""))
    self.mismatch = report


def _malformed(text: str, position: int, fragment: str, reason: str):
  return PatternSyntaxError(
      mismatch.MalformedPattern(
          pattern=text,
          shape=None,
          knowns=(),
          position=position,
          fragment=fragment,
          reason=reason,
      )
  )


def parse_pattern(text: str) -> ShapePattern:
  """Parses a shape pattern.

  Args:
    text: The pattern, e.g. ``"b ... (h p) (w p) c"``.

  Returns:
    The parsed pattern.

  Raises:
    PatternSyntaxError: If the pattern is malformed, repeats an axis name
      where names must be unique, or has more than one ellipsis.
  """
  if not isinstance(text, str):
    raise TypeError(f"Shape patterns must be strings. Got {repr(text)}")

  tokens: list[PatternToken] = []
  bare_names = set()
  ellipsis_position = None
  # Factors of the group currently being parsed, if inside parentheses.
  group: list[str | int] | None = None
  group_start = 0

  for lexeme in _LEXEME_RE.finditer(text):
    word = lexeme.group()
    position = lexeme.start()
    if word == "(":
      if group is not None:
        raise _malformed(
            text, position, word, "nested groups are not supported"
        )
      group = []
      group_start = position
    elif word == ")":
      if group is None:
        raise _malformed(text, position, word, 'unbalanced ")"')
      if not group:
        raise _malformed(
            text, group_start, text[group_start : position + 1], "empty group"
        )
      tokens.append(Group(tuple(group)))
      group = None
    elif word == "...":
      if group is not None:
        raise _malformed(
            text, position, word, "an ellipsis cannot appear inside a group"
        )
      if ellipsis_position is not None:
        raise PatternSyntaxError(
            mismatch.MultipleEllipsis(
                pattern=text,
                shape=None,
                knowns=(),
                positions=(ellipsis_position, position),
            )
        )
      ellipsis_position = position
      tokens.append(ELLIPSIS)
    elif _IDENTIFIER_RE.fullmatch(word):
      if group is not None:
        repeated = word in group
      else:
        repeated = word in bare_names
        bare_names.add(word)
      if repeated:
        raise PatternSyntaxError(
            mismatch.DuplicateAxisName(
                pattern=text,
                shape=None,
                knowns=(),
                name=word,
                position=position,
            )
        )
      if group is not None:
        group.append(word)
      else:
        tokens.append(Axis(word))
    elif _INTEGER_RE.fullmatch(word):
      if group is None:
        raise _malformed(
            text,
            position,
            word,
            "integer literals are only allowed inside a group",
        )
      if int(word) == 0:
        raise _malformed(
            text, position, word, "literal multipliers must be positive"
        )
      group.append(int(word))
    else:
      raise _malformed(text, position, word, "invalid axis name")

  if group is not None:
    raise _malformed(text, group_start, text[group_start:], 'unbalanced "("')
  if not tokens:
    raise _malformed(text, 0, text, "empty pattern")

  log.debug("Parsed shape pattern %r into %d tokens", text, len(tokens))
  return ShapePattern(tuple(tokens), source=text)


class PatternCache:
  """A bounded cache of parsed patterns, keyed by the exact pattern text.

  Parsing is cheap, so the shape-checking functions parse their pattern on
  every call unless they are given a cache explicitly, e.g.

  ::

    cache = PatternCache()
    for batch in batches:
      h, w = tc.assert_tensor(batch).unpacks_shape(
          ["h", "w"], "b (h p) (w p) c", {"p": 4}, cache=cache
      )

  Parse failures are not cached.
  """

  def __init__(self, maxsize: int | None = 128):
    """Creates an empty cache.

    Args:
      maxsize: Maximum number of patterns to keep, or None for no limit.
    """
    self._cached_parse = functools.lru_cache(maxsize=maxsize)(self._miss)

  def _miss(self, text: str) -> ShapePattern:
    log.debug("Pattern cache miss for %r", text)
    return parse_pattern(text)

  def parse(self, text: str) -> ShapePattern:
    """Returns the parsed form of ``text``, parsing it if necessary."""
    if not isinstance(text, str):
      raise TypeError(f"Shape patterns must be strings. Got {repr(text)}")
    return self._cached_parse(text)

  def cache_info(self):
    """Returns hit and miss statistics, as `functools.lru_cache` does."""
    return self._cached_parse.cache_info()

  def clear(self) -> None:
    self._cached_parse.cache_clear()
