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

"""Tests for failure messages."""

import textwrap

from absl.testing import absltest
from tensor_contracts import tc
from tensor_contracts.core import formatting


def _failure(shape, pattern, knowns=None):
  return tc.format_failure(tc.check_matches(shape, pattern, knowns))


class ShowTest(absltest.TestCase):

  def test_show_dims(self):
    self.assertEqual(formatting.show_dims([10, 3]), "[10, 3]")
    self.assertEqual(formatting.show_dims([]), "[]")

  def test_show_named_dims(self):
    self.assertEqual(
        formatting.show_named_dims([("N", 10), ("C", 3)]),
        '[("N", 10), ("C", 3)]',
    )

  def test_show_shape(self):
    self.assertEqual(formatting.show_shape([5]), "(5,)")
    self.assertEqual(formatting.show_shape([2, 3]), "(2, 3)")

  def test_show_knowns(self):
    self.assertEqual(
        formatting.show_knowns((("c", 3), ("p", 4))), '{"c": 3, "p": 4}'
    )
    self.assertEqual(formatting.show_knowns(()), "{}")


class FormatFailureTest(absltest.TestCase):

  def test_dims(self):
    self.assertEqual(
        tc.format_failure(tc.check_dims((10, 3, 32, 16), [10, 3, 32, 17])),
        "Expected tensor to have dimensions [10, 3, 32, 17], but got"
        " [10, 3, 32, 16]",
    )

  def test_named_dims(self):
    report = tc.check_named_dims(
        (10, 3, 32, 32), [("N", 10), ("C", 3), ("H", 32), ("W", 17)]
    )
    self.assertEqual(
        tc.format_failure(report),
        'Expected tensor to have dimensions [("N", 10), ("C", 3), ("H", 32),'
        ' ("W", 17)] but got [10, 3, 32, 32]',
    )

  def test_division_not_exact(self):
    err = textwrap.dedent("""\
    Shape (2, 2, 2, 21, 16, 3) does not match pattern "b ... (h p) (w p) c" with knowns {"c": 3, "p": 4}:
      Dim 3: Size 21 of group (h p) is not divisible by 4 (the product of its known factors); cannot solve for "h"
    """).rstrip()
    self.assertEqual(
        _failure(
            (2, 2, 2, 21, 16, 3), "b ... (h p) (w p) c", {"p": 4, "c": 3}
        ),
        err,
    )

  def test_group_unsolvable(self):
    err = textwrap.dedent("""\
    Shape (12,) does not match pattern "(a b)" with knowns {}:
      Dim 0: Group (a b) has 2 factors of unknown size ("a", "b"); at most one can be solved for
    """).rstrip()
    self.assertEqual(_failure((12,), "(a b)"), err)

  def test_group_with_zero_factor(self):
    err = textwrap.dedent("""\
    Shape (0, 0) does not match pattern "p (h p)" with knowns {}:
      Dim 1: Group (h p) has a factor of size 0; cannot solve for "h"
    """).rstrip()
    self.assertEqual(_failure((0, 0), "p (h p)"), err)

  def test_group_product_mismatch(self):
    err = textwrap.dedent("""\
    Shape (7,) does not match pattern "(2 3)" with knowns {}:
      Dim 0: Size 7 of group (2 3) does not match expected size 6 from the product of its factors
    """).rstrip()
    self.assertEqual(_failure((7,), "(2 3)"), err)

  def test_axis_bound_by_earlier_dim(self):
    err = textwrap.dedent("""\
    Shape (20, 3) does not match pattern "(h p) p" with knowns {"h": 5}:
      Dim 1: Size 3 of axis "p" does not match expected size 4 from dim 0
    """).rstrip()
    self.assertEqual(_failure((20, 3), "(h p) p", {"h": 5}), err)

  def test_duplicate_axis(self):
    self.assertEqual(
        _failure((4, 3), "p p"),
        'Invalid shape pattern "p p": axis name "p" is repeated at position 2',
    )

  def test_multiple_ellipsis(self):
    self.assertEqual(
        _failure((4, 3), "... a ..."),
        'Invalid shape pattern "... a ...": only one "..." is allowed, found'
        " ellipses at positions 0, 6",
    )

  def test_rank_mismatch(self):
    self.assertEqual(
        _failure((1, 2, 3), "a b"),
        'Shape (1, 2, 3) does not match pattern "a b" with knowns {}:\n'
        "  Rank 3 does not match the 2 dimensions of the pattern",
    )
    self.assertEqual(
        tc.describe(tc.check_matches((1, 2), "a ... b c")),
        "Rank 2 is too small; the pattern needs at least 3 dimensions",
    )

  def test_unknown_factor(self):
    report = tc.check_unpacks((2, 3), ["b", "x"], "b h")
    self.assertEqual(
        tc.format_failure(report),
        'Shape (2, 3) does not match pattern "b h" with knowns {}:\n'
        '  Requested "x" not bound by the pattern; bound names are ["b", "h"]',
    )

  def test_malformed(self):
    self.assertEqual(
        _failure((2,), "a ( ) b"),
        'Invalid shape pattern "a ( ) b": empty group at position 2: "( )"',
    )

  def test_malformed_with_knowns(self):
    report = tc.check_unpacks((2,), ["a"], "(a", {"a": 2})
    self.assertEqual(
        tc.format_failure(report),
        'Invalid shape pattern "(a" with knowns {"a": 2}: unbalanced "(" at'
        ' position 0: "(a"',
    )

  def test_prefix(self):
    report = tc.check_dims((1,), [2])
    self.assertEqual(
        tc.format_failure(report, prefix="layer 3: "),
        "layer 3: Expected tensor to have dimensions [2], but got [1]",
    )
    with tc.config.error_prefix.set_scoped("scoped: "):
      self.assertEqual(
          tc.format_failure(report),
          "scoped: Expected tensor to have dimensions [2], but got [1]",
      )
      self.assertEqual(
          tc.format_failure(report, prefix=""),
          "Expected tensor to have dimensions [2], but got [1]",
      )

  def test_deterministic(self):
    report = tc.check_matches((12,), "(a b)")
    self.assertEqual(tc.format_failure(report), tc.format_failure(report))

  def test_unknown_report_type(self):
    with self.assertRaises(TypeError):
      tc.describe(tc.mm.Mismatch())


if __name__ == "__main__":
  absltest.main()
