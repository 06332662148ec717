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

"""Tests for scoped configuration."""

import threading

from absl.testing import absltest
from tensor_contracts import tc
from tensor_contracts.core import config
from tensor_contracts.core import context


def _run_in_thread(fn):
  """Runs ``fn`` in a new thread and returns its result."""
  results = []
  thread = threading.Thread(target=lambda: results.append(fn()))
  thread.start()
  thread.join()
  return results[0]


class ContextualValueTest(absltest.TestCase):

  def test_nested_scopes(self):
    prefix = context.ContextualValue(initial_value="", name="prefix")
    self.assertEqual(prefix.get(), "")
    with prefix.set_scoped("outer: "):
      self.assertEqual(prefix.get(), "outer: ")
      with prefix.set_scoped("inner: "):
        self.assertEqual(prefix.get(), "inner: ")
      self.assertEqual(prefix.get(), "outer: ")
    self.assertEqual(prefix.get(), "")

  def test_scope_is_restored_after_an_error(self):
    prefix = context.ContextualValue(initial_value="", name="prefix")
    with self.assertRaises(KeyError):
      with prefix.set_scoped("scoped: "):
        raise KeyError("boom")
    self.assertEqual(prefix.get(), "")

  def test_scopes_are_per_thread(self):
    prefix = context.ContextualValue(initial_value="", name="prefix")
    with prefix.set_scoped("main: "):
      self.assertEqual(_run_in_thread(prefix.get), "")

      def scoped_in_thread():
        with prefix.set_scoped("worker: "):
          return prefix.get()

      self.assertEqual(_run_in_thread(scoped_in_thread), "worker: ")
      self.assertEqual(prefix.get(), "main: ")

  def test_interleaved_scopes_in_two_threads(self):
    prefix = context.ContextualValue(initial_value="", name="prefix")
    entered = threading.Event()
    release = threading.Event()
    seen = []

    def worker():
      with prefix.set_scoped("worker: "):
        entered.set()
        release.wait()
        seen.append(prefix.get())
      seen.append(prefix.get())

    thread = threading.Thread(target=worker)
    thread.start()
    entered.wait()
    with prefix.set_scoped("main: "):
      release.set()
      thread.join()
      self.assertEqual(prefix.get(), "main: ")
    self.assertEqual(prefix.get(), "")
    self.assertEqual(seen, ["worker: ", ""])

  def test_repr(self):
    prefix = context.ContextualValue(initial_value="", name="prefix")
    self.assertEqual(repr(prefix), "<ContextualValue prefix=''>")


class ConfigTest(absltest.TestCase):

  def test_defaults(self):
    self.assertEqual(config.error_prefix.get(), "")
    self.assertEmpty(config.ambient_knowns.get())

  def test_error_prefix(self):
    with config.error_prefix.set_scoped("In the encoder: "):
      with self.assertRaisesWithLiteralMatch(
          tc.ContractViolationError,
          "In the encoder: Expected tensor to have dimensions [4], but got [3]",
      ):
        tc.assert_shape([3]).has_dims([4])

  def test_scoped_knowns(self):
    with config.scoped_knowns({"p": 4}) as outer:
      self.assertEqual(dict(outer), {"p": 4})
      self.assertEqual(
          tc.assert_shape([8, 12]).unpacks_shape(["h", "w"], "(h p) (w p)"),
          (2, 3),
      )
      with config.scoped_knowns({"p": 2, "c": 3}) as inner:
        self.assertEqual(dict(inner), {"p": 2, "c": 3})
        self.assertEqual(
            tc.assert_shape([8, 3]).unpacks_shape(["h"], "(h p) c"), (4,)
        )
      self.assertEqual(dict(config.ambient_knowns.get()), {"p": 4})
    self.assertEmpty(config.ambient_knowns.get())

  def test_explicit_knowns_win_over_ambient(self):
    with config.scoped_knowns({"p": 4}):
      self.assertEqual(
          tc.assert_shape([8]).unpacks_shape(["h"], "(h p)", {"p": 2}), (4,)
      )

  def test_scoped_knowns_stay_in_their_thread(self):
    entered = threading.Event()
    release = threading.Event()

    def worker():
      with config.scoped_knowns({"p": 4}):
        entered.set()
        release.wait()

    thread = threading.Thread(target=worker)
    thread.start()
    entered.wait()
    try:
      result = tc.check_shape([12]).unpacks_shape(["h"], "(h p)")
    finally:
      release.set()
      thread.join()
    self.assertIsInstance(result.mismatch, tc.mm.GroupUnsolvable)
    self.assertEmpty(config.ambient_knowns.get())

  def test_ambient_knowns_appear_in_messages(self):
    with config.scoped_knowns({"c": 3}):
      result = tc.check_shape([2, 4]).unpacks_shape(["b"], "b c")
    self.assertFalse(result.ok)
    self.assertEqual(
        result.message,
        'Shape (2, 4) does not match pattern "b c" with knowns {"c": 3}:\n'
        '  Dim 1: Size 4 of axis "c" does not match expected size 3 from the'
        " knowns",
    )


if __name__ == "__main__":
  absltest.main()
