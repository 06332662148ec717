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

"""Configuration for shape contracts.

Every setting is a `ContextualValue`: it can be read anywhere but only changed
inside a ``with`` block, and only for the current thread or task.
"""

from __future__ import annotations

import contextlib

from tensor_contracts.core import context
from tensor_contracts.core import knowledge

error_prefix: context.ContextualValue[str] = context.ContextualValue(
    initial_value="", name=f"{__name__}.error_prefix"
)
"""Text prepended to every contract failure message.

Useful to say where a contract was checked, e.g. ``"In attention block 3: "``.
"""

ambient_knowns: context.ContextualValue[knowledge.AxisKnowledge] = (
    context.ContextualValue(
        initial_value=knowledge.EMPTY,
        name=f"{__name__}.ambient_knowns",
    )
)
"""Axis sizes known to every shape unpacking in scope.

Sizes passed directly to ``unpacks_shape`` take precedence over these.
"""


@contextlib.contextmanager
def scoped_knowns(knowns: knowledge.KnowledgeSource):
  # pylint: disable=g-doc-return-or-yield
  """Makes ``knowns`` available to every shape unpacking in a ``with`` block.

  ::

    with config.scoped_knowns({"p": 16}):
      h, w = tc.assert_tensor(patches).unpacks_shape(
          ["h", "w"], "b (h p) (w p) c"
      )

  Args:
    knowns: Axis sizes to add. They are layered over the sizes already in
      scope, so nested blocks can override outer ones.
  """
  # pylint: enable=g-doc-return-or-yield
  merged = ambient_knowns.get().merged(knowns)
  with ambient_knowns.set_scoped(merged):
    yield merged
