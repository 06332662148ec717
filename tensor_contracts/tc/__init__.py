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


"""Module of aliases for common tensor_contracts classes and functions."""

# pylint: disable=g-multiple-import,g-importing-member,unused-import

import tensor_contracts.core.config as config
from tensor_contracts.core.context import ContextualValue
from tensor_contracts.core.contracts import (
    CheckResult,
    ContractViolationError,
    TensorAssertions,
    TensorChecks,
    assert_shape,
    assert_tensor,
    check_dims,
    check_matches,
    check_named_dims,
    check_shape,
    check_tensor,
    check_unpacks,
)
from tensor_contracts.core.formatting import (
    describe,
    format_failure,
)
from tensor_contracts.core.knowledge import (
    AxisKnowledge,
    as_knowledge,
)
from tensor_contracts.core.matching import (
    ShapeMatch,
    match_shape,
)
import tensor_contracts.core.mismatch as mm
from tensor_contracts.core.patterns import (
    ELLIPSIS,
    Axis,
    EllipsisToken,
    Group,
    PatternCache,
    PatternSyntaxError,
    ShapePattern,
    parse_pattern,
)
from tensor_contracts.core.shapes import (
    normalize_shape,
    shape_of,
)
