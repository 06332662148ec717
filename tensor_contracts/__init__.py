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


"""Fluent assertions over the shapes of arrays.

Most users should import the alias module ``tc``::

  from tensor_contracts import tc

  tc.assert_tensor(x).has_dims([10, 3, 32, 32])
"""

__version__ = "0.3.1"
