#
# This source file is part of the extsql open source project.
#
# Copyright 2022-present the extsql authors.
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
#


from __future__ import annotations
from typing import (
    Any,
    Dict,
    Hashable,
    Iterable,
    Iterator,
    MutableSet,
    Optional,
    TypeVar,
)


K = TypeVar("K", bound=Hashable)


class OrderedSet(MutableSet[K]):
    """A set that iterates in insertion order."""

    def __init__(self, iterable: Optional[Iterable[K]] = None) -> None:
        self._map: Dict[K, None] = dict.fromkeys(iterable or ())

    def add(self, item: K) -> None:
        self._map[item] = None

    def discard(self, item: K) -> None:
        self._map.pop(item, None)

    def __len__(self) -> int:
        return len(self._map)

    def __contains__(self, item: Any) -> bool:
        return item in self._map

    def __iter__(self) -> Iterator[K]:
        return iter(self._map)

    def __repr__(self) -> str:
        return f'{type(self).__name__}({list(self._map)!r})'
