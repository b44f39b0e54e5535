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



import unittest

from extsql.common import topological
from extsql.common.ordered import OrderedSet
from extsql.common.topological import DepGraphEntry


class TopologicalTests(unittest.TestCase):

    def test_common_topological_order(self):
        graph = {
            'c': DepGraphEntry(item='C', deps=OrderedSet(['a', 'b'])),
            'a': DepGraphEntry(item='A'),
            'b': DepGraphEntry(item='B', deps=OrderedSet(['a'])),
        }
        self.assertEqual(topological.sort(graph), ('A', 'B', 'C'))

    def test_common_topological_keeps_input_order(self):
        graph = {
            'x': DepGraphEntry(item='x'),
            'b': DepGraphEntry(item='b'),
            'a': DepGraphEntry(item='a'),
        }
        self.assertEqual(topological.sort(graph), ('x', 'b', 'a'))

    def test_common_topological_cycle(self):
        graph = {
            'a': DepGraphEntry(item='a', deps=OrderedSet(['b'])),
            'b': DepGraphEntry(item='b', deps=OrderedSet(['c'])),
            'c': DepGraphEntry(item='c', deps=OrderedSet(['a'])),
        }
        with self.assertRaisesRegex(
            topological.CycleError, 'dependency cycle'
        ) as cm:
            topological.sort(graph)
        self.assertEqual(cm.exception.item, 'a')
        self.assertEqual(cm.exception.path, ('b', 'c'))

    def test_common_topological_unresolved(self):
        graph = {
            'a': DepGraphEntry(item='a', deps=OrderedSet(['missing'])),
        }
        with self.assertRaises(topological.UnresolvedReferenceError):
            topological.sort(graph)

        self.assertEqual(
            topological.sort(graph, allow_unresolved=True), ('a',))


class OrderedSetTests(unittest.TestCase):

    def test_common_ordered_set(self):
        s = OrderedSet([3, 1, 2, 1])
        self.assertEqual(list(s), [3, 1, 2])
        s.add(0)
        s.add(3)
        s.discard(1)
        s.remove(2)
        self.assertEqual(list(s), [3, 0])
        self.assertEqual(len(s), 2)
        self.assertIn(0, s)
        self.assertNotIn(1, s)
        with self.assertRaises(KeyError):
            s.remove(1)
        self.assertEqual(repr(OrderedSet()), 'OrderedSet([])')
        self.assertEqual(repr(s), 'OrderedSet([3, 0])')
