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

from extsql import errors
from extsql.sqlgraph import triggers
from extsql.sqlgraph.entities import SchemaEntity, ToSqlConfig
from extsql.sqlgraph.functions import RenderContext
from extsql.sqlgraph.graph import EntityGraph
from extsql.sqlgraph.triggers import TriggerAbort, TriggerEntity


def render(trigger, *entities, **kwargs):
    graph = EntityGraph.build([trigger, *entities])
    return triggers.render_trigger(trigger, RenderContext(graph, **kwargs))


def stamp(row):
    return dict(row, stamped=True)


class TriggerRenderTests(unittest.TestCase):

    def test_trigger_render(self):
        trigger = TriggerEntity(
            'audit', 'ext::triggers', file='src/triggers.rs', line=5)
        self.assertEqual(
            render(trigger),
            '-- src/triggers.rs:5\n'
            '-- ext::triggers::audit\n'
            'CREATE FUNCTION "audit"()\n'
            '\tRETURNS TRIGGER\n'
            '\tLANGUAGE c\n'
            "\tAS 'MODULE_PATHNAME', 'audit_wrapper';"
        )

    def test_trigger_render_schema(self):
        trigger = TriggerEntity('audit', 'ext::triggers')
        schema = SchemaEntity('audit_log', 'ext::triggers')
        sql = render(trigger, schema, module_pathname='$libdir/ext')
        self.assertIn('CREATE FUNCTION audit_log."audit"()\n', sql)
        self.assertIn("AS '$libdir/ext', 'audit_wrapper';", sql)

    def test_trigger_render_content(self):
        trigger = TriggerEntity(
            'audit', 'ext', full_path='ext::audit_impl',
            to_sql_config=ToSqlConfig(content=(
                'CREATE FUNCTION audit() RETURNS trigger\n'
                "LANGUAGE c AS 'MODULE_PATHNAME', '@FUNCTION_NAME@';\n"
            )))
        self.assertEqual(
            render(trigger),
            '-- ext::audit_impl\n'
            'CREATE FUNCTION audit() RETURNS trigger\n'
            "LANGUAGE c AS 'MODULE_PATHNAME', 'audit_wrapper';"
        )

    def test_trigger_render_disabled(self):
        trigger = TriggerEntity(
            'audit', 'ext', to_sql_config=ToSqlConfig(enabled=False))
        self.assertEqual(render(trigger), '')

    def test_trigger_render_name_too_long(self):
        name = 't' * 64
        trigger = TriggerEntity(name, 'ext', file='src/lib.rs', line=3)
        with self.assertRaisesRegex(
            errors.InvalidIdentifier, 'longer than 63 bytes'
        ) as cm:
            render(trigger)
        self.assertEqual(cm.exception.filename, 'src/lib.rs')
        self.assertEqual(cm.exception.line, 3)

        trigger = TriggerEntity(
            name, 'ext', to_sql_config=ToSqlConfig(content='SELECT 1;'))
        self.assertEqual(render(trigger), f'-- ext::{name}\nSELECT 1;')


class TriggerWrapperTests(unittest.TestCase):

    def test_trigger_wrapper_call(self):
        wrapper = triggers.TriggerWrapper(
            stamp, into_datum=lambda row: sorted(row.items()))
        self.assertEqual(wrapper.symbol, 'stamp_wrapper')
        self.assertEqual(wrapper.finfo_symbol, 'pg_finfo_stamp_wrapper')
        self.assertEqual(
            wrapper({'id': 1}), [('id', 1), ('stamped', True)])

    def test_trigger_wrapper_context(self):
        seen = []

        def record(ctx):
            seen.append(ctx)
            return ctx['new']

        wrapper = triggers.TriggerWrapper(
            record,
            into_datum=lambda row: row,
            context_factory=lambda fcinfo: {'new': fcinfo * 2},
        )
        self.assertEqual(wrapper(21), 42)
        self.assertEqual(seen, [{'new': 42}])

    def test_trigger_wrapper_aborts(self):
        def broken(ctx):
            raise ValueError('no such column')

        wrapper = triggers.TriggerWrapper(broken, into_datum=lambda r: r)
        with self.assertRaisesRegex(TriggerAbort, 'no such column') as cm:
            try:
                wrapper(None)
            except Exception:
                self.fail('TriggerAbort must not be an Exception')
        self.assertIsInstance(cm.exception.__cause__, ValueError)
        self.assertEqual(cm.exception.name, 'broken')

    def test_trigger_wrapper_unconvertible_row(self):
        wrapper = triggers.TriggerWrapper(
            stamp, into_datum=lambda row: None, name='audit')
        with self.assertRaisesRegex(TriggerAbort, "'audit'.*convert"):
            wrapper({})

    def test_trigger_wrapper_bad_context(self):
        def factory(fcinfo):
            raise KeyError('tg_relation')

        wrapper = triggers.TriggerWrapper(
            stamp, into_datum=dict, context_factory=factory)
        with self.assertRaisesRegex(TriggerAbort, 'trigger context'):
            wrapper(object())

    def test_trigger_from_function(self):
        entity, wrapper = triggers.trigger_from_function(
            stamp, module_path='ext::triggers', into_datum=dict)
        self.assertEqual(entity.function_name, 'stamp')
        self.assertEqual(entity.full_path, 'ext::triggers::stamp')
        self.assertEqual(entity.file, stamp.__code__.co_filename)
        self.assertEqual(entity.line, stamp.__code__.co_firstlineno)
        self.assertEqual(wrapper.symbol, entity.wrapper_name)
        self.assertEqual(wrapper({'id': 1}), {'id': 1, 'stamped': True})

        entity, _ = triggers.trigger_from_function(
            stamp, module_path='ext', into_datum=dict,
            file='src/lib.rs', line=40)
        self.assertEqual((entity.file, entity.line), ('src/lib.rs', 40))
