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



import json
import unittest

from extsql import errors
from extsql.sqlgraph import declarations
from extsql.sqlgraph.entities import (
    CallableEntity,
    EnumEntity,
    ExtensionSqlEntity,
    ExternAttr,
    OperatorMeta,
    Requires,
    SchemaEntity,
    ToSqlConfig,
    TriggerEntity,
    TypeEntity,
)
from extsql.sqlgraph.metadata import ReturnKind


DOCUMENT = {
    'schemas': [
        {'name': 'tests', 'module_path': 'ext::tests'},
    ],
    'types': [
        {'name': 'Complex', 'module_path': 'ext',
         'in_fn': 'complex_in', 'out_fn': 'complex_out'},
    ],
    'enums': [
        {'name': 'Animals', 'module_path': 'ext',
         'variants': ['dog', 'cat'], 'file': 'src/lib.rs', 'line': 4},
    ],
    'functions': [
        {
            'name': 'int_eq',
            'module_path': 'ext',
            'file': 'src/ops.rs',
            'line': 12,
            'args': [
                {'name': 'l', 'type': 'i32'},
                {'name': 'r', 'type': 'i32', 'default': '0'},
            ],
            'returns': 'bool',
            'attributes': ['immutable', 'parallel_safe'],
            'requires': ['setup'],
            'search_path': ['public'],
            'operator': {'opname': '==', 'commutator': '==',
                         'hashes': True},
        },
        {
            'name': 'walk',
            'module_path': 'ext',
            'args': [
                {'name': 'dog', 'type': 'PgHeapTuple',
                 'composite': 'Dog'},
            ],
            'to_sql': False,
            'realized_return': 'none',
        },
    ],
    'triggers': [
        {'name': 'audit', 'module_path': 'ext::tests',
         'to_sql': 'CREATE FUNCTION audit() ...;'},
    ],
    'extension_sql': [
        {'name': 'setup', 'sql': 'CREATE TABLE dogs ();',
         'module_path': 'ext', 'bootstrap': True},
    ],
}


class DeclarationsTests(unittest.TestCase):

    def test_declarations_load(self):
        entities = declarations.load(DOCUMENT)
        self.assertEqual(
            [type(e) for e in entities],
            [SchemaEntity, TypeEntity, EnumEntity, CallableEntity,
             CallableEntity, TriggerEntity, ExtensionSqlEntity])

        schema, ty, enum, int_eq, walk, audit, setup = entities
        self.assertEqual(schema, SchemaEntity('tests', 'ext::tests'))
        self.assertEqual(ty.type_id, 'Complex')
        self.assertTrue(ty.has_definition())
        self.assertEqual(enum.variants, ('dog', 'cat'))
        self.assertEqual((enum.file, enum.line), ('src/lib.rs', 4))

        self.assertEqual(int_eq.return_shape.kind, ReturnKind.TYPE)
        self.assertEqual(int_eq.arguments[1].default, '0')
        self.assertEqual(
            int_eq.attributes,
            (ExternAttr.Immutable, ExternAttr.ParallelSafe,
             Requires(('setup',))))
        self.assertEqual(int_eq.search_path, ('public',))
        self.assertEqual(
            int_eq.operator,
            OperatorMeta('==', commutator='==', hashes=True))
        self.assertEqual((int_eq.file, int_eq.line), ('src/ops.rs', 12))

        self.assertEqual(walk.arguments[0].composite_name, 'Dog')
        self.assertEqual(walk.to_sql_config, ToSqlConfig(enabled=False))
        self.assertEqual(walk.realized_return, ReturnKind.NONE)

        self.assertEqual(
            audit.to_sql_config,
            ToSqlConfig(content='CREATE FUNCTION audit() ...;'))
        self.assertTrue(setup.bootstrap)
        self.assertFalse(setup.finalize)

    def test_declarations_loads(self):
        entities = declarations.loads(json.dumps(DOCUMENT))
        self.assertEqual(len(entities), 7)

        with self.assertRaisesRegex(
            errors.DeclarationError, 'not valid JSON'
        ) as cm:
            declarations.loads('{\n"functions": [}')
        self.assertEqual(cm.exception.line, 2)

    def test_declarations_errors(self):
        bad = [
            ([], 'must be a JSON object'),
            ({'tables': []}, 'unknown sections in declarations: tables'),
            ({'functions': {}}, "section 'functions' must be a list"),
            ({'functions': ['f']}, r'functions\[0\]: expected an object'),
            ({'functions': [{'module_path': 'ext'}]},
             "missing required key 'name'"),
            ({'functions': [{'name': 'f', 'args': 'x'}]},
             r"functions\[0\] \(f\): 'args' must be a list"),
            ({'functions': [{'name': 'f', 'args': [{'name': 'x'}]}]},
             r"functions\[0\] \(f\)\.args\[0\] \(x\): "
             r"missing required key 'type'"),
            ({'functions': [{'name': 'f', 'attributes': ['fast']}]},
             "unknown attribute 'fast'"),
            ({'functions': [{'name': 'f', 'realized_return': 'many'}]},
             "unknown return shape 'many'"),
            ({'functions': [{'name': 'f', 'line': '3'}]},
             "'line' must be an integer"),
            ({'functions': [{'name': 'f', 'to_sql': 1}]},
             "'to_sql' must be a boolean or a string"),
            ({'functions': [{'name': 'f', 'operator': {}}]},
             r"functions\[0\] \(f\)\.operator: "
             r"missing required key 'opname'"),
            ({'types': [{'name': 'T', 'in_fn': 'f'}]},
             "'in_fn' and 'out_fn' must be given together"),
            ({'enums': [{'name': 'E'}]}, 'at least one variant'),
            ({'extension_sql': [{'name': 's', 'sql': 'x',
                                 'bootstrap': 'yes'}]},
             "'bootstrap' must be a boolean"),
            ({'enums': [{'name': 'E', 'variants': [1]}]},
             "'variants' must be a list of strings"),
        ]
        for document, message in bad:
            with self.subTest(document=document):
                with self.assertRaisesRegex(
                    errors.DeclarationError, message
                ):
                    declarations.load(document)

    def test_declarations_type_errors_carry_source(self):
        document = {
            'functions': [{
                'name': 'f', 'module_path': 'ext',
                'file': 'src/lib.rs', 'line': 8,
                'returns': 'impl Display',
            }],
        }
        with self.assertRaises(errors.UnknownReturnShape) as cm:
            declarations.load(document)
        self.assertEqual(cm.exception.entity, 'functions[0] (f)')
        self.assertEqual(cm.exception.filename, 'src/lib.rs')
        self.assertEqual(cm.exception.line, 8)

        document = {
            'functions': [{
                'name': 'f', 'args': [{'name': 'x', 'type': 'Vec<'}],
            }],
        }
        with self.assertRaisesRegex(
            errors.TypeExpressionError, "cannot parse type 'Vec<'"
        ):
            declarations.load(document)

    def test_declarations_single_entry(self):
        entities = declarations.load({
            'functions': [
                {'name': 'f', 'module_path': 'ext', 'returns': 'i32'},
            ],
        })
        self.assertEqual(len(entities), 1)
        fn = entities[0]
        self.assertIsInstance(fn, CallableEntity)
        self.assertEqual(fn.name, 'f')
        self.assertEqual(fn.return_shape.kind, ReturnKind.TYPE)

    def test_declarations_error_names_entry(self):
        document = {
            'enums': [
                {'name': 'A', 'variants': ['x']},
                {'name': 'B', 'variants': []},
            ],
        }
        with self.assertRaisesRegex(
            errors.DeclarationError, r'^enums\[1\] \(B\): '
        ):
            declarations.load(document)
