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
from extsql.sqlgraph import functions
from extsql.sqlgraph.entities import (
    CallableEntity,
    EnumEntity,
    ExtensionSqlEntity,
    ExternAttr,
    OperatorMeta,
    Requires,
    ToSqlConfig,
)
from extsql.sqlgraph.functions import RenderContext
from extsql.sqlgraph.graph import EntityGraph
from extsql.sqlgraph.metadata import ReturnKind


HUMAN_YEARS = (
    "Result<TableIterator<'static, ("
    "name!(dog_name, Result<Option<String>, pgx::spi::Error>), "
    "name!(dog_age, i32), "
    "name!(dog_breed, Result<Option<String>, pgx::spi::Error>), "
    "name!(human_age, i32))>, spi::Error>"
)


def fn(name, *, args=(), returns=None, **kwargs):
    kwargs.setdefault('file', 'src/lib.rs')
    kwargs.setdefault('line', 1)
    return CallableEntity.declare(
        name, 'ext', args=args, returns=returns, **kwargs)


def render(*entities, **kwargs):
    graph = EntityGraph.build(entities)
    ctx = RenderContext(graph, **kwargs)
    return functions.render_callable(entities[0], ctx)


class RenderFunctionTests(unittest.TestCase):

    def test_render_function(self):
        add_one = fn(
            'add_one', args=(('value', 'i32'),), returns='i32', line=10,
            attributes=(ExternAttr.Immutable, ExternAttr.ParallelSafe))
        self.assertEqual(
            render(add_one),
            '-- src/lib.rs:10\n'
            '-- ext::add_one\n'
            'CREATE FUNCTION "add_one"(\n'
            '\t"value" int /* i32 */\n'
            ') RETURNS int /* i32 */\n'
            'IMMUTABLE PARALLEL SAFE STRICT\n'
            'LANGUAGE c\n'
            "AS 'MODULE_PATHNAME', 'add_one_wrapper';"
        )

    def test_render_function_no_args(self):
        self.assertEqual(
            render(fn('noop'), module_pathname='$libdir/ext'),
            '-- src/lib.rs:1\n'
            '-- ext::noop\n'
            'CREATE FUNCTION "noop"() RETURNS void\n'
            'STRICT\n'
            'LANGUAGE c\n'
            "AS '$libdir/ext', 'noop_wrapper';"
        )

    def test_render_function_argument_list(self):
        sql = render(fn(
            'concat', returns='String',
            args=(
                ('sep', '&str'),
                ('fcinfo', 'pg_sys::FunctionCallInfo'),
                ('n', 'default!(i32, 10)'),
                ('parts', "VariadicArray<'a, &'a str>"),
            ),
        ))
        self.assertIn(
            'CREATE FUNCTION "concat"(\n'
            '\t"sep" text, /* &str */\n'
            '\t"n" int DEFAULT 10, /* i32 */\n'
            "\t\"parts\" VARIADIC text[] /* VariadicArray<'static, "
            "&'static str> */\n"
            ') RETURNS text /* String */\n',
            sql)
        self.assertNotIn('fcinfo', sql)

    def test_render_strict_added_once(self):
        sql = render(fn(
            'f', args=(('x', 'i32'),), returns='i32',
            attributes=(ExternAttr.Strict,)))
        self.assertEqual(sql.count('STRICT'), 1)

        sql = render(fn('g', args=(('x', 'i32'), ('y', 'String'))))
        self.assertEqual(sql.count('STRICT'), 1)

    def test_render_optional_argument_not_strict(self):
        sql = render(fn(
            'f', args=(('x', 'i32'), ('y', 'Option<i32>')), returns='i32'))
        self.assertNotIn('STRICT', sql)

    def test_render_internal_argument_not_strict(self):
        sql = render(fn(
            'f', args=(('x', 'Internal'),), returns='Internal'))
        self.assertIn('"x" internal /* Internal */', sql)
        self.assertNotIn('STRICT', sql)

    def test_render_option_return_is_plain(self):
        plain = render(fn('f', returns='i32'))
        optional = render(fn('f', returns='Option<i32>'))
        self.assertIn(') RETURNS int /* i32 */\n', plain)
        self.assertEqual(plain, optional)

    def test_render_returns(self):
        cases = [
            ('Vec<i32>', 'RETURNS int[] /* Vec<i32> */'),
            ("impl Iterator<Item = i64> + 'a",
             'RETURNS SETOF bigint /* i64 */'),
            ('(i32, name!(label, String))',
             'RETURNS TABLE(int, "label" text)'),
            ('pg_sys::Datum', 'RETURNS trigger'),
            ('composite_type!("Dog")', 'RETURNS Dog /* PgHeapTuple */'),
            ('impl Iterator<Item = composite_type!("Dog")>',
             'RETURNS SETOF Dog /* PgHeapTuple */'),
        ]
        for declared, expected in cases:
            with self.subTest(declared=declared):
                self.assertIn(
                    f') {expected}\n', render(fn('f', returns=declared)))

    def test_render_table_iterator(self):
        sql = render(fn('calculate_human_years', returns=HUMAN_YEARS))
        self.assertIn(
            'CREATE FUNCTION "calculate_human_years"() '
            'RETURNS TABLE("dog_name" text, "dog_age" int, '
            '"dog_breed" text, "human_age" int)\n',
            sql)

    def test_render_composite_arguments(self):
        sql = render(fn(
            'walk',
            args=(
                ('dog', 'composite_type!("Dog")'),
                ('pack', 'Vec<composite_type!("Dog")>'),
            ),
        ))
        self.assertIn('\t"dog" Dog, /* PgHeapTuple */\n', sql)
        self.assertIn('\t"pack" Dog[] /* Vec<PgHeapTuple> */\n', sql)

    def test_render_missing_composite_name(self):
        with self.assertRaisesRegex(
            errors.MissingCompositeName, "argument 'dog'"
        ) as cm:
            render(fn('walk', args=(('dog', 'PgHeapTuple'),)))
        self.assertEqual(cm.exception.entity, 'ext::walk')

        with self.assertRaises(errors.MissingCompositeName):
            render(fn('bad', returns='pg_sys::FunctionCallInfo'))

    def test_render_return_shape_mismatch(self):
        f = fn('f', returns='i32', line=22, realized_return=ReturnKind.SETOF)
        with self.assertRaisesRegex(
            errors.ReturnShapeMismatch,
            'suggests a type return value.*returns a setof value'
        ) as cm:
            render(f)
        self.assertEqual(cm.exception.entity, 'ext::f')
        self.assertEqual(cm.exception.filename, 'src/lib.rs')
        self.assertEqual(cm.exception.line, 22)

        same = fn('g', returns='i32', realized_return=ReturnKind.TYPE)
        self.assertIn('RETURNS int', render(same))

    def test_render_options(self):
        setup = ExtensionSqlEntity(
            'setup_tables', 'CREATE TABLE t ();', 'ext')
        sql = render(fn(
            'f', returns='i32',
            attributes=(
                ExternAttr.CreateOrReplace,
                ExternAttr.Stable,
                ExternAttr.NoGuard,
                ExternAttr.Raw,
                ExternAttr.SecurityDefiner,
                Requires(('setup_tables',)),
            ),
            search_path=('public', 'ext'),
        ), setup)
        self.assertEqual(
            sql,
            '-- src/lib.rs:1\n'
            '-- ext::f\n'
            '-- requires:\n'
            '--   setup_tables\n'
            'CREATE OR REPLACE FUNCTION "f"() RETURNS int /* i32 */\n'
            'STABLE SECURITY DEFINER STRICT\n'
            'SET search_path TO public, ext\n'
            'LANGUAGE c\n'
            "AS 'MODULE_PATHNAME', 'f_wrapper';"
        )

    def test_render_to_sql_config(self):
        self.assertEqual(
            render(fn('f', to_sql_config=ToSqlConfig(enabled=False))), '')
        self.assertEqual(
            render(fn('f', to_sql_config=ToSqlConfig(
                content='\nCREATE FUNCTION f() RETURNS int AS $$ 1 $$;\n'))),
            '-- src/lib.rs:1\n'
            '-- ext::f\n'
            'CREATE FUNCTION f() RETURNS int AS $$ 1 $$;'
        )

    def test_render_name_too_long(self):
        self.assertIn('CREATE FUNCTION "' + 'f' * 63, render(fn('f' * 63)))

        name = '\u00e9' * 32
        with self.assertRaisesRegex(
            errors.InvalidIdentifier, 'longer than 63 bytes'
        ) as cm:
            render(fn(name, line=7))
        self.assertEqual(cm.exception.entity, f'ext::{name}')
        self.assertEqual(cm.exception.filename, 'src/lib.rs')
        self.assertEqual(cm.exception.line, 7)

        sql = render(fn(name, to_sql_config=ToSqlConfig(content='--')))
        self.assertTrue(sql.endswith('\n--'))

    def test_render_schema_prefix(self):
        animals = EnumEntity(
            'Animals', 'Animals', 'ext', ('dog',), schema='pets')
        sql = render(
            fn('adopt', args=(('kind', 'Animals'),), returns='Animals',
               schema='tests'),
            animals)
        self.assertIn('CREATE FUNCTION tests."adopt"(\n', sql)
        self.assertIn('\t"kind" pets.Animals /* Animals */\n', sql)
        self.assertIn(') RETURNS pets.Animals /* Animals */\n', sql)


class RenderOperatorTests(unittest.TestCase):

    def test_render_operator(self):
        int_eq = fn(
            'int_eq', args=(('l', 'i32'), ('r', 'i32')), returns='bool',
            file='src/ops.rs', line=3,
            operator=OperatorMeta('==', commutator='==', hashes=True))
        sql = render(int_eq)
        function, operator = sql.split('\n\n')
        self.assertTrue(function.startswith('-- src/ops.rs:3\n'))
        self.assertEqual(
            operator,
            '-- src/ops.rs:3\n'
            '-- ext::int_eq\n'
            'CREATE OPERATOR == (\n'
            '\tPROCEDURE="int_eq",\n'
            '\tLEFTARG=int, /* i32 */\n'
            '\tRIGHTARG=int, /* i32 */\n'
            '\tCOMMUTATOR = ==,\n'
            '\tHASHES\n'
            ');'
        )
        self.assertNotIn('NEGATOR', operator)

    def test_render_operator_all_clauses(self):
        sql = render(fn(
            'int_lt', args=(('l', 'i32'), ('r', 'i64')), returns='bool',
            operator=OperatorMeta(
                '<', commutator='>', negator='>=',
                restrict='scalarltsel', join='scalarltjoinsel',
                merges=True)))
        self.assertIn(
            '\tLEFTARG=int, /* i32 */\n'
            '\tRIGHTARG=bigint, /* i64 */\n'
            '\tCOMMUTATOR = >,\n'
            '\tNEGATOR = >=,\n'
            '\tRESTRICT = scalarltsel,\n'
            '\tJOIN = scalarltjoinsel,\n'
            '\tMERGES\n'
            ');',
            sql)

    def test_render_operator_no_clauses(self):
        sql = render(fn(
            'concat', args=(('l', 'String'), ('r', 'String')),
            returns='String', operator=OperatorMeta('||')))
        self.assertTrue(sql.endswith(
            '\tLEFTARG=text, /* String */\n'
            '\tRIGHTARG=text /* String */\n'
            ');'))

    def test_render_operator_arity(self):
        neg = fn(
            'neg', args=(('v', 'i32'),), returns='i32', line=9,
            operator=OperatorMeta('-'))
        with self.assertRaisesRegex(
            errors.InvalidOperatorArity, 'exactly two arguments'
        ) as cm:
            render(neg)
        self.assertEqual(cm.exception.entity, 'ext::neg')
        self.assertEqual(cm.exception.line, 9)
