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


"""Build entities from a declarations document.

A declarations document is the JSON a collector writes out after
walking the extension's callables and types::

    {
        "schemas": [{"name": "tests", "module_path": "ext::tests"}],
        "enums": [{"name": "Animals", "module_path": "ext",
                   "variants": ["dog", "cat"]}],
        "functions": [{
            "name": "add_one",
            "module_path": "ext",
            "args": [{"name": "value", "type": "i32"}],
            "returns": "i32",
            "attributes": ["immutable", "parallel_safe"]
        }],
        ...
    }

Type declarations (argument ``type`` and function ``returns``) are
given as source text and parsed by :mod:`.typeexpr`.
"""

from __future__ import annotations
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

import dataclasses
import json
import logging

from extsql import errors

from . import returning
from .entities import (
    Argument,
    Attribute,
    CallableEntity,
    Entity,
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
from .metadata import ReturnKind


logger = logging.getLogger('extsql.sqlgraph')


def _where(section: str, idx: int, entry: Any) -> str:
    if isinstance(entry, Mapping) and isinstance(entry.get('name'), str):
        return f'{section}[{idx}] ({entry["name"]})'
    return f'{section}[{idx}]'


class _Entry:

    def __init__(self, where: str, data: Any) -> None:
        self.where = where
        if not isinstance(data, Mapping):
            raise errors.DeclarationError(
                f'{self.where}: expected an object, '
                f'got {type(data).__name__}')
        self.data = data

    def _fail(self, msg: str) -> errors.DeclarationError:
        return errors.DeclarationError(f'{self.where}: {msg}')

    def get_str(self, key: str, default: Any = ...) -> Any:
        value = self.data.get(key, default)
        if value is ...:
            raise self._fail(f'missing required key {key!r}')
        if value is None and default is None:
            return None
        if not isinstance(value, str):
            raise self._fail(f'{key!r} must be a string')
        return value

    def get_int(self, key: str) -> Optional[int]:
        value = self.data.get(key)
        if value is not None and (
            not isinstance(value, int) or isinstance(value, bool)
        ):
            raise self._fail(f'{key!r} must be an integer')
        return value

    def get_bool(self, key: str) -> bool:
        value = self.data.get(key, False)
        if not isinstance(value, bool):
            raise self._fail(f'{key!r} must be a boolean')
        return value

    def get_strs(self, key: str) -> Optional[Tuple[str, ...]]:
        value = self.data.get(key)
        if value is None:
            return None
        if (
            not isinstance(value, list)
            or not all(isinstance(v, str) for v in value)
        ):
            raise self._fail(f'{key!r} must be a list of strings')
        return tuple(value)

    def location(self) -> Dict[str, Any]:
        return {
            'file': self.get_str('file', None),
            'line': self.get_int('line'),
        }

    def to_sql_config(self) -> ToSqlConfig:
        value = self.data.get('to_sql', True)
        if isinstance(value, bool):
            return ToSqlConfig(enabled=value)
        elif isinstance(value, str):
            return ToSqlConfig(content=value)
        else:
            raise self._fail("'to_sql' must be a boolean or a string")


def _argument(fn: _Entry, idx: int, data: Any) -> Argument:
    where = f'{fn.where}.args'
    arg = _Entry(_where(where, idx, data), data)
    name = arg.get_str('name')
    declared = arg.get_str('type')
    with errors.ensure_source(fn.where):
        result = Argument.from_declaration(name, declared)

    default = arg.get_str('default', None)
    if default is not None:
        result = dataclasses.replace(result, default=default)
    composite = arg.get_str('composite', None)
    if composite is not None:
        result = dataclasses.replace(result, composite_name=composite)
    return result


def _attributes(fn: _Entry) -> Tuple[Attribute, ...]:
    attrs: List[Attribute] = []
    for name in fn.get_strs('attributes') or ():
        try:
            attrs.append(ExternAttr(name))
        except ValueError:
            raise fn._fail(f'unknown attribute {name!r}') from None
    requires = fn.get_strs('requires')
    if requires:
        attrs.append(Requires(requires))
    return tuple(attrs)


def _operator(fn: _Entry) -> Optional[OperatorMeta]:
    data = fn.data.get('operator')
    if data is None:
        return None
    op = _Entry(f'{fn.where}.operator', data)
    return OperatorMeta(
        opname=op.get_str('opname'),
        commutator=op.get_str('commutator', None),
        negator=op.get_str('negator', None),
        restrict=op.get_str('restrict', None),
        join=op.get_str('join', None),
        hashes=op.get_bool('hashes'),
        merges=op.get_bool('merges'),
    )


def _function(entry: _Entry) -> CallableEntity:
    args = entry.data.get('args', [])
    if not isinstance(args, list):
        raise entry._fail("'args' must be a list")

    realized = entry.get_str('realized_return', None)
    if realized is not None:
        try:
            realized_kind: Optional[ReturnKind] = ReturnKind(realized)
        except ValueError:
            raise entry._fail(
                f'unknown return shape {realized!r}') from None
    else:
        realized_kind = None

    location = entry.location()
    with errors.ensure_source(
        entry.where, location['file'], location['line']
    ):
        shape = returning.classify(entry.get_str('returns', None))

    return CallableEntity(
        name=entry.get_str('name'),
        module_path=entry.get_str('module_path', ''),
        arguments=tuple(
            _argument(entry, i, a) for i, a in enumerate(args)),
        return_shape=shape,
        unaliased_name=entry.get_str('unaliased_name', None),
        full_path=entry.get_str('full_path', None),
        schema=entry.get_str('schema', None),
        attributes=_attributes(entry),
        search_path=entry.get_strs('search_path'),
        operator=_operator(entry),
        to_sql_config=entry.to_sql_config(),
        realized_return=realized_kind,
        **location,
    )


def _schema(entry: _Entry) -> SchemaEntity:
    return SchemaEntity(
        name=entry.get_str('name'),
        module_path=entry.get_str('module_path', ''),
        **entry.location(),
    )


def _type(entry: _Entry) -> TypeEntity:
    name = entry.get_str('name')
    in_fn = entry.get_str('in_fn', None)
    out_fn = entry.get_str('out_fn', None)
    if (in_fn is None) != (out_fn is None):
        raise entry._fail("'in_fn' and 'out_fn' must be given together")
    return TypeEntity(
        name=name,
        type_id=entry.get_str('type_id', name),
        module_path=entry.get_str('module_path', ''),
        schema=entry.get_str('schema', None),
        sql=entry.get_str('sql', None),
        in_fn=in_fn,
        out_fn=out_fn,
        **entry.location(),
    )


def _enum(entry: _Entry) -> EnumEntity:
    name = entry.get_str('name')
    variants = entry.get_strs('variants')
    if not variants:
        raise entry._fail('an enum needs at least one variant')
    return EnumEntity(
        name=name,
        type_id=entry.get_str('type_id', name),
        module_path=entry.get_str('module_path', ''),
        variants=variants,
        schema=entry.get_str('schema', None),
        **entry.location(),
    )


def _trigger(entry: _Entry) -> TriggerEntity:
    return TriggerEntity(
        function_name=entry.get_str('name'),
        module_path=entry.get_str('module_path', ''),
        full_path=entry.get_str('full_path', None),
        schema=entry.get_str('schema', None),
        to_sql_config=entry.to_sql_config(),
        **entry.location(),
    )


def _extension_sql(entry: _Entry) -> ExtensionSqlEntity:
    return ExtensionSqlEntity(
        name=entry.get_str('name'),
        sql=entry.get_str('sql'),
        module_path=entry.get_str('module_path', ''),
        requires=entry.get_strs('requires') or (),
        bootstrap=entry.get_bool('bootstrap'),
        finalize=entry.get_bool('finalize'),
        schema=entry.get_str('schema', None),
        **entry.location(),
    )


_SECTIONS: Dict[str, Callable[[_Entry], Entity]] = {
    'schemas': _schema,
    'types': _type,
    'enums': _enum,
    'functions': _function,
    'triggers': _trigger,
    'extension_sql': _extension_sql,
}


def load(document: Mapping[str, Any]) -> List[Entity]:
    """Return the entities declared in a parsed declarations document."""
    if not isinstance(document, Mapping):
        raise errors.DeclarationError(
            'a declarations document must be a JSON object')

    unknown = set(document) - set(_SECTIONS)
    if unknown:
        raise errors.DeclarationError(
            f'unknown sections in declarations: '
            f'{", ".join(sorted(unknown))}')

    entities: List[Entity] = []
    for section, build in _SECTIONS.items():
        entries = document.get(section, [])
        if not isinstance(entries, Sequence) or isinstance(entries, str):
            raise errors.DeclarationError(
                f'section {section!r} must be a list')
        for idx, data in enumerate(entries):
            entities.append(build(_Entry(_where(section, idx, data), data)))

    logger.debug('loaded %d declared entities', len(entities))
    return entities


def loads(text: str) -> List[Entity]:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise errors.DeclarationError(
            f'declarations are not valid JSON: {e.msg}',
            line=e.lineno) from e
    return load(document)
