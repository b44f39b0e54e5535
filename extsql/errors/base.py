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

from typing import Any, Optional, Type, Iterator, Dict

import contextlib


__all__ = (
    'ExtSQLError', 'ensure_source',
)


class ExtSQLErrorMeta(type):
    _error_map: Dict[int, Type[ExtSQLError]] = {}
    _name_map: Dict[str, Type[ExtSQLError]] = {}

    def __new__(mcls, name, bases, dct):
        cls = super().__new__(mcls, name, bases, dct)

        assert name not in mcls._name_map
        mcls._name_map[name] = cls

        code = dct.get('_code')
        if code is not None:
            mcls._error_map[code] = cls

        return cls

    def __init__(cls, name, bases, dct):
        if cls._code is None and cls.__module__ != __name__:
            # We don't want any ExtSQLError subclasses to not
            # have a code.
            raise RuntimeError(
                'direct subclassing of ExtSQLError is prohibited; '
                'subclass one of its subclasses in extsql.errors')

    @classmethod
    def get_error_class_from_code(mcls, code: int) -> Type[ExtSQLError]:
        return mcls._error_map[code]

    @classmethod
    def get_error_class_from_name(mcls, name: str) -> Type[ExtSQLError]:
        return mcls._name_map[name]


class ExtSQLError(Exception, metaclass=ExtSQLErrorMeta):

    _code: Optional[int] = None
    _attrs: Dict[int, Any]

    def __init__(
        self,
        msg: Optional[str] = None,
        *,
        hint: Optional[str] = None,
        details: Optional[str] = None,
        entity: Optional[str] = None,
        filename: Optional[str] = None,
        line: Optional[int] = None,
    ):
        if type(self) is ExtSQLError:
            raise RuntimeError(
                'ExtSQLError is not supposed to be instantiated directly')

        self._attrs = {}

        if hint is not None:
            self._attrs[FIELD_HINT] = hint
        if details is not None:
            self._attrs[FIELD_DETAILS] = details

        self.set_source(entity=entity, filename=filename, line=line)

        super().__init__(msg)

    @classmethod
    def get_code(cls):
        if cls._code is None:
            raise RuntimeError(
                f'extsql error code is not set (type: {cls.__name__})')
        return cls._code

    def to_json(self):
        err_dct = {
            'message': str(self),
            'type': str(type(self).__name__),
            'code': self.get_code(),
        }
        for name, field in _JSON_FIELDS.items():
            if field in self._attrs:
                err_dct[name] = self._attrs[field]

        return err_dct

    def has_source(self) -> bool:
        return FIELD_ENTITY in self._attrs

    def set_source(
        self,
        *,
        entity: Optional[str] = None,
        filename: Optional[str] = None,
        line: Optional[int] = None,
    ) -> None:
        if entity is not None:
            self._attrs[FIELD_ENTITY] = entity
        if filename is not None:
            self._attrs[FIELD_FILENAME] = filename
        if line is not None:
            self._attrs[FIELD_LINE_START] = int(line)

    @property
    def line(self) -> int:
        return self._attrs.get(FIELD_LINE_START, -1)

    @property
    def filename(self) -> Optional[str]:
        return self._attrs.get(FIELD_FILENAME)

    @property
    def entity(self) -> Optional[str]:
        return self._attrs.get(FIELD_ENTITY)

    @property
    def hint(self) -> Optional[str]:
        return self._attrs.get(FIELD_HINT)

    @property
    def details(self) -> Optional[str]:
        return self._attrs.get(FIELD_DETAILS)

    def __str__(self) -> str:
        msg = super().__str__()
        if FIELD_ENTITY in self._attrs:
            where = self._attrs[FIELD_ENTITY]
            if FIELD_FILENAME in self._attrs:
                where += f' at {self._attrs[FIELD_FILENAME]}'
                if FIELD_LINE_START in self._attrs:
                    where += f':{self._attrs[FIELD_LINE_START]}'
            msg = f'{msg} ({where})'
        return msg


@contextlib.contextmanager
def ensure_source(
    entity: str,
    filename: Optional[str] = None,
    line: Optional[int] = None,
) -> Iterator[None]:
    try:
        yield
    except ExtSQLError as e:
        if not e.has_source():
            e.set_source(entity=entity, filename=filename, line=line)
        raise


FIELD_HINT = 0x_00_01
FIELD_DETAILS = 0x_00_02

FIELD_LINE_START = 0x_FF_F3
FIELD_FILENAME = 0x_FF_FB
FIELD_ENTITY = 0x_FF_FC

_JSON_FIELDS = {
    'hint': FIELD_HINT,
    'details': FIELD_DETAILS,
    'line': FIELD_LINE_START,
    'filename': FIELD_FILENAME,
    'entity': FIELD_ENTITY,
}
