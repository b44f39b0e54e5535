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


"""Declared type expressions.

Callables are declared with their argument and return types spelled the
way the extension source spells them, e.g.::

    Option<impl Iterator<Item = (name!(id, i64), name!(label, String))>>

This module tokenizes and parses such declarations into a small tree of
frozen nodes.  The tree is what the return-shape classifier and the
argument analysis operate on; nothing downstream inspects the raw text.
"""

from __future__ import annotations
from typing import (
    Optional,
    Tuple,
    Union,
)

import dataclasses
import functools
import re

from extsql import errors
from extsql.common import lexer


STATIC_LIFETIME = "'static"


class TypeExpr:
    """Base class of all type expression nodes."""

    def __str__(self) -> str:
        raise NotImplementedError


@dataclasses.dataclass(frozen=True)
class Lifetime:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclasses.dataclass(frozen=True)
class Literal:
    #: Literal contents with the quotes (if any) removed.
    value: str
    is_string: bool = False

    def __str__(self) -> str:
        if self.is_string:
            escaped = self.value.replace('\\', '\\\\').replace('"', '\\"')
            return f'"{escaped}"'
        return self.value


@dataclasses.dataclass(frozen=True)
class Binding:
    """An associated type binding, such as ``Item = T``."""

    name: str
    ty: TypeExpr

    def __str__(self) -> str:
        return f'{self.name} = {self.ty}'


GenericArg = Union[TypeExpr, Lifetime, Binding]


@dataclasses.dataclass(frozen=True)
class PathSegment:
    ident: str
    args: Tuple[GenericArg, ...] = ()

    def __str__(self) -> str:
        if not self.args:
            return self.ident
        return f'{self.ident}<{", ".join(str(a) for a in self.args)}>'

    def type_args(self) -> Tuple[TypeExpr, ...]:
        return tuple(a for a in self.args if isinstance(a, TypeExpr))

    def binding(self, name: str) -> Optional[Binding]:
        for arg in self.args:
            if isinstance(arg, Binding) and arg.name == name:
                return arg
        return None


@dataclasses.dataclass(frozen=True)
class PathType(TypeExpr):
    segments: Tuple[PathSegment, ...]
    leading_colons: bool = False

    def __str__(self) -> str:
        path = '::'.join(str(s) for s in self.segments)
        return f'::{path}' if self.leading_colons else path

    @property
    def last(self) -> PathSegment:
        return self.segments[-1]

    def has_segment(self, ident: str) -> bool:
        return any(s.ident == ident for s in self.segments)

    def first_type_arg(self) -> Optional[TypeExpr]:
        args = self.last.type_args()
        return args[0] if args else None


@dataclasses.dataclass(frozen=True)
class ReferenceType(TypeExpr):
    elem: TypeExpr
    lifetime: Optional[Lifetime] = None
    mutable: bool = False

    def __str__(self) -> str:
        buf = '&'
        if self.lifetime is not None:
            buf += f'{self.lifetime} '
        if self.mutable:
            buf += 'mut '
        return buf + str(self.elem)


@dataclasses.dataclass(frozen=True)
class SliceType(TypeExpr):
    elem: TypeExpr

    def __str__(self) -> str:
        return f'[{self.elem}]'


@dataclasses.dataclass(frozen=True)
class TupleType(TypeExpr):
    elems: Tuple[TypeExpr, ...] = ()

    def __str__(self) -> str:
        if len(self.elems) == 1:
            return f'({self.elems[0]},)'
        return f'({", ".join(str(e) for e in self.elems)})'


@dataclasses.dataclass(frozen=True)
class TraitBound:
    path: PathType

    def __str__(self) -> str:
        return str(self.path)


Bound = Union[TraitBound, Lifetime]


@dataclasses.dataclass(frozen=True)
class ImplTraitType(TypeExpr):
    bounds: Tuple[Bound, ...]

    def __str__(self) -> str:
        return 'impl ' + ' + '.join(str(b) for b in self.bounds)


@dataclasses.dataclass(frozen=True)
class DynTraitType(TypeExpr):
    bounds: Tuple[Bound, ...]

    def __str__(self) -> str:
        return 'dyn ' + ' + '.join(str(b) for b in self.bounds)


MacroArg = Union[TypeExpr, Literal]


@dataclasses.dataclass(frozen=True)
class MacroType(TypeExpr):
    """A type-position macro invocation: ``name!(...)``."""

    path: PathType
    args: Tuple[MacroArg, ...] = ()

    def __str__(self) -> str:
        return f'{self.path}!({", ".join(str(a) for a in self.args)})'

    @property
    def name(self) -> str:
        return self.path.last.ident


#
# Lexer
#

re_ident = r'(?:r\#)?[^\W\d]\w*'


class TypeLexer(lexer.Lexer):

    rules = [
        lexer.Rule(token='WS', regexp=r'\s+'),
        lexer.Rule(token='LIFETIME', regexp=r"'[^\W\d]\w*"),
        lexer.Rule(token='STRING', regexp=r'"(?:[^"\\]|\\.)*"'),
        lexer.Rule(token='NUMBER', regexp=r'-?\d+(?:\.\d+)?'),
        lexer.Rule(token='IDENT', regexp=re_ident),
        lexer.Rule(token='PATHSEP', regexp=r'::'),
        lexer.Rule(token='PUNCT', regexp=r'[<>(),&=!+\[\];*]'),
    ]


def _unescape(s: str) -> str:
    return re.sub(r'\\(.)', r'\1', s[1:-1])


#
# Parser
#

class TypeParser:

    def __init__(self, source: str) -> None:
        self.source = source
        try:
            self.tokens = [
                t for t in TypeLexer().lex(source) if t.type != 'WS'
            ]
        except lexer.UnknownTokenError as e:
            raise errors.TypeExpressionError(
                f'cannot parse type {source!r}: {e}') from e
        self.pos = 0

    def error(self, msg: str) -> errors.TypeExpressionError:
        tok = self.peek()
        if tok is None:
            where = 'at end of input'
        else:
            where = f'at column {tok.column}'
        return errors.TypeExpressionError(
            f'cannot parse type {self.source!r}: {msg} {where}')

    def peek(self, offset: int = 0) -> Optional[lexer.Token]:
        idx = self.pos + offset
        return self.tokens[idx] if idx < len(self.tokens) else None

    def at(self, text: str, offset: int = 0) -> bool:
        tok = self.peek(offset)
        return tok is not None and tok.text == text

    def at_type(self, toktype: str, offset: int = 0) -> bool:
        tok = self.peek(offset)
        return tok is not None and tok.type == toktype

    def advance(self) -> lexer.Token:
        tok = self.peek()
        if tok is None:
            raise self.error('unexpected end of input')
        self.pos += 1
        return tok

    def expect(self, text: str) -> lexer.Token:
        if not self.at(text):
            raise self.error(f'expected {text!r}')
        return self.advance()

    def parse(self) -> TypeExpr:
        ty = self.parse_type()
        if self.peek() is not None:
            raise self.error(f'unexpected {self.peek().text!r}')
        return ty

    def parse_type(self) -> TypeExpr:
        tok = self.peek()
        if tok is None:
            raise self.error('expected a type')

        if tok.text == '&':
            return self.parse_reference()
        elif tok.text == '(':
            return self.parse_tuple()
        elif tok.text == '[':
            self.advance()
            elem = self.parse_type()
            self.expect(']')
            return SliceType(elem)
        elif tok.type == 'IDENT' and tok.text == 'impl':
            self.advance()
            return ImplTraitType(self.parse_bounds())
        elif tok.type == 'IDENT' and tok.text == 'dyn':
            self.advance()
            return DynTraitType(self.parse_bounds())
        elif tok.type == 'IDENT' or tok.type == 'PATHSEP':
            path = self.parse_path()
            if self.at('!'):
                return self.parse_macro(path)
            return path
        else:
            raise self.error(f'unexpected {tok.text!r}')

    def parse_reference(self) -> ReferenceType:
        self.expect('&')
        lifetime = None
        if self.at_type('LIFETIME'):
            lifetime = Lifetime(self.advance().text)
        mutable = False
        if self.at('mut') and self.at_type('IDENT'):
            self.advance()
            mutable = True
        return ReferenceType(self.parse_type(), lifetime, mutable)

    def parse_tuple(self) -> TypeExpr:
        self.expect('(')
        elems = []
        trailing_comma = False
        while not self.at(')'):
            elems.append(self.parse_type())
            trailing_comma = False
            if self.at(','):
                self.advance()
                trailing_comma = True
            elif not self.at(')'):
                raise self.error("expected ',' or ')'")
        self.expect(')')

        if len(elems) == 1 and not trailing_comma:
            # Parenthesized type, not a tuple.
            return elems[0]
        return TupleType(tuple(elems))

    def parse_bounds(self) -> Tuple[Bound, ...]:
        bounds: list[Bound] = []
        while True:
            if self.at_type('LIFETIME'):
                bounds.append(Lifetime(self.advance().text))
            else:
                bounds.append(TraitBound(self.parse_path()))
            if not self.at('+'):
                break
            self.advance()
        return tuple(bounds)

    def parse_path(self) -> PathType:
        leading = False
        if self.at_type('PATHSEP'):
            self.advance()
            leading = True

        segments = [self.parse_segment()]
        while self.at_type('PATHSEP'):
            self.advance()
            segments.append(self.parse_segment())

        return PathType(tuple(segments), leading_colons=leading)

    def parse_segment(self) -> PathSegment:
        if not self.at_type('IDENT'):
            raise self.error('expected an identifier')
        ident = self.advance().text
        args: list[GenericArg] = []
        if self.at('<'):
            self.advance()
            while not self.at('>'):
                args.append(self.parse_generic_arg())
                if self.at(','):
                    self.advance()
                elif not self.at('>'):
                    raise self.error("expected ',' or '>'")
            self.expect('>')
        return PathSegment(ident, tuple(args))

    def parse_generic_arg(self) -> GenericArg:
        if self.at_type('LIFETIME'):
            return Lifetime(self.advance().text)
        if self.at_type('IDENT') and self.at('=', 1):
            name = self.advance().text
            self.advance()
            return Binding(name, self.parse_type())
        return self.parse_type()

    def parse_macro(self, path: PathType) -> MacroType:
        self.expect('!')
        self.expect('(')
        args: list[MacroArg] = []
        while not self.at(')'):
            if self.at_type('STRING'):
                args.append(Literal(_unescape(self.advance().text), True))
            elif self.at_type('NUMBER'):
                args.append(Literal(self.advance().text))
            else:
                args.append(self.parse_type())
            if self.at(','):
                self.advance()
            elif not self.at(')'):
                raise self.error("expected ',' or ')'")
        self.expect(')')
        return MacroType(path, tuple(args))


@functools.lru_cache(maxsize=1024)
def parse_type(source: str) -> TypeExpr:
    """Parse a declared type into a :class:`TypeExpr` tree."""
    return TypeParser(source).parse()


#
# Normalization
#

def _static(lt: Optional[Lifetime]) -> Optional[Lifetime]:
    if lt is None:
        return None
    return Lifetime(STATIC_LIFETIME)


def _normalize_arg(arg):
    if isinstance(arg, Lifetime):
        return _static(arg)
    elif isinstance(arg, Binding):
        return Binding(arg.name, normalize_lifetimes(arg.ty))
    elif isinstance(arg, Literal):
        return arg
    else:
        return normalize_lifetimes(arg)


def normalize_lifetimes(ty: TypeExpr) -> TypeExpr:
    """Return *ty* with every named lifetime replaced by ``'static``."""
    if isinstance(ty, PathType):
        return PathType(
            tuple(
                PathSegment(s.ident, tuple(_normalize_arg(a) for a in s.args))
                for s in ty.segments
            ),
            ty.leading_colons,
        )
    elif isinstance(ty, ReferenceType):
        return ReferenceType(
            normalize_lifetimes(ty.elem), _static(ty.lifetime), ty.mutable)
    elif isinstance(ty, SliceType):
        return SliceType(normalize_lifetimes(ty.elem))
    elif isinstance(ty, TupleType):
        return TupleType(tuple(normalize_lifetimes(e) for e in ty.elems))
    elif isinstance(ty, (ImplTraitType, DynTraitType)):
        bounds = tuple(
            _static(b) if isinstance(b, Lifetime)
            else TraitBound(normalize_lifetimes(b.path))
            for b in ty.bounds
        )
        return type(ty)(bounds)
    elif isinstance(ty, MacroType):
        return MacroType(ty.path, tuple(_normalize_arg(a) for a in ty.args))
    else:
        raise TypeError(f'unexpected type expression: {ty!r}')


def is_path(ty: TypeExpr, *idents: str) -> bool:
    """Check if *ty* is a path whose last segment is one of *idents*."""
    return isinstance(ty, PathType) and ty.last.ident in idents


def is_macro(ty: TypeExpr, *names: str) -> bool:
    return isinstance(ty, MacroType) and ty.name in names
