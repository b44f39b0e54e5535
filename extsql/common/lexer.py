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

import collections
import re


class LexError(Exception):
    def __init__(self, msg, *, col=None):
        if col is not None:
            msg = f'{msg} at column {col}'
        super().__init__(msg)
        self.col = col


class UnknownTokenError(LexError):
    pass


Token = collections.namedtuple('Token', ['type', 'text', 'column'])


class Rule:
    _idx = 0
    _map: dict[str, Rule] = {}

    def __init__(self, *, token, regexp):
        cls = self.__class__
        cls._idx += 1
        self.id = 'rule{}'.format(cls._idx)
        cls._map[self.id] = self

        self.token = token
        self.regexp = regexp

    def __repr__(self):
        return '<{} {} {!r}>'.format(self.id, self.token, self.regexp)


class Lexer:
    """Single-line regex lexer.

    Subclasses list their rules in ``rules``; the first rule whose
    regexp matches at the current position wins.
    """

    RE_FLAGS = re.X | re.U

    def __init_subclass__(cls):
        if not hasattr(cls, 'rules'):
            return

        res = ['(?P<{}>{})'.format(rule.id, rule.regexp)
               for rule in cls.rules]
        res.append('(?P<err>.)')
        cls.re_rules = re.compile(' | '.join(res), cls.RE_FLAGS)

    def lex(self, src):
        """Tokenize *src*, yielding tokens as defined by the rules.

        May raise UnknownTokenError.
        """
        for match in self.re_rules.finditer(src):
            rule_id = match.lastgroup
            txt = match.group(rule_id)
            column = match.start() + 1

            if rule_id == 'err':
                # No rule has been matched
                raise UnknownTokenError(f"Unexpected '{txt}'", col=column)

            yield Token(Rule._map[rule_id].token, txt, column)
