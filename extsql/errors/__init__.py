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

from .base import *  # NOQA
from .base import ExtSQLError


__all__ = base.__all__ + (  # type: ignore
    'ClassificationError',
    'UnknownReturnShape',
    'TypeExpressionError',
    'GraphError',
    'UnresolvedTypeReference',
    'DuplicateEntityError',
    'DependencyCycleError',
    'RenderError',
    'ReturnShapeMismatch',
    'InvalidOperatorArity',
    'MissingCompositeName',
    'InvalidIdentifier',
    'DeclarationError',
)


class ClassificationError(ExtSQLError):
    _code = 0x_01_00_00_00


class UnknownReturnShape(ClassificationError):
    _code = 0x_01_00_00_01


class TypeExpressionError(ClassificationError):
    _code = 0x_01_00_00_02


class GraphError(ExtSQLError):
    _code = 0x_02_00_00_00


class UnresolvedTypeReference(GraphError):
    _code = 0x_02_00_00_01


class DuplicateEntityError(GraphError):
    _code = 0x_02_00_00_02


class DependencyCycleError(GraphError):
    _code = 0x_02_00_00_03


class RenderError(ExtSQLError):
    _code = 0x_03_00_00_00


class ReturnShapeMismatch(RenderError):
    _code = 0x_03_00_00_01


class InvalidOperatorArity(RenderError):
    _code = 0x_03_00_00_02


class MissingCompositeName(RenderError):
    _code = 0x_03_00_00_03


class InvalidIdentifier(RenderError):
    _code = 0x_03_00_00_04


class DeclarationError(ExtSQLError):
    _code = 0x_04_00_00_00
