"""Schema source parser using Lark."""

import ast
import os
from dataclasses import dataclass
from typing import Any, TypeVar

from lark import Lark, Token
from lark.exceptions import UnexpectedInput, VisitError
from lark.visitors import Transformer

from ..errors import SchemaError
from .types import (
    SUPPORTED_SYNTAX,
    ProtoEnum,
    ProtoEnumValue,
    ProtoField,
    ProtoFile,
    ProtoImport,
    ProtoMessage,
    ProtoOption,
    ProtoRange,
    ProtoReserved,
)

_g_parser: Lark | None = None

# `reserved 100 to max` - large enough to cover both field and enum numbers
RESERVED_MAX = (1 << 31) - 1


@dataclass
class _Wrapped:
    value: Any


class _Name(_Wrapped):
    pass


class _Number(_Wrapped):
    pass


class _String(_Wrapped):
    pass


class _TypeRef(_Wrapped):
    pass


class _Ident(_Wrapped):
    pass


class _OptionName(_Wrapped):
    pass


class _Constant(_Wrapped):
    pass


class _ReservedName(_Wrapped):
    pass


class _Syntax(_Wrapped):
    pass


class _Package(_Wrapped):
    pass


@dataclass
class _FieldOptions:
    options: list[ProtoOption]


TFilter = TypeVar("TFilter", bound=object)


def _filter(args: list[Any], class_type: type[TFilter]) -> list[TFilter]:
    return [v for v in args if isinstance(v, class_type)]


def _find_one(args: list[Any], class_type: type[object]) -> Any:
    filtered = _filter(args, class_type)
    if len(filtered) == 0:
        return None
    if len(filtered) > 1:
        raise RuntimeError(f"Found more than one {class_type.__name__}")

    if isinstance(filtered[0], _Wrapped):
        return filtered[0].value
    return filtered[0]


TMany = TypeVar("TMany")


def _find_many(args: list[Any], class_type: type[TMany]) -> list[TMany]:
    return _filter(args, class_type)


def _options(args: list[Any]) -> list[ProtoOption]:
    field_options = _find_one(args, _FieldOptions)
    return field_options.options if field_options else []


def _token(args: list[Any], token_type: str) -> str | None:
    for arg in args:
        if isinstance(arg, Token) and arg.type == token_type:
            return str(arg)
    return None


class TreeTransformer(Transformer):
    """Transform parse tree into syntax tree types."""

    def constant(self, args: list[Any]) -> _Constant:
        arg = args[0]
        if isinstance(arg, _String):
            return _Constant(arg.value)
        if arg.type == "SIGNED_NUMBER":
            text = str(arg)
            try:
                return _Constant(int(text))
            except ValueError:
                return _Constant(float(text))
        if arg == "true":
            return _Constant(True)
        if arg == "false":
            return _Constant(False)
        return _Constant(str(arg))

    def enum(self, args: list[Any]) -> ProtoEnum:
        return ProtoEnum(
            name=_find_one(args, _Name),
            values=_find_many(args, ProtoEnumValue),
            options=_find_many(args, ProtoOption),
            reserved=_find_many(args, ProtoReserved),
        )

    def enum_value(self, args: list[Any]) -> ProtoEnumValue:
        return ProtoEnumValue(
            name=_find_one(args, _Name),
            number=_find_one(args, _Number),
            options=_options(args),
        )

    def field(self, args: list[Any]) -> ProtoField:
        return ProtoField(
            name=_find_one(args, _Name),
            type=_find_one(args, _TypeRef),
            number=_find_one(args, _Number),
            label=_token(args, "LABEL"),
            options=_options(args),
        )

    def field_option(self, args: list[Any]) -> ProtoOption:
        return ProtoOption(name=_find_one(args, _OptionName), value=_find_one(args, _Constant))

    def field_options(self, args: list[Any]) -> _FieldOptions:
        return _FieldOptions(options=_find_many(args, ProtoOption))

    def full_ident(self, args: list[Any]) -> _Ident:
        return _Ident(str(args[0]))

    def import_stmt(self, args: list[Any]) -> ProtoImport:
        return ProtoImport(
            path=_find_one(args, _String),
            modifier=_token(args, "IMPORT_MODIFIER"),
        )

    def message(self, args: list[Any]) -> ProtoMessage:
        return ProtoMessage(
            name=_find_one(args, _Name),
            fields=_find_many(args, ProtoField),
            messages=_find_many(args, ProtoMessage),
            enums=_find_many(args, ProtoEnum),
            reserved=_find_many(args, ProtoReserved),
        )

    def name(self, args: list[Any]) -> _Name:
        return _Name(str(args[0]))

    def number(self, args: list[Any]) -> _Number:
        return _Number(int(args[0]))

    def option(self, args: list[Any]) -> ProtoOption:
        return ProtoOption(name=_find_one(args, _OptionName), value=_find_one(args, _Constant))

    def option_name(self, args: list[Any]) -> _OptionName:
        return _OptionName(str(args[0]))

    def package(self, args: list[Any]) -> _Package:
        return _Package(_find_one(args, _Ident))

    def reserved(self, args: list[Any]) -> ProtoReserved:
        return ProtoReserved(
            ranges=_find_many(args, ProtoRange),
            names=[name.value for name in _find_many(args, _ReservedName)],
        )

    def reserved_name(self, args: list[Any]) -> _ReservedName:
        return _ReservedName(args[0].value)

    def reserved_range(self, args: list[Any]) -> ProtoRange:
        bounds = [arg for arg in args if arg is not None]
        start = int(bounds[0])
        if len(bounds) == 1:
            return ProtoRange(start=start, end=start)
        if bounds[1].type == "MAX":
            return ProtoRange(start=start, end=RESERVED_MAX)
        return ProtoRange(start=start, end=int(bounds[1]))

    def signed_number(self, args: list[Any]) -> _Number:
        return _Number(int(args[0]))

    def string(self, args: list[Any]) -> _String:
        return _String(ast.literal_eval(str(args[0])))

    def syntax(self, args: list[Any]) -> _Syntax:
        return _Syntax(_find_one(args, _String))

    def type_ref(self, args: list[Any]) -> _TypeRef:
        return _TypeRef(str(args[0]))


def validate(items: list[Any]) -> None:
    """Validate file-level statements of a parsed schema."""
    syntaxes = _find_many(items, _Syntax)
    if len(syntaxes) > 1:
        raise SchemaError("syntax declared more than once")
    if syntaxes and syntaxes[0].value not in SUPPORTED_SYNTAX:
        raise SchemaError(f"Unsupported syntax {syntaxes[0].value!r}")

    if len(_find_many(items, _Package)) > 1:
        raise SchemaError("package declared more than once")


def _get_parser() -> Lark:
    global _g_parser

    if not _g_parser:
        with open(f"{os.path.dirname(__file__)}/protodef.lark", encoding="utf-8") as f:
            grammar = f.read()

        _g_parser = Lark(grammar)

    return _g_parser


def parse(text: str, path: str | None = None) -> ProtoFile:
    """Parse a schema source into a ProtoFile syntax tree."""
    where = path or "<schema>"
    try:
        tree = _get_parser().parse(text)
        tree = TreeTransformer().transform(tree)
    except UnexpectedInput as exc:
        raise SchemaError(
            f"{where}: syntax error at line {exc.line}, column {exc.column}"
        ) from exc
    except VisitError as exc:
        raise SchemaError(f"{where}: {exc.orig_exc}") from exc

    items = tree.children

    validate(items)

    return ProtoFile(
        syntax=_find_one(items, _Syntax),
        package=_find_one(items, _Package),
        imports=_find_many(items, ProtoImport),
        options=_find_many(items, ProtoOption),
        messages=_find_many(items, ProtoMessage),
        enums=_find_many(items, ProtoEnum),
        path=path,
    )
