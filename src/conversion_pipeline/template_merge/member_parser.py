"""Splits C# types and Razor views into addressable members."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from .source_lexer import LexResult, lex_csharp, lex_razor


class SourceDialect(str, Enum):
    CSHARP = "csharp"
    RAZOR = "razor"


class MemberKind(str, Enum):
    """Member categories, in the order they are laid out inside a type."""

    FIELD = "field"
    PROPERTY = "property"
    METHOD = "method"
    NESTED_TYPE = "nested_type"
    SECTION = "section"


MEMBER_KIND_ORDER = (
    MemberKind.FIELD,
    MemberKind.PROPERTY,
    MemberKind.METHOD,
    MemberKind.NESTED_TYPE,
    MemberKind.SECTION,
)


class SourceParseError(Exception):
    """Raised when a source file cannot be read for merging."""


@dataclass(frozen=True)
class ParsedMember:  # pylint: disable=too-many-instance-attributes
    """One member with its exact source slice.

    `text_start` includes directly preceding comment lines; `declaration_start`
    is where attributes or modifiers begin.
    """

    name: str
    key: str
    kind: MemberKind
    text_start: int
    declaration_start: int
    end: int
    text: str
    indent: str
    attributes: tuple[str, ...] = ()
    signature: str = ""


@dataclass(frozen=True)
class ParsedSourceFile:  # pylint: disable=too-many-instance-attributes
    """Structure of one source file as needed by the merge engine."""

    text: str
    dialect: SourceDialect
    usings: tuple[str, ...]
    # First run of adjacent using lines; nothing but usings lies inside it.
    usings_span: tuple[int, int] | None
    namespace: str | None
    type_name: str | None
    members: tuple[ParsedMember, ...]
    body_end: int
    ambiguities: tuple[str, ...] = ()

    def member(self, key: str) -> ParsedMember | None:
        return next((member for member in self.members if member.key == key), None)


_USING = re.compile(
    r"^[ \t]*((?:global[ \t]+)?using[ \t]+(?:static[ \t]+)?[\w.]+"
    r"(?:[ \t]*=[ \t]*[\w.<>, ]+)?[ \t]*;)",
    re.MULTILINE,
)
_NAMESPACE = re.compile(r"\bnamespace\s+([\w.]+)\s*[;{]")
_TYPE_DECLARATION = re.compile(r"\b(class|struct|interface|record|enum)\s+(\w+)")
_NESTED_TYPE = re.compile(r"\b(?:class|struct|interface|record|enum)\s+(\w+)")
_DELEGATE = re.compile(r"\bdelegate\b.*?(\w+)\s*(?:<[^()]*>)?\s*\(", re.DOTALL)
_CALLABLE_NAME = re.compile(r"(~?\w+)\s*(?:<[^()]*>)?\s*\(")
_OPERATOR = re.compile(r"\boperator\s*([^\s(]+)\s*\(")
_INDEXER = re.compile(r"\bthis\s*\[")
_TRAILING_NAME = re.compile(r"([\w.]+)\s*$")
_RAZOR_USING = re.compile(r"^[ \t]*(@using[ \t]+[\w.]+)[ \t]*$", re.MULTILINE)
_LINE_BREAK_ONLY = re.compile(r"[ \t]*\r?\n")
_RAZOR_SECTION = re.compile(r"@section\s+(\w+)\s*\{")
_RAZOR_MODEL = re.compile(r"^[ \t]*@model[ \t]+([\w.<>]+)", re.MULTILINE)
_PARAMETER_MODIFIERS = {"this", "ref", "out", "in", "params", "scoped", "readonly"}
_NON_NAME_WORDS = {
    "public",
    "private",
    "protected",
    "internal",
    "static",
    "virtual",
    "override",
    "abstract",
    "sealed",
    "async",
    "extern",
    "unsafe",
    "new",
    "partial",
    "readonly",
    "return",
    "if",
    "while",
    "for",
    "foreach",
    "switch",
    "using",
    "lock",
    "nameof",
    "typeof",
    "sizeof",
    "default",
    "base",
    "where",
}


def parse_source(text: str, dialect: SourceDialect) -> ParsedSourceFile:
    if dialect is SourceDialect.RAZOR:
        return parse_razor_source(text)
    return parse_csharp_source(text)


def using_sort_key(entry: str) -> str:
    """Sort `using System;` ahead of `using System.Linq;`."""
    return entry.rstrip(";")


def dialect_for_suffix(suffix: str) -> SourceDialect:
    return SourceDialect.RAZOR if suffix.lower() == ".cshtml" else SourceDialect.CSHARP


def parse_csharp_source(text: str) -> ParsedSourceFile:
    """Parse the first type declared in a C# file into members.

    Any problem that makes member boundaries uncertain is recorded in
    `ambiguities` instead of being guessed around.
    """
    lexed = lex_csharp(text)
    masked = lexed.masked
    namespace_match = _NAMESPACE.search(masked)
    namespace = namespace_match.group(1) if namespace_match else None
    type_match = _TYPE_DECLARATION.search(masked)
    type_start = type_match.start() if type_match else len(text)
    usings, usings_span = _collect_usings(text, masked, type_start)

    def _result(members=(), body_end=len(text), ambiguities=(), type_name=None):
        return ParsedSourceFile(
            text=text,
            dialect=SourceDialect.CSHARP,
            usings=usings,
            usings_span=usings_span,
            namespace=namespace,
            type_name=type_name,
            members=tuple(members),
            body_end=body_end,
            ambiguities=tuple(ambiguities),
        )

    if lexed.error:
        return _result(ambiguities=[lexed.error])
    if masked.count("{") != masked.count("}"):
        return _result(ambiguities=["Unbalanced braces"])
    if type_match is None:
        return _result(ambiguities=["No type declaration found"])

    type_name = type_match.group(2)
    body_open = _find_body_open(masked, type_match.end())
    if body_open is None:
        return _result(ambiguities=[f"Type '{type_name}' has no body"], type_name=type_name)
    body_close = _matching_brace(masked, body_open)
    if body_close is None:
        return _result(ambiguities=["Unbalanced braces"], type_name=type_name)
    if type_match.group(1) == "enum":
        return _result(
            body_end=body_close,
            ambiguities=[f"Enum '{type_name}' members are not merged"],
            type_name=type_name,
        )

    members, ambiguities = _split_members(text, lexed, body_open + 1, body_close)
    seen: set[str] = set()
    for member in members:
        if member.key in seen:
            ambiguities.append(f"Duplicate member '{member.key}'")
        seen.add(member.key)
    return _result(
        members=members, body_end=body_close, ambiguities=ambiguities, type_name=type_name
    )


def parse_razor_source(text: str) -> ParsedSourceFile:
    """Parse a Razor view into `@section` members and `@using` lines."""
    lexed = lex_razor(text)
    masked = lexed.masked
    ambiguities = [lexed.error] if lexed.error else []
    using_matches = list(_RAZOR_USING.finditer(masked))
    usings = tuple(match.group(1).strip() for match in using_matches)
    usings_span = _first_using_run(text, using_matches)
    model_match = _RAZOR_MODEL.search(masked)

    members = []
    seen: set[str] = set()
    for match in _RAZOR_SECTION.finditer(masked):
        name = match.group(1)
        close = _matching_brace(masked, match.end() - 1)
        if close is None:
            ambiguities.append(f"Section '{name}' has unbalanced braces")
            continue
        if name in seen:
            ambiguities.append(f"Duplicate member '{name}'")
        seen.add(name)
        start = match.start()
        text_start = _leading_comment_start(text, masked, start, 0)
        members.append(
            ParsedMember(
                name=name,
                key=name,
                kind=MemberKind.SECTION,
                text_start=text_start,
                declaration_start=start,
                end=close + 1,
                text=text[text_start : close + 1],
                indent=_line_indent(text, text_start),
                signature=f"@section {name}",
            )
        )
    return ParsedSourceFile(
        text=text,
        dialect=SourceDialect.RAZOR,
        usings=usings,
        usings_span=usings_span,
        namespace=None,
        type_name=model_match.group(1) if model_match else None,
        members=tuple(members),
        body_end=len(text),
        ambiguities=tuple(ambiguities),
    )


def _collect_usings(
    text: str, masked: str, limit: int
) -> tuple[tuple[str, ...], tuple[int, int] | None]:
    matches = [match for match in _USING.finditer(masked) if match.start() < limit]
    if not matches:
        return (), None
    usings = tuple(
        " ".join(text[match.start(1) : match.end(1)].split()) for match in matches
    )
    return usings, _first_using_run(text, matches)


def _first_using_run(text: str, matches: list[re.Match[str]]) -> tuple[int, int] | None:
    """Span of the leading using lines that follow each other with nothing in between."""
    if not matches:
        return None
    last = matches[0]
    for match in matches[1:]:
        if not _LINE_BREAK_ONLY.fullmatch(text, last.end(1), match.start()):
            break
        last = match
    return matches[0].start(1), last.end(1)


def _find_body_open(masked: str, position: int) -> int | None:
    """Find the `{` opening a type body, stopping at a bodiless `;` declaration."""
    paren_depth = 0
    for index in range(position, len(masked)):
        character = masked[index]
        if character == "(":
            paren_depth += 1
        elif character == ")":
            paren_depth -= 1
        elif paren_depth == 0 and character == "{":
            return index
        elif paren_depth == 0 and character == ";":
            return None
    return None


def _matching_brace(masked: str, open_index: int) -> int | None:
    depth = 0
    for index in range(open_index, len(masked)):
        if masked[index] == "{":
            depth += 1
        elif masked[index] == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def _split_members(
    text: str, lexed: LexResult, body_start: int, body_end: int
) -> tuple[list[ParsedMember], list[str]]:
    masked = lexed.masked
    members: list[ParsedMember] = []
    ambiguities: list[str] = []
    previous_end = body_start
    index = body_start
    while index < body_end:
        if masked[index].isspace():
            index += 1
            continue
        chunk_end = _chunk_end(masked, index, body_end)
        if chunk_end is None:
            line = text.count("\n", 0, index) + 1
            ambiguities.append(f"Unterminated member declaration on line {line}")
            break
        member = _classify_chunk(text, masked, index, chunk_end, previous_end)
        if member is None:
            line = text.count("\n", 0, index) + 1
            ambiguities.append(f"Unclassifiable member on line {line}")
        else:
            members.append(member)
        previous_end = chunk_end
        index = chunk_end
    return members, ambiguities


def _chunk_end(masked: str, start: int, limit: int) -> int | None:
    """Return the offset just past the member that begins at `start`.

    A member ends at a depth-0 `;`, or at the `}` closing its block. After a
    block, an `= initializer;` or a bare `;` still belongs to the member. Once
    an assignment or `=>` is seen at depth 0 the member can only end at `;`.
    """
    brace_depth = 0
    paren_depth = 0
    expression = False
    index = start
    while index < limit:
        character = masked[index]
        if character in "([":
            paren_depth += 1
        elif character in ")]":
            paren_depth -= 1
        elif character == "{":
            brace_depth += 1
        elif character == "}":
            brace_depth -= 1
            if brace_depth == 0 and paren_depth == 0 and not expression:
                follow = _skip_whitespace(masked, index + 1, limit)
                if follow < limit and masked[follow] == ";":
                    return follow + 1
                if follow < limit and _is_assignment(masked, follow):
                    expression = True
                    index = follow + 1
                    continue
                return index + 1
        elif character == "=" and brace_depth == 0 and paren_depth == 0:
            if _is_assignment(masked, index) or masked[index + 1 : index + 2] == ">":
                expression = True
            if masked[index + 1 : index + 2] in ("=", ">"):
                index += 1
        elif character == ";" and brace_depth == 0 and paren_depth == 0:
            return index + 1
        index += 1
    return None


def _is_assignment(masked: str, index: int) -> bool:
    if masked[index] != "=":
        return False
    following = masked[index + 1 : index + 2]
    preceding = masked[index - 1 : index] if index else ""
    return following not in ("=", ">") and preceding not in ("=", "!", "<", ">")


def _skip_whitespace(masked: str, index: int, limit: int) -> int:
    while index < limit and masked[index].isspace():
        index += 1
    return index


def _classify_chunk(  # pylint: disable=too-many-locals
    text: str, masked: str, start: int, end: int, previous_end: int
) -> ParsedMember | None:
    chunk = masked[start:end]
    attributes, declaration_offset = _leading_attributes(text, chunk, start)
    head = _declaration_head(chunk[declaration_offset:])
    if not head.strip():
        return None
    flat_head = " ".join(head.split())
    rest = chunk[declaration_offset + len(head) :].lstrip()

    kind: MemberKind
    key_suffix = ""
    nested = _NESTED_TYPE.search(flat_head.split("(", 1)[0])
    delegate = _DELEGATE.search(flat_head) if re.search(r"\bdelegate\b", flat_head) else None
    operator = _OPERATOR.search(flat_head)
    indexer = _INDEXER.search(flat_head)
    callable_match = next(
        (
            match
            for match in _CALLABLE_NAME.finditer(flat_head)
            if match.group(1) not in _NON_NAME_WORDS
        ),
        None,
    )
    if delegate:
        kind, name = MemberKind.NESTED_TYPE, delegate.group(1)
    elif nested:
        kind, name = MemberKind.NESTED_TYPE, nested.group(1)
    elif operator:
        kind, name = MemberKind.METHOD, f"operator{operator.group(1)}"
        key_suffix = _parameter_types(flat_head, operator.end() - 1)
    elif indexer:
        kind, name = MemberKind.PROPERTY, "this[]"
        key_suffix = _parameter_types(flat_head, indexer.end() - 1, "[]")
    elif callable_match:
        kind, name = MemberKind.METHOD, callable_match.group(1)
        key_suffix = _parameter_types(flat_head, callable_match.end() - 1)
    else:
        name_match = _TRAILING_NAME.search(flat_head)
        if name_match is None:
            return None
        name = name_match.group(1)
        if rest.startswith("{") or rest.startswith("=>"):
            kind = MemberKind.PROPERTY
        else:
            kind = MemberKind.FIELD
        if re.search(r"\bevent\b", flat_head):
            kind = MemberKind.FIELD

    if name in _NON_NAME_WORDS:
        return None
    if kind is MemberKind.METHOD:
        key = f"{name}({key_suffix})"
    elif indexer and kind is MemberKind.PROPERTY:
        key = f"this[{key_suffix}]"
    else:
        key = name
    text_start = _leading_comment_start(text, masked, start, previous_end)
    return ParsedMember(
        name=name,
        key=key,
        kind=kind,
        text_start=text_start,
        declaration_start=start,
        end=end,
        text=text[text_start:end],
        indent=_line_indent(text, text_start),
        attributes=attributes,
        signature=flat_head,
    )


def _leading_attributes(text: str, chunk: str, chunk_start: int) -> tuple[tuple[str, ...], int]:
    attributes = []
    offset = 0
    while True:
        offset = len(chunk) - len(chunk[offset:].lstrip()) if chunk[offset:].strip() else offset
        if offset >= len(chunk) or chunk[offset] != "[":
            return tuple(attributes), offset
        depth = 0
        for index in range(offset, len(chunk)):
            if chunk[index] == "[":
                depth += 1
            elif chunk[index] == "]":
                depth -= 1
                if depth == 0:
                    attributes.append(text[chunk_start + offset : chunk_start + index + 1])
                    offset = index + 1
                    break
        else:
            return tuple(attributes), offset


def _declaration_head(declaration: str) -> str:
    """Text before the body, initializer, arrow, or terminator at paren depth 0."""
    depth = 0
    for index, character in enumerate(declaration):
        if character in "([":
            depth += 1
        elif character in ")]":
            depth -= 1
        elif depth == 0 and character in "{;":
            return declaration[:index]
        elif depth == 0 and character == "=" and _is_assignment(declaration, index):
            return declaration[:index]
        elif depth == 0 and declaration.startswith("=>", index):
            return declaration[:index]
    return declaration


def _parameter_types(flat_head: str, open_index: int, brackets: str = "()") -> str:
    opening, closing = brackets
    depth = 0
    close_index = len(flat_head)
    for index in range(open_index, len(flat_head)):
        if flat_head[index] == opening:
            depth += 1
        elif flat_head[index] == closing:
            depth -= 1
            if depth == 0:
                close_index = index
                break
    parameter_text = flat_head[open_index + 1 : close_index]
    types = []
    for parameter in _split_top_level(parameter_text):
        parameter = re.sub(r"^\s*(\[[^\]]*\]\s*)+", "", parameter)
        parameter = re.split(r"(?<![=!<>])=(?![=>])", parameter, maxsplit=1)[0]
        words = parameter.split()
        while words and words[0] in _PARAMETER_MODIFIERS:
            words = words[1:]
        if len(words) > 1:
            words = words[:-1]
        types.append("".join(words))
    return ",".join(type_name for type_name in types if type_name)


def _split_top_level(parameter_text: str) -> list[str]:
    parts = []
    depth = 0
    current = []
    for character in parameter_text:
        if character in "<([{":
            depth += 1
        elif character in ">)]}":
            depth -= 1
        if character == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(character)
    if "".join(current).strip():
        parts.append("".join(current))
    return parts


def _leading_comment_start(text: str, masked: str, start: int, floor: int) -> int:
    """Extend a member start upward over comment lines directly above it."""
    line_start = text.rfind("\n", 0, start) + 1
    text_start = start
    while line_start > floor:
        previous_line_start = text.rfind("\n", 0, line_start - 1) + 1
        if previous_line_start < floor:
            break
        line = text[previous_line_start : line_start - 1]
        masked_line = masked[previous_line_start : line_start - 1]
        stripped = line.strip()
        if not stripped or masked_line.strip() or stripped.startswith("#"):
            break
        text_start = previous_line_start + (len(line) - len(line.lstrip()))
        line_start = previous_line_start
    return text_start


def _line_indent(text: str, offset: int) -> str:
    line_start = text.rfind("\n", 0, offset) + 1
    prefix = text[line_start:offset]
    return prefix if not prefix.strip() else ""
