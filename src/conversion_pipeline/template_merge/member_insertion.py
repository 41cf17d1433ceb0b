"""Text edits that add, replace and import members in an existing file."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .member_parser import (
    MEMBER_KIND_ORDER,
    ParsedMember,
    ParsedSourceFile,
    SourceDialect,
    SourceParseError,
    parse_source,
    using_sort_key,
)
from .source_lexer import lex_csharp, lex_razor

_DEFAULT_INDENT_STEP = "    "


def member_indentation(parsed: ParsedSourceFile) -> str:
    """Indentation used by the file's members, or one step inside the type."""
    for member in parsed.members:
        if member.indent:
            return member.indent
    if parsed.dialect is SourceDialect.RAZOR:
        return ""
    line_start = parsed.text.rfind("\n", 0, parsed.body_end) + 1
    closing_prefix = parsed.text[line_start : parsed.body_end]
    closing_indent = closing_prefix if not closing_prefix.strip() else ""
    step = "\t" if closing_indent.startswith("\t") else _DEFAULT_INDENT_STEP
    return closing_indent + step


def reindent_member(member: ParsedMember, target_indent: str, dialect: SourceDialect) -> str:
    """Move a member to `target_indent`, leaving lines that start inside a literal alone."""
    lexed = lex_razor(member.text) if dialect is SourceDialect.RAZOR else lex_csharp(member.text)
    lines = member.text.split("\n")
    result = []
    offset = 0
    for index, line in enumerate(lines):
        if index == 0:
            result.append(target_indent + line)
        elif lexed.inside_literal(offset):
            result.append(line)
        elif not line.strip():
            result.append(line.rstrip(" \t"))
        elif line.startswith(member.indent):
            result.append(target_indent + line[len(member.indent) :])
        else:
            result.append(target_indent + line.lstrip(" \t"))
        offset += len(line) + 1
    return "\n".join(result)


def insert_member(parsed: ParsedSourceFile, member: ParsedMember) -> str:
    """Return the file text with `member` placed by kind order.

    The member goes after the last member of the same kind, else before the
    first member of a later kind, else before the closing brace of the type.
    """
    text = parsed.text
    newline = "\r\n" if "\r\n" in text else "\n"
    body = reindent_member(member, member_indentation(parsed), parsed.dialect)
    body = body.replace("\r\n", "\n").replace("\n", newline)

    if parsed.dialect is SourceDialect.RAZOR:
        trimmed = text.rstrip()
        return f"{trimmed}{newline}{newline}{body}{newline}"

    same_kind = [candidate for candidate in parsed.members if candidate.kind is member.kind]
    if same_kind:
        anchor = same_kind[-1].end
        return f"{text[:anchor]}{newline}{newline}{body}{text[anchor:]}"

    later_kinds = MEMBER_KIND_ORDER[MEMBER_KIND_ORDER.index(member.kind) + 1 :]
    later = next((candidate for candidate in parsed.members if candidate.kind in later_kinds), None)
    if later is not None:
        line_start = text.rfind("\n", 0, later.text_start) + 1
        return f"{text[:line_start]}{body}{newline}{newline}{text[line_start:]}"

    if parsed.members:
        anchor = parsed.members[-1].end
        return f"{text[:anchor]}{newline}{newline}{body}{text[anchor:]}"

    line_start = text.rfind("\n", 0, parsed.body_end) + 1
    if not text[line_start : parsed.body_end].strip():
        return f"{text[:line_start]}{body}{newline}{text[line_start:]}"
    closing_indent = member_indentation(parsed)[: -len(_DEFAULT_INDENT_STEP)] or ""
    return (
        f"{text[:parsed.body_end].rstrip()}{newline}{body}{newline}"
        f"{closing_indent}{text[parsed.body_end:]}"
    )


def replace_member(
    parsed: ParsedSourceFile, existing: ParsedMember, generated: ParsedMember
) -> str:
    """Swap the existing member's text for the generated member's, keeping position."""
    text = parsed.text
    newline = "\r\n" if "\r\n" in text else "\n"
    body = reindent_member(generated, existing.indent, parsed.dialect)
    body = body.replace("\r\n", "\n").replace("\n", newline)
    return f"{text[:existing.text_start]}{body[len(existing.indent):]}{text[existing.end:]}"


def merge_usings(parsed: ParsedSourceFile, additions: Iterable[str]) -> str:
    """Add missing usings to the leading using run; unchanged text when nothing is added.

    Only the first run of adjacent using lines is rebuilt. Usings elsewhere,
    and any comment or directive between them, stay where they are.
    """
    existing = set(parsed.usings)
    new_entries = list(dict.fromkeys(entry for entry in additions if entry not in existing))
    if not new_entries:
        return parsed.text
    text = parsed.text
    newline = "\r\n" if "\r\n" in text else "\n"
    if parsed.usings_span is None:
        return newline.join(sorted(new_entries, key=using_sort_key)) + newline + newline + text
    start, end = parsed.usings_span
    run = [" ".join(line.split()) for line in text[start:end].splitlines() if line.strip()]
    merged = sorted(dict.fromkeys(run + new_entries), key=using_sort_key)
    line_start = text.rfind("\n", 0, start) + 1
    indent = text[line_start:start]
    block = (newline + indent).join(merged)
    return f"{text[:start]}{block}{text[end:]}"


def apply_member_edits(
    text: str,
    dialect: SourceDialect,
    *,
    additions: Sequence[ParsedMember],
    replacements: Sequence[tuple[ParsedMember, ParsedMember]],
    usings: Iterable[str] = (),
) -> str:
    """Apply replacements, then additions in generated order, then the using union.

    The file is re-parsed after every edit so offsets never go stale.

    Raises:
      SourceParseError: If an intermediate or final result no longer parses cleanly.
    """
    parsed = _reparse(text, dialect)
    for existing, generated in replacements:
        current = parsed.member(existing.key)
        if current is None:
            raise SourceParseError(f"Member '{existing.key}' disappeared during merge")
        parsed = _reparse(replace_member(parsed, current, generated), dialect)
    for member in additions:
        parsed = _reparse(insert_member(parsed, member), dialect)
    return _reparse(merge_usings(parsed, usings), dialect).text


def _reparse(text: str, dialect: SourceDialect) -> ParsedSourceFile:
    parsed = parse_source(text, dialect)
    if parsed.ambiguities:
        raise SourceParseError("; ".join(parsed.ambiguities))
    return parsed
