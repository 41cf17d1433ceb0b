"""Three-way member comparison between an existing file and a generated one."""

from __future__ import annotations

import re
from dataclasses import dataclass

from .member_parser import ParsedMember, ParsedSourceFile, SourceDialect, using_sort_key
from .source_lexer import SpanKind, lex_csharp, lex_razor

_SPACE_AROUND_PUNCTUATION = re.compile(r"\s*([{}()\[\];,.:?=<>+\-*/%!&|^~])\s*")


@dataclass(frozen=True)
class ChangedMember:
    existing: ParsedMember
    generated: ParsedMember

    @property
    def key(self) -> str:
        return self.existing.key


@dataclass(frozen=True)
class MergeAnalysis:
    """Members classified by presence and normalized text."""

    new_members: tuple[ParsedMember, ...]
    changed_members: tuple[ChangedMember, ...]
    removed_members: tuple[ParsedMember, ...]
    unchanged_members: tuple[ParsedMember, ...]
    added_usings: tuple[str, ...]
    ambiguities: tuple[str, ...] = ()

    @property
    def has_ambiguity(self) -> bool:
        return bool(self.ambiguities)

    @property
    def has_differences(self) -> bool:
        return bool(self.new_members or self.changed_members or self.added_usings)


def analyze_members(existing: ParsedSourceFile, generated: ParsedSourceFile) -> MergeAnalysis:
    """Compare members by identity key.

    Members only in the generated file are new, members only in the existing
    file are removed (and always kept), and members in both are changed when
    their normalized text differs.
    """
    ambiguities = tuple(f"existing file: {problem}" for problem in existing.ambiguities) + tuple(
        f"generated file: {problem}" for problem in generated.ambiguities
    )
    if ambiguities:
        return MergeAnalysis((), (), (), (), (), ambiguities)

    generated_keys = {member.key for member in generated.members}
    new_members = tuple(
        member for member in generated.members if existing.member(member.key) is None
    )
    changed = []
    unchanged = []
    for member in existing.members:
        if member.key not in generated_keys:
            continue
        counterpart = generated.member(member.key)
        if counterpart is None:
            continue
        if normalize_member_text(member.text, existing.dialect) == normalize_member_text(
            counterpart.text, generated.dialect
        ):
            unchanged.append(member)
        else:
            changed.append(ChangedMember(existing=member, generated=counterpart))
    removed = tuple(member for member in existing.members if member.key not in generated_keys)
    existing_usings = set(existing.usings)
    added_usings = tuple(
        sorted(
            {using for using in generated.usings if using not in existing_usings},
            key=using_sort_key,
        )
    )
    return MergeAnalysis(
        new_members=new_members,
        changed_members=tuple(changed),
        removed_members=removed,
        unchanged_members=tuple(unchanged),
        added_usings=added_usings,
    )


def normalize_member_text(text: str, dialect: SourceDialect = SourceDialect.CSHARP) -> str:
    """Drop comments and collapse whitespace in code; literal text is kept exactly."""
    lexed = lex_razor(text) if dialect is SourceDialect.RAZOR else lex_csharp(text)
    pieces: list[str] = []
    code_buffer: list[str] = []
    for kind, segment in lexed.segments():
        if kind is SpanKind.LITERAL:
            pieces.append(_normalize_code("".join(code_buffer)))
            code_buffer = []
            pieces.append(segment)
        elif kind is SpanKind.COMMENT:
            code_buffer.append(" ")
        else:
            code_buffer.append(segment)
    pieces.append(_normalize_code("".join(code_buffer)))
    return "".join(pieces).strip()


def _normalize_code(code: str) -> str:
    collapsed = " ".join(code.split())
    if code[:1].isspace() and collapsed:
        collapsed = " " + collapsed
    if code[-1:].isspace() and collapsed:
        collapsed = collapsed + " "
    return _SPACE_AROUND_PUNCTUATION.sub(r"\1", collapsed)
