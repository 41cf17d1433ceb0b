"""Template merge engine exports."""

from .backups import (
    BACKUP_SUFFIX,
    BackupRecord,
    RollbackReport,
    RollbackStatus,
    backup_path_for,
    create_backup,
    restore_backups,
    rollback_entity,
)
from .member_insertion import apply_member_edits, insert_member, merge_usings, replace_member
from .member_parser import (
    MemberKind,
    ParsedMember,
    ParsedSourceFile,
    SourceDialect,
    SourceParseError,
    parse_csharp_source,
    parse_razor_source,
    parse_source,
)
from .merge_analysis import ChangedMember, MergeAnalysis, analyze_members, normalize_member_text
from .merge_session import FileMergeResult, FileMergeStatus, MergeReport, MergeSession
from .prompter import ClickPrompter, Prompter
from .source_lexer import LexResult, lex_csharp, lex_razor

__all__ = [
    "BACKUP_SUFFIX",
    "BackupRecord",
    "ChangedMember",
    "ClickPrompter",
    "FileMergeResult",
    "FileMergeStatus",
    "LexResult",
    "MemberKind",
    "MergeAnalysis",
    "MergeReport",
    "MergeSession",
    "ParsedMember",
    "ParsedSourceFile",
    "Prompter",
    "RollbackReport",
    "RollbackStatus",
    "SourceDialect",
    "SourceParseError",
    "analyze_members",
    "apply_member_edits",
    "backup_path_for",
    "create_backup",
    "insert_member",
    "lex_csharp",
    "lex_razor",
    "merge_usings",
    "normalize_member_text",
    "parse_csharp_source",
    "parse_razor_source",
    "parse_source",
    "replace_member",
    "restore_backups",
    "rollback_entity",
]
