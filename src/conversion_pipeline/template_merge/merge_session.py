"""Merges generated templates into existing target files for one entity."""

from __future__ import annotations

import difflib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

import click

from conversion_pipeline.configuration.runtime_settings import ConflictStrategy, RunConfig, RunMode
from conversion_pipeline.error_kinds import ErrorKind
from conversion_pipeline.orchestration.cancellation import CancellationToken
from conversion_pipeline.target_layout import (
    TargetLayoutError,
    list_generated_files,
    map_generated_file,
)

from .backups import BackupRecord, create_backup
from .member_insertion import apply_member_edits
from .member_parser import ParsedMember, SourceParseError, dialect_for_suffix, parse_source
from .merge_analysis import ChangedMember, MergeAnalysis, analyze_members
from .prompter import ClickPrompter, Prompter

logger = logging.getLogger(__name__)

NEW_MEMBER_CHOICES = ("add", "skip", "view-diff", "view-full", "quit")
CHANGED_MEMBER_CHOICES = ("keep-existing", "replace-with-generated", "view-diff", "quit")


class FileMergeStatus(str, Enum):
    MERGED = "merged"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    CONFLICT = "conflict"
    ERROR = "error"
    DRY_RUN = "dry-run"
    NO_TARGET = "no-target"
    UNMAPPED = "unmapped"


@dataclass(frozen=True)
class FileMergeResult:  # pylint: disable=too-many-instance-attributes
    """Outcome for one generated file."""

    generated_path: Path
    target_path: Path | None
    status: FileMergeStatus
    added: tuple[str, ...] = ()
    replaced: tuple[str, ...] = ()
    kept_existing: tuple[str, ...] = ()
    preserved: tuple[str, ...] = ()
    conflicts: tuple[str, ...] = ()
    error_kind: ErrorKind | None = None
    message: str | None = None
    backup: BackupRecord | None = None


@dataclass(frozen=True)
class MergeReport:
    results: tuple[FileMergeResult, ...]
    mode: RunMode
    cancelled: bool = False

    def count(self, status: FileMergeStatus) -> int:
        return sum(1 for result in self.results if result.status is status)

    @property
    def has_failures(self) -> bool:
        return any(
            result.status in (FileMergeStatus.CONFLICT, FileMergeStatus.ERROR)
            for result in self.results
        )


@dataclass
class _Resolution:
    additions: list[ParsedMember] = field(default_factory=list)
    replacements: list[ChangedMember] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    kept_existing: list[str] = field(default_factory=list)
    quit: bool = False

    @property
    def has_member_edits(self) -> bool:
        return bool(self.additions or self.replacements)


class MergeSession:
    """State of one merge invocation: prompter, backups taken, cancellation."""

    def __init__(
        self,
        config: RunConfig,
        *,
        prompter: Prompter | None = None,
        echo: Callable[[str], None] | None = None,
        cancellation: CancellationToken | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self._prompter = prompter or ClickPrompter()
        self._echo = echo or click.echo
        self._cancellation = cancellation or CancellationToken()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._backups: dict[Path, BackupRecord] = {}
        self._fallback_warned = False

    @property
    def backups(self) -> tuple[BackupRecord, ...]:
        return tuple(self._backups.values())

    def effective_strategy(self) -> ConflictStrategy:
        """Strategy for changed members; `prompt` cannot prompt in auto mode."""
        strategy = self.config.conflict_strategy
        if self.config.mode is RunMode.AUTO and strategy is ConflictStrategy.PROMPT:
            if not self._fallback_warned:
                self._echo(
                    "Warning: conflict strategy 'prompt' is not available in auto mode; "
                    "keeping existing members."
                )
                self._fallback_warned = True
            return ConflictStrategy.KEEP_EXISTING
        return strategy

    def merge_entity(self) -> MergeReport:
        """Merge every generated template of the entity into its mapped target.

        A file whose target root is missing is reported as an error and the
        remaining files are still merged.
        """
        templates_dir = self.config.templates_dir
        results = []
        for generated_path in list_generated_files(templates_dir):
            if self._cancellation.cancelled:
                break
            try:
                mapped = map_generated_file(
                    generated_path,
                    templates_dir,
                    entity=self.config.entity,
                    settings=self.config.settings,
                )
            except TargetLayoutError as exc:
                logger.warning("no target for %s: %s", generated_path, exc)
                results.append(
                    FileMergeResult(
                        generated_path=generated_path,
                        target_path=None,
                        status=FileMergeStatus.ERROR,
                        message=str(exc),
                    )
                )
                continue
            if mapped is None:
                results.append(
                    FileMergeResult(
                        generated_path=generated_path,
                        target_path=None,
                        status=FileMergeStatus.UNMAPPED,
                        message="no layout rule covers this file",
                    )
                )
                continue
            results.append(self.merge_file(generated_path, mapped.target_path))
        return MergeReport(
            results=tuple(results),
            mode=self.config.mode,
            cancelled=self._cancellation.cancelled,
        )

    def merge_file(self, generated_path: Path, target_path: Path) -> FileMergeResult:
        """Merge one generated file into one existing target file."""
        if not target_path.is_file():
            return FileMergeResult(
                generated_path=generated_path,
                target_path=target_path,
                status=FileMergeStatus.NO_TARGET,
                message="target file does not exist; use deploy to copy it",
            )
        try:
            existing_text = read_source_text(target_path)
            generated_text = read_source_text(generated_path)
        except (OSError, UnicodeDecodeError) as exc:
            return self._error(generated_path, target_path, f"Unable to read sources: {exc}")

        dialect = dialect_for_suffix(target_path.suffix)
        analysis = analyze_members(
            parse_source(existing_text, dialect), parse_source(generated_text, dialect)
        )
        if analysis.has_ambiguity:
            return FileMergeResult(
                generated_path=generated_path,
                target_path=target_path,
                status=FileMergeStatus.CONFLICT,
                conflicts=analysis.ambiguities,
                error_kind=ErrorKind.PARSE_AMBIGUITY,
                message="file could not be parsed unambiguously; left untouched",
            )
        preserved = tuple(member.key for member in analysis.removed_members)

        if self.config.mode is RunMode.DRY_RUN:
            return self._dry_run_result(generated_path, target_path, analysis, preserved)

        resolution = self._resolve(analysis, target_path, generated_text)
        usings = analysis.added_usings
        if not resolution.has_member_edits and (analysis.new_members or analysis.changed_members):
            usings = ()
        try:
            merged_text = apply_member_edits(
                existing_text,
                dialect,
                additions=resolution.additions,
                replacements=[
                    (change.existing, change.generated) for change in resolution.replacements
                ],
                usings=usings,
            )
        except SourceParseError as exc:
            return FileMergeResult(
                generated_path=generated_path,
                target_path=target_path,
                status=FileMergeStatus.CONFLICT,
                conflicts=(str(exc),),
                error_kind=ErrorKind.PARSE_AMBIGUITY,
                message="merged result could not be parsed; left untouched",
            )

        message = "resolution stopped by user" if resolution.quit else None
        if merged_text == existing_text:
            status = (
                FileMergeStatus.SKIPPED if analysis.has_differences else FileMergeStatus.UNCHANGED
            )
            return FileMergeResult(
                generated_path=generated_path,
                target_path=target_path,
                status=status,
                kept_existing=tuple(resolution.kept_existing),
                preserved=preserved,
                message=message,
            )

        try:
            backup = self._ensure_backup(target_path)
            write_source_text(target_path, merged_text)
        except OSError as exc:
            return self._error(generated_path, target_path, f"Unable to write target: {exc}")
        logger.info("merged %s", target_path)
        return FileMergeResult(
            generated_path=generated_path,
            target_path=target_path,
            status=FileMergeStatus.MERGED,
            added=tuple(member.key for member in resolution.additions),
            replaced=tuple(change.key for change in resolution.replacements),
            kept_existing=tuple(resolution.kept_existing),
            preserved=preserved,
            message=message,
            backup=backup,
        )

    def _resolve(
        self, analysis: MergeAnalysis, target_path: Path, generated_text: str
    ) -> _Resolution:
        resolution = _Resolution()
        interactive = self.config.mode is RunMode.INTERACTIVE
        for member in analysis.new_members:
            if not interactive:
                resolution.additions.append(member)
                continue
            answer = self._ask_new_member(member, target_path, generated_text)
            if answer == "quit":
                resolution.quit = True
                return resolution
            if answer == "add":
                resolution.additions.append(member)
            else:
                resolution.skipped.append(member.key)

        strategy = self.effective_strategy()
        for change in analysis.changed_members:
            if strategy is ConflictStrategy.KEEP_EXISTING:
                resolution.kept_existing.append(change.key)
                continue
            if strategy is ConflictStrategy.USE_GENERATED:
                resolution.replacements.append(change)
                continue
            answer = self._ask_changed_member(change, target_path)
            if answer == "quit":
                resolution.quit = True
                return resolution
            if answer == "replace-with-generated":
                resolution.replacements.append(change)
            else:
                resolution.kept_existing.append(change.key)
        return resolution

    def _ask_new_member(self, member: ParsedMember, target_path: Path, generated_text: str) -> str:
        question = f"{target_path.name}: new {member.kind.value} '{member.key}'"
        while True:
            if self._cancellation.cancelled:
                return "quit"
            answer = self._prompter.ask(question, NEW_MEMBER_CHOICES).lower()
            if answer == "view-diff":
                self._echo(render_member_diff("", member.text, member.key))
            elif answer == "view-full":
                self._echo(generated_text)
            else:
                return answer

    def _ask_changed_member(self, change: ChangedMember, target_path: Path) -> str:
        question = f"{target_path.name}: changed {change.existing.kind.value} '{change.key}'"
        while True:
            if self._cancellation.cancelled:
                return "quit"
            answer = self._prompter.ask(question, CHANGED_MEMBER_CHOICES).lower()
            if answer == "view-diff":
                self._echo(
                    render_member_diff(change.existing.text, change.generated.text, change.key)
                )
            else:
                return answer

    def _ensure_backup(self, target_path: Path) -> BackupRecord:
        record = self._backups.get(target_path)
        if record is None:
            record = create_backup(target_path, created_at=self._clock())
            self._backups[target_path] = record
        return record

    def _dry_run_result(
        self,
        generated_path: Path,
        target_path: Path,
        analysis: MergeAnalysis,
        preserved: tuple[str, ...],
    ) -> FileMergeResult:
        changed = tuple(change.key for change in analysis.changed_members)
        use_generated = self.config.conflict_strategy is ConflictStrategy.USE_GENERATED
        return FileMergeResult(
            generated_path=generated_path,
            target_path=target_path,
            status=FileMergeStatus.DRY_RUN,
            added=tuple(member.key for member in analysis.new_members),
            replaced=changed if use_generated else (),
            kept_existing=() if use_generated else changed,
            preserved=preserved,
        )

    @staticmethod
    def _error(generated_path: Path, target_path: Path, message: str) -> FileMergeResult:
        return FileMergeResult(
            generated_path=generated_path,
            target_path=target_path,
            status=FileMergeStatus.ERROR,
            message=message,
        )


def render_member_diff(existing_text: str, generated_text: str, label: str) -> str:
    diff = difflib.unified_diff(
        existing_text.splitlines(),
        generated_text.splitlines(),
        fromfile=f"{label} (existing)",
        tofile=f"{label} (generated)",
        lineterm="",
    )
    return "\n".join(diff)


def read_source_text(path: Path) -> str:
    """Read UTF-8 text keeping line endings as stored."""
    with path.open(encoding="utf-8", newline="") as handle:
        return handle.read()


def write_source_text(path: Path, text: str) -> None:
    with path.open("w", encoding="utf-8", newline="") as handle:
        handle.write(text)
