"""Command line interface entry point."""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

import click

from conversion_pipeline.configuration import (
    DEFAULT_CONFIG_FILENAME,
    ConfigurationError,
    ConflictStrategy,
    ProjectSettings,
    RunConfig,
    RunFlags,
    RunFlagsError,
    RunMode,
    build_run_config,
    load_project_settings,
    write_placeholder_configuration,
)
from conversion_pipeline.deployment import DeploymentError, deploy_entity
from conversion_pipeline.entity_selection import (
    EntitySelectionError,
    discover_form_names,
    forms_directory,
    pick_form_from_answer,
    resolve_entity,
)
from conversion_pipeline.generation_backend import ClaudeCliBackend, GenerationBackend
from conversion_pipeline.orchestration import PipelineUsageError, run_pipeline, sigint_cancellation
from conversion_pipeline.run_reporting import (
    render_deployment_report,
    render_manifest,
    render_merge_report,
    render_rollback_report,
    render_run_summary,
    render_template_generation_report,
)
from conversion_pipeline.run_status import EntityRunLock, ManifestError, RunLockError, load_manifest
from conversion_pipeline.target_layout import TargetLayoutError
from conversion_pipeline.template_generation import TemplateTarget, generate_templates
from conversion_pipeline.template_merge import ClickPrompter, MergeSession, rollback_entity

_LENIENT_CONTEXT = {"ignore_unknown_options": True, "allow_extra_args": True}


class CliError(Exception):
    """Custom CLI error."""


def build_backend(settings: ProjectSettings) -> GenerationBackend:
    """Backend used by `run` and `generate-templates`; replaced in tests."""
    return ClaudeCliBackend(settings.backend)


def stdin_is_interactive() -> bool:
    return sys.stdin.isatty()


_ENTITY_OPTIONS = (
    click.option("--entity", required=False, help="Entity to convert, e.g. Facility"),
    click.option(
        "--form-name",
        "form_name",
        required=False,
        help="Legacy form name, e.g. frmFacilitySearch or a single form frmBoatStatus",
    ),
    click.option(
        "--config",
        "config_path",
        required=False,
        type=click.Path(path_type=str),
        help=f"Path to the JSON project configuration (default: ./{DEFAULT_CONFIG_FILENAME})",
    ),
    click.option(
        "--output",
        "output_dir",
        required=False,
        type=click.Path(path_type=str),
        help="Entity output directory (default: <output_root>/<Entity>)",
    ),
)


def _entity_options(command):
    """Attach the entity-selection options shared by the per-entity commands."""
    for option in reversed(_ENTITY_OPTIONS):
        command = option(command)
    return command


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="conversion-pipeline")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Staged conversion pipeline for legacy WinForms entities."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command(name="generate-config")
@click.option(
    "--output",
    "output_path",
    required=False,
    default=DEFAULT_CONFIG_FILENAME,
    show_default=True,
    type=click.Path(path_type=str),
    help="Path to the JSON project configuration template to write",
)
def generate_config(output_path: str) -> None:
    """Generate a placeholder JSON project configuration."""
    try:
        resolved_output = write_placeholder_configuration(output_path)
    except (FileExistsError, OSError) as exc:
        raise CliError(str(exc)) from exc
    click.echo(str(resolved_output))


@cli.command(name="list-forms")
@click.option(
    "--config",
    "config_path",
    required=False,
    type=click.Path(path_type=str),
    help="Path to the JSON project configuration",
)
def list_forms(config_path: str | None) -> None:
    """List the Search/Detail forms found in the legacy source tree."""
    settings = _load_settings(config_path)
    names = discover_form_names(settings)
    if not names:
        raise CliError(f"No forms found in the forms directory: {forms_directory(settings)}")
    for index, name in enumerate(names, start=1):
        click.echo(f"{index:>3}. {name}")


@cli.command(name="run", context_settings=_LENIENT_CONTEXT)
@_entity_options
@click.option("--skip-steps", required=False, help="Comma-separated step numbers or keys to skip")
@click.option(
    "--resume", is_flag=True, default=False, help="Attempt pending and failed steps only."
)
@click.option("--rerun-failed", is_flag=True, default=False, help="Attempt failed steps only.")
@click.option("--dry-run", is_flag=True, default=False, help="Print the execution plan only.")
@click.option(
    "--timeout",
    type=click.IntRange(min=1),
    required=False,
    help="Backend timeout per step in seconds (overrides the config file)",
)
@click.pass_context
# pylint: disable=too-many-arguments
def run_command(
    ctx: click.Context,
    entity: str | None,
    form_name: str | None,
    config_path: str | None,
    output_dir: str | None,
    skip_steps: str | None,
    resume: bool,
    rerun_failed: bool,
    dry_run: bool,
    timeout: int | None,
) -> None:
    """Run the analysis steps for one entity."""
    _warn_unknown_arguments(ctx)
    config = _prepare_run_config(
        entity=entity,
        form_name=form_name,
        config_path=config_path,
        timeout=timeout,
        flags=RunFlags(
            output_dir=output_dir,
            skip_steps=skip_steps,
            resume=resume,
            rerun_failed=rerun_failed,
            dry_run=dry_run,
        ),
    )
    try:
        with sigint_cancellation() as token:
            outcome = run_pipeline(
                config,
                build_backend(config.settings),
                cancellation=token,
                progress=click.echo,
            )
    except PipelineUsageError as exc:
        raise click.UsageError(str(exc)) from exc
    except (RunLockError, ManifestError, OSError) as exc:
        raise CliError(str(exc)) from exc
    click.echo(render_run_summary(outcome))
    if not outcome.succeeded:
        ctx.exit(1)


@cli.command(name="generate-templates", context_settings=_LENIENT_CONTEXT)
@_entity_options
@click.option(
    "--target",
    type=click.Choice(["all", *(target.value for target in TemplateTarget)]),
    default="all",
    show_default=True,
    help="Which templates to generate: api (API and Shared), ui, or all",
)
@click.option(
    "--timeout",
    type=click.IntRange(min=1),
    required=False,
    help="Backend timeout per step in seconds (overrides the config file)",
)
@click.pass_context
# pylint: disable=too-many-arguments
def generate_templates_command(
    ctx: click.Context,
    entity: str | None,
    form_name: str | None,
    config_path: str | None,
    output_dir: str | None,
    target: str,
    timeout: int | None,
) -> None:
    """Generate code templates for one entity from its analysis artifacts."""
    _warn_unknown_arguments(ctx)
    config = _prepare_run_config(
        entity=entity,
        form_name=form_name,
        config_path=config_path,
        timeout=timeout,
        flags=RunFlags(output_dir=output_dir),
    )
    targets = tuple(TemplateTarget) if target == "all" else (TemplateTarget(target),)
    try:
        with sigint_cancellation() as token, EntityRunLock(config.output_dir):
            report = generate_templates(
                config,
                build_backend(config.settings),
                targets=targets,
                cancellation=token,
                progress=click.echo,
            )
    except RunLockError as exc:
        raise CliError(str(exc)) from exc
    click.echo(render_template_generation_report(report, config.templates_dir))
    if report.has_failures or report.cancelled:
        ctx.exit(1)


@cli.command(name="merge", context_settings=_LENIENT_CONTEXT)
@_entity_options
@click.option(
    "--mode",
    type=click.Choice([mode.value for mode in RunMode]),
    required=False,
    help="Member resolution mode (default: interactive)",
)
@click.option(
    "--conflict-strategy",
    "conflict_strategy",
    type=click.Choice([strategy.value for strategy in ConflictStrategy]),
    required=False,
    help="How changed members are resolved (default: prompt)",
)
@click.option("--dry-run", is_flag=True, default=False, help="Analyse and report without writing.")
@click.option("--rollback", is_flag=True, default=False, help="Restore target files from backups.")
@click.pass_context
# pylint: disable=too-many-arguments
def merge_command(
    ctx: click.Context,
    entity: str | None,
    form_name: str | None,
    config_path: str | None,
    output_dir: str | None,
    mode: str | None,
    conflict_strategy: str | None,
    dry_run: bool,
    rollback: bool,
) -> None:
    """Merge generated templates into existing target files."""
    _warn_unknown_arguments(ctx)
    config = _prepare_run_config(
        entity=entity,
        form_name=form_name,
        config_path=config_path,
        flags=RunFlags(
            output_dir=output_dir,
            mode=mode,
            conflict_strategy=conflict_strategy,
            dry_run=dry_run,
        ),
    )
    if rollback:
        _rollback(ctx, config)
        return
    try:
        with sigint_cancellation() as token:
            session = MergeSession(
                config, prompter=ClickPrompter(), echo=click.echo, cancellation=token
            )
            if config.dry_run:
                report = session.merge_entity()
            else:
                with EntityRunLock(config.output_dir):
                    report = session.merge_entity()
    except (TargetLayoutError, RunLockError) as exc:
        raise CliError(str(exc)) from exc
    click.echo(render_merge_report(report))
    if report.has_failures or report.cancelled:
        ctx.exit(1)


@cli.command(name="deploy", context_settings=_LENIENT_CONTEXT)
@_entity_options
@click.option("--dry-run", is_flag=True, default=False, help="Print the copy plan only.")
@click.pass_context
def deploy_command(
    ctx: click.Context,
    entity: str | None,
    form_name: str | None,
    config_path: str | None,
    output_dir: str | None,
    dry_run: bool,
) -> None:
    """Copy generated files that are missing in the target projects."""
    _warn_unknown_arguments(ctx)
    config = _prepare_run_config(
        entity=entity,
        form_name=form_name,
        config_path=config_path,
        flags=RunFlags(output_dir=output_dir, dry_run=dry_run),
    )
    try:
        report = deploy_entity(config, dry_run=dry_run)
    except DeploymentError as exc:
        raise CliError(str(exc)) from exc
    click.echo(render_deployment_report(report))
    if report.failures:
        ctx.exit(1)


@cli.command(name="status", context_settings=_LENIENT_CONTEXT)
@_entity_options
@click.pass_context
def status_command(
    ctx: click.Context,
    entity: str | None,
    form_name: str | None,
    config_path: str | None,
    output_dir: str | None,
) -> None:
    """Show the stored run status of one entity."""
    _warn_unknown_arguments(ctx)
    config = _prepare_run_config(
        entity=entity,
        form_name=form_name,
        config_path=config_path,
        flags=RunFlags(output_dir=output_dir),
    )
    try:
        manifest = load_manifest(config.output_dir)
    except ManifestError as exc:
        raise CliError(str(exc)) from exc
    if manifest is None:
        raise CliError(f"No run status found for {config.entity} in {config.output_dir}")
    click.echo(render_manifest(manifest))


def _rollback(ctx: click.Context, config: RunConfig) -> None:
    try:
        if config.dry_run:
            report = rollback_entity(config, dry_run=True)
        else:
            with EntityRunLock(config.output_dir):
                report = rollback_entity(config)
    except (TargetLayoutError, RunLockError) as exc:
        raise CliError(str(exc)) from exc
    click.echo(render_rollback_report(report))
    if report.has_errors:
        ctx.exit(1)


def _prepare_run_config(
    *,
    entity: str | None,
    form_name: str | None,
    config_path: str | None,
    flags: RunFlags,
    timeout: int | None = None,
) -> RunConfig:
    settings = _load_settings(config_path, timeout=timeout)
    try:
        selection = resolve_entity(
            entity=entity,
            form_name=form_name,
            settings=settings,
            interactive=stdin_is_interactive(),
            choose_form=_choose_form,
        )
        return build_run_config(
            flags,
            settings,
            entity=selection.entity,
            form_name=selection.form_name,
            single_form=selection.single_form,
        )
    except (EntitySelectionError, RunFlagsError) as exc:
        raise click.UsageError(str(exc)) from exc


def _load_settings(config_path: str | None, *, timeout: int | None = None) -> ProjectSettings:
    if config_path is None and Path(DEFAULT_CONFIG_FILENAME).is_file():
        config_path = DEFAULT_CONFIG_FILENAME
    try:
        settings = load_project_settings(config_path)
    except ConfigurationError as exc:
        raise CliError(str(exc)) from exc
    if timeout is not None:
        settings = replace(settings, backend=replace(settings.backend, timeout_seconds=timeout))
    return settings


def _choose_form(candidates: Sequence[str]) -> str:
    for index, name in enumerate(candidates, start=1):
        click.echo(f"{index:>3}. {name}", err=True)
    answer = click.prompt("Select a form (number or name)", err=True)
    selected = pick_form_from_answer(answer, candidates)
    if selected is None:
        raise click.UsageError(f"Unknown form selection: {answer}")
    return selected


def _warn_unknown_arguments(ctx: click.Context) -> None:
    if ctx.args:
        click.echo(f"Warning: ignoring unknown arguments: {' '.join(ctx.args)}", err=True)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for console_scripts wiring."""
    argv = argv if argv is not None else sys.argv[1:]
    try:
        exit_code = cli.main(args=list(argv), standalone_mode=False)
    except CliError as exc:
        click.echo(str(exc), err=True)
        return 1
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except click.Abort:
        click.echo("Aborted.", err=True)
        return 1
    return exit_code if isinstance(exit_code, int) else 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
