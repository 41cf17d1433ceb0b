"""Deployment planning and copy tests."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

import pytest
from conversion_pipeline.configuration import (
    BackendSettings,
    ProjectSettings,
    RunConfig,
    SourceLayout,
    TargetRoots,
)
from conversion_pipeline.deployment import (
    DeploymentAction,
    DeploymentError,
    deploy_entity,
    execute_deployment,
    plan_deployment,
)


def _config(tmp_path: Path, *, with_roots: bool = True) -> RunConfig:
    roots = {"api": None, "ui": None, "shared": None}
    if with_roots:
        for name in roots:
            roots[name] = tmp_path / name
            roots[name].mkdir()
    settings = ProjectSettings(
        path=None,
        source_root=None,
        source_layout=SourceLayout(),
        target_roots=TargetRoots(**roots),
        output_root=tmp_path / "output",
        backend=BackendSettings(),
    )
    return RunConfig(
        entity="Facility",
        form_name=None,
        single_form=False,
        settings=settings,
        output_dir=tmp_path / "output" / "Facility",
    )


def _template(config: RunConfig, relative: str, text: str = "generated") -> Path:
    path = config.templates_dir / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_plan_separates_new_existing_and_unmapped_files(tmp_path: Path) -> None:
    config = _config(tmp_path)
    _template(config, "api/Controllers/FacilityController.cs")
    _template(config, "ui/Views/Index.cshtml")
    _template(config, "analysis.md")
    existing = tmp_path / "ui" / "Views" / "Facility" / "Index.cshtml"
    existing.parent.mkdir(parents=True)
    existing.write_text("hand edited", encoding="utf-8")

    plan = plan_deployment(config)

    actions = {entry.relative_path: entry.action for entry in plan.entries}
    assert actions == {
        PurePosixPath("analysis.md"): DeploymentAction.UNMAPPED,
        PurePosixPath("api/Controllers/FacilityController.cs"): DeploymentAction.COPY,
        PurePosixPath("ui/Views/Index.cshtml"): DeploymentAction.SKIP_EXISTING,
    }


def test_deploy_copies_only_missing_files(tmp_path: Path) -> None:
    config = _config(tmp_path)
    _template(config, "shared/Dtos/FacilityDto.cs", "public record FacilityDto;")
    _template(config, "ui/Views/Index.cshtml", "generated view")
    existing = tmp_path / "ui" / "Views" / "Facility" / "Index.cshtml"
    existing.parent.mkdir(parents=True)
    existing.write_text("hand edited", encoding="utf-8")

    report = deploy_entity(config)

    copied = tmp_path / "shared" / "Dtos" / "FacilityDto.cs"
    assert copied.read_text(encoding="utf-8") == "public record FacilityDto;"
    assert existing.read_text(encoding="utf-8") == "hand edited"
    assert [entry.target_path for entry in report.copied] == [copied]
    assert len(report.skipped_existing) == 1
    assert report.failures == ()


def test_dry_run_deploy_writes_nothing(tmp_path: Path) -> None:
    config = _config(tmp_path)
    _template(config, "api/Services/FacilityService.cs")

    report = deploy_entity(config, dry_run=True)

    assert report.dry_run is True
    assert report.copied == ()
    assert len(report.plan.with_action(DeploymentAction.COPY)) == 1
    assert not (tmp_path / "api" / "src").exists()


def test_failed_copy_is_recorded_and_the_rest_continue(tmp_path: Path) -> None:
    config = _config(tmp_path)
    _template(config, "api/Services/FacilityService.cs")
    _template(config, "shared/FacilityDto.cs")
    blocker = tmp_path / "api" / "src"
    blocker.write_text("a file where a directory is expected", encoding="utf-8")

    report = execute_deployment(plan_deployment(config))

    assert [failure.entry.relative_path for failure in report.failures] == [
        PurePosixPath("api/Services/FacilityService.cs")
    ]
    assert (tmp_path / "shared" / "FacilityDto.cs").is_file()


def test_missing_templates_stop_deployment(tmp_path: Path) -> None:
    with pytest.raises(DeploymentError, match="No generated templates found"):
        plan_deployment(_config(tmp_path))


def test_missing_target_root_stops_deployment(tmp_path: Path) -> None:
    config = _config(tmp_path, with_roots=False)
    _template(config, "api/Services/FacilityService.cs")

    with pytest.raises(DeploymentError, match="Target root 'api' is not configured"):
        plan_deployment(config)
