"""Member insertion, replacement and using-merge tests."""

from __future__ import annotations

from dataclasses import replace

import pytest
from conversion_pipeline.template_merge import (
    SourceDialect,
    SourceParseError,
    apply_member_edits,
    insert_member,
    member_insertion,
    merge_usings,
    parse_csharp_source,
    parse_razor_source,
    replace_member,
)

EXISTING = """using System;

namespace Admin.Api
{
    public class FacilityService
    {
        private readonly IRepository _repository;

        public string Name { get; set; }

        public int Count() => 0;
    }
}
"""


def _member(source: str, key: str):
    return parse_csharp_source(source).member(key)


def _generated(body: str) -> str:
    return f"public class FacilityService\n{{\n{body}\n}}\n"


def test_field_is_inserted_after_the_last_field() -> None:
    member = _member(_generated("  private int _limit = 10;"), "_limit")

    merged = insert_member(parse_csharp_source(EXISTING), member)

    assert (
        "        private readonly IRepository _repository;\n\n"
        "        private int _limit = 10;\n\n"
        "        public string Name"
    ) in merged


def test_property_is_inserted_after_the_last_property() -> None:
    member = _member(_generated("public bool Active { get; set; }"), "Active")

    merged = insert_member(parse_csharp_source(EXISTING), member)

    assert merged.index("public string Name") < merged.index("public bool Active")
    assert merged.index("public bool Active") < merged.index("public int Count()")
    assert "\n        public bool Active { get; set; }\n" in merged


def test_kind_without_existing_peers_goes_before_the_first_later_kind() -> None:
    source = """public class Dto
{
    public void Validate() { }
}
"""
    member = _member(_generated("    public int Id { get; set; }"), "Id")

    merged = insert_member(parse_csharp_source(source), member)

    assert merged == """public class Dto
{
    public int Id { get; set; }

    public void Validate() { }
}
"""


def test_nested_type_goes_after_the_last_member() -> None:
    member = _member(_generated("    public enum Mode { Search, Detail }"), "Mode")

    merged = insert_member(parse_csharp_source(EXISTING), member)

    expected = "public int Count() => 0;\n\n        public enum Mode { Search, Detail }\n    }"
    assert expected in merged


def test_member_is_inserted_into_an_empty_type_before_its_closing_brace() -> None:
    source = "namespace Admin\n{\n    public class Empty\n    {\n    }\n}\n"
    member = _member(_generated("    public int Id { get; set; }"), "Id")

    merged = insert_member(parse_csharp_source(source), member)

    assert merged == (
        "namespace Admin\n{\n    public class Empty\n    {\n"
        "        public int Id { get; set; }\n    }\n}\n"
    )


def test_multiline_literal_lines_are_not_reindented() -> None:
    generated = _generated(
        '    public string Sql = @"SELECT *\n  FROM Facility";\n'
        "    public void Run()\n    {\n        Execute();\n    }"
    )
    parsed_generated = parse_csharp_source(generated)

    merged = insert_member(parse_csharp_source(EXISTING), parsed_generated.member("Sql"))
    merged = insert_member(parse_csharp_source(merged), parsed_generated.member("Run()"))

    assert '        public string Sql = @"SELECT *\n  FROM Facility";' in merged
    assert "        public void Run()\n        {\n            Execute();\n        }" in merged


def test_replace_member_keeps_position_and_indentation() -> None:
    existing = parse_csharp_source(EXISTING)
    body = "public int Count()\n{\n    return _repository.Count();\n}"
    generated = _member(_generated(body), "Count()")

    merged = replace_member(existing, existing.member("Count()"), generated)

    assert (
        "        public int Count()\n        {\n"
        "            return _repository.Count();\n        }\n    }\n}\n"
    ) in merged
    assert "=> 0" not in merged


def test_crlf_files_stay_crlf() -> None:
    source = EXISTING.replace("\n", "\r\n")
    member = _member(_generated("    public bool Active { get; set; }"), "Active")

    merged = insert_member(parse_csharp_source(source), member)

    assert "\n" not in merged.replace("\r\n", "")
    assert "public bool Active { get; set; }\r\n" in merged


def test_merge_usings_adds_sorted_entries_in_place() -> None:
    parsed = parse_csharp_source(
        "using System;\nusing Admin.Shared;\n\npublic class A\n{\n}\n"
    )

    merged = merge_usings(parsed, ["using System.Linq;", "using System;"])

    assert merged.startswith(
        "using Admin.Shared;\nusing System;\nusing System.Linq;\n\npublic class A"
    )


def test_merge_usings_without_additions_leaves_text_untouched() -> None:
    text = "using System;\nusing Admin.Shared;\n\npublic class A\n{\n}\n"

    assert merge_usings(parse_csharp_source(text), ["using System;"]) == text


def test_merge_usings_prepends_a_block_when_file_has_none() -> None:
    parsed = parse_csharp_source("public class A\n{\n}\n")

    merged = merge_usings(parsed, ["using System;"])

    assert merged == "using System;\n\npublic class A\n{\n}\n"


def test_apply_member_edits_replaces_then_adds_then_imports() -> None:
    generated = parse_csharp_source(
        "using System.Linq;\n\npublic class FacilityService\n{\n"
        "    public string Name { get; init; }\n"
        "    public int Total() => 1;\n}\n"
    )
    existing = parse_csharp_source(EXISTING)

    merged = apply_member_edits(
        EXISTING,
        SourceDialect.CSHARP,
        additions=[generated.member("Total()")],
        replacements=[(existing.member("Name"), generated.member("Name"))],
        usings=["using System.Linq;"],
    )
    reparsed = parse_csharp_source(merged)

    assert reparsed.ambiguities == ()
    assert [member.key for member in reparsed.members] == [
        "_repository",
        "Name",
        "Count()",
        "Total()",
    ]
    assert "get; init;" in reparsed.member("Name").text
    assert reparsed.usings == ("using System;", "using System.Linq;")


def test_apply_member_edits_rejects_a_broken_result() -> None:
    existing = parse_csharp_source(EXISTING)
    stray = replace(existing.member("Count()"), text="public int Count() { {")

    with pytest.raises(SourceParseError):
        apply_member_edits(
            EXISTING,
            SourceDialect.CSHARP,
            additions=[],
            replacements=[(existing.member("Count()"), stray)],
        )


def test_razor_sections_are_appended_at_the_end() -> None:
    view = "@model FacilityViewModel\n\n<h1>Facility</h1>\n"
    section = parse_razor_source("@section Scripts {\n    <script></script>\n}\n").member("Scripts")

    merged = insert_member(parse_razor_source(view), section)

    assert merged == (
        "@model FacilityViewModel\n\n<h1>Facility</h1>\n\n"
        "@section Scripts {\n    <script></script>\n}\n"
    )


def test_merge_usings_keeps_comments_between_using_lines() -> None:
    text = "using System;\n// keep me\nusing Zeta;\n\npublic class A\n{\n}\n"

    merged = merge_usings(parse_csharp_source(text), ["using Alpha;"])

    assert merged == (
        "using Alpha;\nusing System;\n// keep me\nusing Zeta;\n\npublic class A\n{\n}\n"
    )


def test_usings_inside_a_namespace_block_stay_in_place() -> None:
    text = (
        "using System;\nnamespace N\n{\n    using Zeta;\n\n"
        "    public class A\n    {\n        public int Count() => 1;\n    }\n}\n"
    )

    merged = apply_member_edits(
        text, SourceDialect.CSHARP, additions=[], replacements=[], usings=["using Alpha;"]
    )

    assert merged == "using Alpha;\n" + text
    reparsed = parse_csharp_source(merged)
    assert reparsed.ambiguities == ()
    assert reparsed.namespace == "N"
    assert reparsed.usings == ("using Alpha;", "using System;", "using Zeta;")


def test_apply_member_edits_rejects_a_broken_using_rewrite(monkeypatch) -> None:
    monkeypatch.setattr(
        member_insertion, "merge_usings", lambda parsed, additions: parsed.text + "}\n"
    )

    with pytest.raises(SourceParseError, match="Unbalanced braces"):
        apply_member_edits(
            EXISTING,
            SourceDialect.CSHARP,
            additions=[],
            replacements=[],
            usings=["using System.Linq;"],
        )
