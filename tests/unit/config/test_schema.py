"""
content-integrity — unit tests for config schema validation

File: tests/unit/config/test_schema.py
Last updated: 2026-10-19

Purpose
- Validate strict config schema behavior, structured errors and deep merging.
"""

from __future__ import annotations

from content_integrity.config.schema import (
    ConfigSchemaVersion,
    default_config,
    merge_config,
    validate_config,
)


def _issue_paths(payload: dict[str, object]) -> list[str]:
    return [issue.path for issue in validate_config(payload).issues]


def test_defaults_validate_successfully() -> None:
    result = validate_config(default_config())

    assert result.is_valid
    assert result.config is not None
    assert result.config["meta"]["schema_version"] == ConfigSchemaVersion


def test_unknown_key_rejection_is_explicit() -> None:
    payload = merge_config(default_config(), {"scan": {"depth": 3}, "extra": {}})

    result = validate_config(payload)

    assert not result.is_valid
    assert [(issue.path, issue.message) for issue in result.issues] == [
        ("extra", "unknown field"),
        ("scan.depth", "unknown field"),
    ]


def test_type_validation_reports_structured_paths() -> None:
    payload = merge_config(
        default_config(),
        {
            "scan": {"upload_results": "yes", "default_root_path": "sites"},
            "executions": {"max_retained": 0},
            "observability": {"log_level": "TRACE"},
        },
    )

    assert _issue_paths(payload) == [
        "executions.max_retained",
        "observability.log_level",
        "scan.default_root_path",
        "scan.upload_results",
    ]


def test_schema_version_mismatch_includes_migration_guidance() -> None:
    payload = merge_config(default_config(), {"meta": {"schema_version": ConfigSchemaVersion + 1}})

    result = validate_config(payload)

    assert result.issues[0].path == "meta.schema_version"
    assert "upgrade the content-integrity runtime" in result.issues[0].message


def test_check_sections_accept_enabled_and_parameters() -> None:
    payload = merge_config(
        default_config(),
        {
            "checks": {
                "hardcoded-domains": {"enabled": True, "domains": ["a.com", "a.com", "b.com"]},
                "publication-live": {"deep-compare-published-nodes": True},
            }
        },
    )

    result = validate_config(payload)

    assert result.config is not None
    assert result.config["checks"]["hardcoded-domains"] == {
        "domains": ["a.com", "b.com"],
        "enabled": True,
    }


def test_check_sections_reject_bad_ids_and_values() -> None:
    payload = merge_config(
        default_config(),
        {
            "checks": {
                "Bad Id": {},
                "references": {"enabled": "sure", "limits": {"nested": 1}},
            }
        },
    )

    assert _issue_paths(payload) == [
        "checks.Bad Id",
        "checks.references.enabled",
        "checks.references.limits",
    ]


def test_plugin_references_must_name_module_and_attribute() -> None:
    payload = merge_config(
        default_config(), {"plugins": {"factories": ["pkg.mod:Check", "pkg.mod"]}}
    )

    result = validate_config(payload)

    assert [(issue.path, issue.message) for issue in result.issues] == [
        ("plugins.factories[1]", "expected 'module:attribute'")
    ]


def test_merge_config_is_deep_and_does_not_mutate_inputs() -> None:
    base = default_config()
    overlay = {"scan": {"progress_interval": 5}, "checks": {"references": {"enabled": False}}}

    merged = merge_config(base, overlay)

    assert merged["scan"]["progress_interval"] == 5
    assert merged["scan"]["default_root_path"] == "/"
    assert merged["checks"] == {"references": {"enabled": False}}
    assert base["scan"]["progress_interval"] == 1000
    assert base["checks"] == {}
