"""CheckService — report and repair problems in the stored design.

Follows the linter pattern: ``check`` runs the load-time repair pass as
a dry run and lists what it would change; ``fix`` writes the repaired
snapshot back so later loads start clean.
"""

from __future__ import annotations

from typing import Any

from archyra.services.base import BaseService
from archyra.services.persistence import DesignPersistence
from archyra.services.result import ServiceResult

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"


class CheckService(BaseService):
    """Integrity checking for the workspace's design record."""

    def _persistence(self) -> DesignPersistence:
        return DesignPersistence.from_settings(self._workspace.store, self._workspace.settings)

    def check(self, *, min_severity: str = SEVERITY_WARNING) -> ServiceResult:
        """Report repairs the next load would make, without writing."""
        persistence = self._persistence()
        stored = self._workspace.store.read(persistence.record_name) is not None
        report = persistence.load().report
        issues = _issues(report.model_dump())
        if min_severity == SEVERITY_ERROR:
            issues = [i for i in issues if i["severity"] == SEVERITY_ERROR]
        return ServiceResult(
            ok=True,
            op="check",
            data={
                "record": persistence.record_name,
                "stored": stored,
                "issues": issues,
                "count": len(issues),
                "schema_version": report.stored_version,
            },
        )

    def fix(self) -> ServiceResult:
        """Persist the repaired document in place of the stored one."""
        persistence = self._persistence()
        result = persistence.load()
        fixes = result.report.messages()
        if result.report.changed:
            persistence.save(result.document)
        return ServiceResult(
            ok=True,
            op="fix",
            data={"record": persistence.record_name, "fixes": fixes, "count": len(fixes)},
        )


def _issues(report: dict[str, Any]) -> list[dict[str, Any]]:
    issues: list[dict[str, Any]] = []
    if report["version_reset"]:
        issues.append(
            {
                "severity": SEVERITY_ERROR,
                "category": "schema_version",
                "message": f"Stored schema version {report['stored_version']} is outdated; "
                f"{report['discarded_node_count']} node(s) will be discarded",
            }
        )
    for entry in report["dropped_nodes"]:
        issues.append(
            {
                "severity": SEVERITY_ERROR,
                "category": "invalid_node",
                "id": entry["id"],
                "message": entry["reason"],
            }
        )
    for entry in report["dropped_edges"]:
        issues.append(
            {
                "severity": SEVERITY_WARNING,
                "category": "dangling_edge",
                "id": entry["id"],
                "message": entry["reason"],
            }
        )
    for entry in report["detached_parents"]:
        issues.append(
            {
                "severity": SEVERITY_WARNING,
                "category": "parent_link",
                "id": entry["node_id"],
                "message": f"{entry['reason']} ({entry['parent_id']})",
            }
        )
    for node_id in report["backfilled_layout"]:
        issues.append(
            {
                "severity": SEVERITY_WARNING,
                "category": "layout",
                "id": node_id,
                "message": "missing container dimensions",
            }
        )
    for edge_id in report["normalized_edges"]:
        issues.append(
            {
                "severity": SEVERITY_WARNING,
                "category": "edge_kind",
                "id": edge_id,
                "message": "edge kind is not deletable",
            }
        )
    for entry in report["renamed_edges"]:
        issues.append(
            {
                "severity": SEVERITY_WARNING,
                "category": "edge_id",
                "id": entry["id"],
                "message": f"duplicate edge id, renamed to {entry['new_id']}",
            }
        )
    return issues
