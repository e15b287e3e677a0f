#!/usr/bin/env python3
"""Example: Quickstart for appproject-governance

Minimal working example: define a project, check sources and
destinations, and audit the results.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install appproject-governance
"""
from __future__ import annotations

import tempfile
from pathlib import Path

import appproject_governance as gov


def main() -> None:
    print(f"appproject-governance version: {gov.__version__}")

    # Step 1: Define a project
    project = gov.AppProject.model_validate({
        "name": "team-a",
        "sourceRepos": ["https://github.com/team-a/*", "!https://github.com/team-a/legacy"],
        "destinations": [
            {"server": "https://kubernetes.default.svc", "namespace": "team-a-*"},
            {"server": "*", "namespace": "!kube-system"},
        ],
        "namespaceResourceBlacklist": [{"group": "", "kind": "ResourceQuota"}],
    })
    gov.validate_project(project)
    print(f"Project '{project.name}' is valid")

    # Step 2: Run authorization checks through a governor with an audit trail
    with tempfile.TemporaryDirectory() as tmp:
        audit = gov.DecisionAuditLogger(Path(tmp) / "decisions.jsonl")
        governor = gov.ProjectGovernor(project, audit_logger=audit)

        print("\nSource checks:")
        for repo in (
            "https://github.com/team-a/guestbook.git",
            "https://github.com/team-a/legacy",
            "https://gitlab.com/someone/else",
        ):
            result = governor.check_source(repo)
            print(f"  [{'ALLOW' if result else 'DENY'}] {repo}")

        print("\nDestination checks:")
        cluster = gov.Cluster(server="https://kubernetes.default.svc", name="in-cluster")
        for namespace in ("team-a-dev", "kube-system"):
            result = governor.check_destination(cluster, namespace)
            print(f"  [{'ALLOW' if result else 'DENY'}] {result.subject}")

        # Step 3: Inspect the audit trail
        denied = audit.query({"allowed": False})
        print(f"\nAudit log: {audit.count()} decisions, {len(denied)} denied")
        for record in denied:
            print(f"  {record['check']}: {record['reason']}")


if __name__ == "__main__":
    main()
