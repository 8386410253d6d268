# -*- coding: utf-8 -*-
"""
Registry Statistics - Blue Carbon Registry

Pure aggregation over the current collections. Nothing here is stored:
every figure is recomputed from the records on each call, so the
aggregate cannot drift from the data it summarizes.

Example:
    >>> from bluecarbon.registry.statistics import compute_statistics
    >>> stats = compute_statistics(projects, stakeholders, mrv_data)
    >>> stats.total_verified_projects
    3
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional

from bluecarbon.registry.models import (
    MRVStatus,
    ProjectStatus,
    RegistryStatistics,
)

# Project states counted as area under restoration.
RESTORATION_STATES = frozenset({ProjectStatus.ACTIVE.value, ProjectStatus.VERIFIED.value})


def _as_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def compute_statistics(
    projects: Iterable[Mapping[str, Any]],
    stakeholders: Iterable[Mapping[str, Any]],
    mrv_data: Iterable[Mapping[str, Any]],
) -> RegistryStatistics:
    """Recompute the registry statistics.

    Args:
        projects: Project records.
        stakeholders: Stakeholder records.
        mrv_data: MRV data records.

    Returns:
        RegistryStatistics for the given records.
    """
    projects = list(projects)
    total_verified = sum(
        1 for p in projects if p.get("status") == ProjectStatus.VERIFIED.value
    )
    area = sum(
        _as_float(p.get("area"))
        for p in projects
        if p.get("status") in RESTORATION_STATES
    )
    sequestered = sum(
        _as_float(m.get("carbonSequestration"))
        for m in mrv_data
        if m.get("status") == MRVStatus.VERIFIED.value
    )

    return RegistryStatistics(
        total_projects=len(projects),
        total_verified_projects=total_verified,
        total_stakeholders=sum(1 for _ in stakeholders),
        total_carbon_sequestered=round(sequestered, 6),
        total_area_under_restoration=round(area, 6),
    )


def compute_overview(
    projects: List[Mapping[str, Any]],
    stakeholders: List[Mapping[str, Any]],
    mrv_data: List[Mapping[str, Any]],
    credits: Optional[List[Mapping[str, Any]]] = None,
) -> Dict[str, Any]:
    """Analytics overview: statistics plus status and type breakdowns.

    Args:
        projects: Project records.
        stakeholders: Stakeholder records.
        mrv_data: MRV data records.
        credits: Carbon credit records.

    Returns:
        JSON-ready dictionary with camelCase keys.
    """
    credits = credits or []
    project_status = Counter(p.get("status") for p in projects)
    mrv_status = Counter(m.get("status") for m in mrv_data)
    approved = sum(1 for s in stakeholders if s.get("approved"))

    issued = sum(_as_float(c.get("amount")) for c in credits)
    retired = sum(_as_float(c.get("amount")) for c in credits if c.get("retired"))

    overview: Dict[str, Any] = {
        "statistics": compute_statistics(projects, stakeholders, mrv_data).to_record(),
        "pendingProjects": project_status.get(ProjectStatus.PENDING.value, 0),
        "activeProjects": project_status.get(ProjectStatus.ACTIVE.value, 0),
        "verifiedProjects": project_status.get(ProjectStatus.VERIFIED.value, 0),
        "suspendedProjects": project_status.get(ProjectStatus.SUSPENDED.value, 0),
        "rejectedProjects": project_status.get(ProjectStatus.REJECTED.value, 0),
        "approvedStakeholders": approved,
        "pendingStakeholders": len(stakeholders) - approved,
        "totalMRVSubmissions": len(mrv_data),
        "mrvByStatus": {s.value: mrv_status.get(s.value, 0) for s in MRVStatus},
        "totalCreditsIssued": round(issued, 6),
        "retiredCredits": round(retired, 6),
        "activeCredits": round(issued - retired, 6),
        "ecosystemDistribution": dict(
            Counter(p.get("ecosystemType") for p in projects if p.get("ecosystemType"))
        ),
        "stakeholderDistribution": dict(
            Counter(
                s.get("stakeholderType") for s in stakeholders if s.get("stakeholderType")
            )
        ),
    }
    return overview


__all__ = [
    "RESTORATION_STATES",
    "compute_statistics",
    "compute_overview",
]
