# -*- coding: utf-8 -*-
"""
Blue Carbon Registry API Routes

REST endpoints over the registry service, mounted under ``/api``:
projects, stakeholders, MRV data, carbon credits, blockchain
transaction references, search, analytics, export and notifications.

Handlers are thin: they validate the payload (pydantic request models),
resolve the actor role from ``adminAddress`` and delegate to
``BlueCarbonRegistry``. Registry exceptions propagate to the handlers
installed by ``create_app``.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Path, Query, Request, Response, status

from bluecarbon._version import __version__
from bluecarbon.registry.models import (
    CreditMint,
    CreditRetire,
    MRVAction,
    MRVReview,
    MRVSubmission,
    ProjectCreate,
    ProjectStatusUpdate,
    StakeholderApproval,
    StakeholderCreate,
    TransactionCreate,
)
from bluecarbon.registry.registry import BlueCarbonRegistry
from bluecarbon.registry.setup import RegistryService, get_registry_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _service(request: Request) -> RegistryService:
    return get_registry_service(request.app)


def _registry(request: Request) -> BlueCarbonRegistry:
    return get_registry_service(request.app).registry


def _page(page: int = Query(1, ge=1, le=1000, description="Page number")) -> int:
    return page


def _limit(
    limit: Optional[int] = Query(None, ge=1, le=100, description="Items per page"),
) -> Optional[int]:
    return limit


def _with_statistics(registry: BlueCarbonRegistry, body: Dict[str, Any]) -> Dict[str, Any]:
    body["statistics"] = registry.get_statistics().to_record()
    return body


# =============================================================================
# Health
# =============================================================================

@router.get("/health", tags=["Health"], summary="Service health")
def health() -> Dict[str, Any]:
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
    }


# =============================================================================
# Project Endpoints
# =============================================================================

@router.get("/projects", tags=["Projects"], summary="List projects")
def list_projects(
    page: int = Depends(_page),
    limit: Optional[int] = Depends(_limit),
    project_status: Optional[str] = Query(None, alias="status", description="Filter by status"),
    ecosystem_type: Optional[str] = Query(
        None, alias="ecosystemType", description="Filter by ecosystem type",
    ),
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    """List projects with pagination and optional filters."""
    return registry.list_projects(
        page=page, limit=limit, status=project_status, ecosystem_type=ecosystem_type,
    )


@router.get("/projects/{project_id}", tags=["Projects"], summary="Get project details")
def get_project(
    project_id: str,
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    return {"project": registry.get_project(project_id)}


@router.post(
    "/projects",
    status_code=status.HTTP_201_CREATED,
    tags=["Projects"],
    summary="Register a project",
)
def create_project(
    payload: ProjectCreate,
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    """Register a new project; it starts in ``pending``."""
    project = registry.register_project(payload)
    return {
        "success": True,
        "message": "Project created successfully",
        "project": project,
    }


@router.put("/projects/{project_id}/status", tags=["Projects"], summary="Change project status")
def update_project_status(
    project_id: str,
    payload: ProjectStatusUpdate,
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    """Apply an admin/verifier action (approve, verify, suspend, activate, reject)."""
    logger.info(
        "Project %s status change (action=%s, target=%s) by %s",
        project_id, payload.action, payload.target_state, payload.admin_address,
    )
    project = registry.transition_project(
        project_id,
        action=payload.action,
        target_state=payload.target_state,
        role=registry.resolve_role(payload.admin_address),
        reason=payload.reason,
        actor=payload.admin_address,
    )
    return _with_statistics(registry, {
        "success": True,
        "message": f"Project is now {project['status']}",
        "project": project,
    })


@router.get("/mobile/projects", tags=["Projects"], summary="Projects open for field data")
def mobile_projects(registry: BlueCarbonRegistry = Depends(_registry)) -> Dict[str, Any]:
    return {"projects": registry.mobile_projects()}


# =============================================================================
# Stakeholder Endpoints
# =============================================================================

@router.get("/stakeholders", tags=["Stakeholders"], summary="List stakeholders")
def list_stakeholders(
    page: int = Depends(_page),
    limit: Optional[int] = Depends(_limit),
    approved: Optional[bool] = Query(None, description="Filter by approval"),
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    return registry.list_stakeholders(page=page, limit=limit, approved=approved)


@router.get(
    "/stakeholders/{identifier}",
    tags=["Stakeholders"],
    summary="Get stakeholder by id or address",
)
def get_stakeholder(
    identifier: str,
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    return {"stakeholder": registry.get_stakeholder(identifier)}


@router.post(
    "/stakeholders",
    status_code=status.HTTP_201_CREATED,
    tags=["Stakeholders"],
    summary="Register a stakeholder",
)
def create_stakeholder(
    payload: StakeholderCreate,
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    stakeholder = registry.register_stakeholder(payload)
    return {
        "success": True,
        "message": "Stakeholder registered successfully",
        "stakeholder": stakeholder,
    }


@router.put(
    "/stakeholders/{identifier}/approve",
    tags=["Stakeholders"],
    summary="Approve a stakeholder",
)
def approve_stakeholder(
    identifier: str,
    payload: StakeholderApproval,
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    stakeholder = registry.approve_stakeholder(
        identifier,
        role=registry.resolve_role(payload.admin_address),
        actor=payload.admin_address,
        reason=payload.reason,
    )
    return {
        "success": True,
        "message": "Stakeholder approved successfully",
        "stakeholder": stakeholder,
    }


# =============================================================================
# MRV Data Endpoints
# =============================================================================

@router.get("/mrv-data", tags=["MRV"], summary="List MRV data")
def list_mrv_data(
    page: int = Depends(_page),
    limit: Optional[int] = Depends(_limit),
    project_id: Optional[str] = Query(None, alias="projectId"),
    mrv_status: Optional[str] = Query(None, alias="status"),
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    return registry.list_mrv(project_id=project_id, status=mrv_status, page=page, limit=limit)


@router.get("/mrv-data/{mrv_id}", tags=["MRV"], summary="Get MRV data record")
def get_mrv_data(
    mrv_id: str,
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    return {"data": registry.get_mrv(mrv_id)}


@router.post(
    "/mrv-data",
    status_code=status.HTTP_201_CREATED,
    tags=["MRV"],
    summary="Submit MRV data",
)
def submit_mrv_data(
    payload: MRVSubmission,
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    record = registry.submit_mrv(payload)
    return {
        "success": True,
        "message": "MRV data submitted successfully",
        "dataId": record["id"],
        "data": record,
    }


@router.put("/mrv-data/{mrv_id}/verify", tags=["MRV"], summary="Review MRV data")
def review_mrv_data(
    mrv_id: str,
    payload: MRVReview,
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    """Verifier action: review, verify, reject or request_update."""
    record = registry.review_mrv(
        mrv_id,
        action=payload.action or MRVAction.VERIFY,
        target_state=payload.target_state,
        role=registry.resolve_role(payload.admin_address),
        reason=payload.reason,
        actor=payload.admin_address,
    )
    return _with_statistics(registry, {
        "success": True,
        "message": f"MRV data is now {record['status']}",
        "data": record,
    })


# =============================================================================
# Carbon Credit Endpoints
# =============================================================================

@router.get(
    "/carbon-credits/balance/{address}",
    tags=["Credits"],
    summary="Active credit balance of an address",
)
def credit_balance(
    address: str,
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    return registry.credit_balance(address)


@router.post(
    "/carbon-credits/mint",
    status_code=status.HTTP_201_CREATED,
    tags=["Credits"],
    summary="Mint credits for a project",
)
def mint_credits(
    payload: CreditMint,
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    credit = registry.mint_credits(payload)
    return {
        "success": True,
        "message": "Carbon credits minted successfully",
        "credit": credit,
    }


@router.post("/carbon-credits/retire", tags=["Credits"], summary="Retire credits")
def retire_credits(
    payload: CreditRetire,
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    retired = registry.retire_credits(payload)
    return {
        "success": True,
        "message": f"{payload.amount:g} carbon credits retired successfully",
        "retiredCredits": retired,
    }


# =============================================================================
# Blockchain Transaction Endpoints
# =============================================================================

@router.post(
    "/blockchain/transaction",
    status_code=status.HTTP_201_CREATED,
    tags=["Blockchain"],
    summary="Record a transaction reference",
)
def record_transaction(
    payload: TransactionCreate,
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    return {
        "success": True,
        "message": "Transaction recorded successfully",
        "transaction": registry.record_transaction(payload),
    }


@router.get(
    "/blockchain/transaction/{tx_hash}",
    tags=["Blockchain"],
    summary="Look up a transaction",
)
def get_transaction(
    tx_hash: str,
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    return {"transaction": registry.get_transaction(tx_hash)}


# =============================================================================
# Search, Analytics & Export
# =============================================================================

@router.get("/search", tags=["Search"], summary="Search the registry")
def search(
    q: Optional[str] = Query(None, max_length=100),
    search_type: Optional[str] = Query(None, alias="type"),
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    return registry.search(q, search_type)


@router.get("/statistics", tags=["Analytics"], summary="Registry statistics")
def statistics(registry: BlueCarbonRegistry = Depends(_registry)) -> Dict[str, Any]:
    return {"statistics": registry.get_statistics().to_record()}


@router.get("/analytics/overview", tags=["Analytics"], summary="Analytics overview")
def analytics_overview(registry: BlueCarbonRegistry = Depends(_registry)) -> Dict[str, Any]:
    return {"analytics": registry.get_overview()}


@router.get("/export/{collection}", tags=["Export"], summary="Export a collection")
def export_collection(
    collection: str = Path(..., description="projects or stakeholders"),
    export_format: str = Query("json", alias="format", pattern="^(csv|json)$"),
    service: RegistryService = Depends(_service),
) -> Response:
    """Export as CSV (attachment) or JSON."""
    body = service.exporter.export(collection, export_format)
    if export_format == "csv":
        return Response(
            content=body,
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={collection}.csv"},
        )
    return Response(content=body, media_type="application/json")


# =============================================================================
# Notification Endpoints
# =============================================================================

@router.get("/notifications", tags=["Notifications"], summary="List notifications")
def list_notifications(
    user: Optional[str] = Query(None, description="Recipient address"),
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    return registry.list_notifications(user)


@router.put(
    "/notifications/{notification_id}/read",
    tags=["Notifications"],
    summary="Mark a notification read",
)
def mark_notification_read(
    notification_id: str,
    registry: BlueCarbonRegistry = Depends(_registry),
) -> Dict[str, Any]:
    notification = registry.mark_notification_read(notification_id)
    return {
        "success": True,
        "message": "Notification marked as read",
        "notification": notification,
    }


__all__ = ["router"]
