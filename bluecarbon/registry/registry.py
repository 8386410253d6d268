# -*- coding: utf-8 -*-
"""
Blue Carbon Registry - core service

Registry operations over the flat-file Record Store: registration of
projects, stakeholders and MRV data, the status transitions that move
them through their lifecycles, credit minting and retirement, on-chain
transaction references, notifications, search and statistics.

Every mutation loads the collections it touches, computes the complete
new state in memory (status change, credit accrual, reputation
adjustment, notifications) and only then writes the collections. An
in-process lock is held for the whole load/mutate/save sequence.

Integrates with:
    - transitions for the canonical state machine
    - statistics for recomputed aggregates
    - metrics for Prometheus observability
    - RegistryConfig for roles, reputation and pagination settings

Example:
    >>> from bluecarbon.registry.registry import BlueCarbonRegistry
    >>> registry = BlueCarbonRegistry()
    >>> project = registry.register_project({
    ...     "name": "Sundarbans Mangrove Restoration",
    ...     "location": "West Bengal, India",
    ...     "area": 250.5,
    ...     "ecosystemType": "mangrove",
    ... })
    >>> registry.transition_project(project["id"], "approve", role="admin")
"""

from __future__ import annotations

import logging
import math
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from bluecarbon.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from bluecarbon.registry.config import RegistryConfig, get_config
from bluecarbon.registry.metrics import (
    record_operation,
    record_transition,
    record_transition_failure,
    update_record_count,
)
from bluecarbon.registry.models import (
    ActorRole,
    CarbonCredit,
    CreditMint,
    CreditRetire,
    EcosystemType,
    MRVAction,
    MRVData,
    MRVStatus,
    MRVSubmission,
    Notification,
    Pagination,
    Project,
    ProjectAction,
    ProjectCreate,
    ProjectStatus,
    RegistryStatistics,
    Stakeholder,
    StakeholderAction,
    StakeholderCreate,
    StatusChange,
    Transaction,
    TransactionCreate,
    _utcnow,
)
from bluecarbon.registry.statistics import compute_overview, compute_statistics
from bluecarbon.registry.store import (
    CREDITS,
    MRV_DATA,
    NOTIFICATIONS,
    PROJECTS,
    STAKEHOLDERS,
    TRANSACTIONS,
    RecordStore,
)
from bluecarbon.registry.transitions import (
    MRV_ACCEPTING_PROJECT_STATES,
    MRV_TRANSITIONS,
    PROJECT_TRANSITIONS,
    STAKEHOLDER_TRANSITIONS,
    StakeholderState,
    TransitionTable,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
Record = Dict[str, Any]
RoleLike = Union[ActorRole, str]

MAX_PAGE = 1000
SEARCH_RESULT_LIMIT = 10
NOTIFICATION_LIMIT = 20
SEARCH_TYPES = ("project", "stakeholder", "transaction")
BROADCAST_RECIPIENT = "all"

_PROJECT_NOTICES = {
    ProjectAction.APPROVE: "Project Approved",
    ProjectAction.VERIFY: "Project Verified",
    ProjectAction.SUSPEND: "Project Suspended",
    ProjectAction.ACTIVATE: "Project Reactivated",
    ProjectAction.REJECT: "Project Rejected",
}

_MRV_NOTICES = {
    MRVAction.REVIEW: "MRV Data Under Review",
    MRVAction.VERIFY: "MRV Data Verified",
    MRVAction.REJECT: "MRV Data Rejected",
    MRVAction.REQUEST_UPDATE: "MRV Data Update Requested",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextmanager
def _track(operation: str) -> Iterator[None]:
    """Record duration and outcome of a registry operation."""
    start = time.monotonic()
    result = "success"
    try:
        yield
    except Exception:
        result = "error"
        raise
    finally:
        record_operation(operation, result, time.monotonic() - start)


def _field_errors(exc: PydanticValidationError) -> Dict[str, str]:
    """Flatten pydantic errors into ``{field: message}``."""
    fields: Dict[str, str] = {}
    for err in exc.errors():
        name = ".".join(str(part) for part in err.get("loc", ())) or "body"
        fields.setdefault(name, err.get("msg", "Invalid value"))
    return fields


def _validate(model_cls: Type[M], data: Union[M, Mapping[str, Any]]) -> M:
    """Validate a request payload, raising our ValidationError on failure."""
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Validation failed",
            invalid_fields=_field_errors(exc),
        ) from exc


def _decode(model_cls: Type[M], record: Mapping[str, Any], collection: str) -> M:
    """Parse a stored record; a record that does not parse is a storage fault."""
    try:
        return model_cls.model_validate(record)
    except PydanticValidationError as exc:
        raise StorageError(
            f"Malformed record in collection '{collection}'",
            collection=collection,
            operation="decode",
            cause=exc,
        ) from exc


def _index_of(records: List[Record], record_id: str, entity_type: str) -> int:
    for i, record in enumerate(records):
        if record.get("id") == record_id:
            return i
    raise NotFoundError(
        f"{entity_type.replace('_', ' ').capitalize()} not found: {record_id}",
        entity_type=entity_type,
        entity_id=record_id,
    )


def _matches(record: Mapping[str, Any], term: str, *fields: str) -> bool:
    return any(term in str(record.get(f) or "").lower() for f in fields)


# ---------------------------------------------------------------------------
# BlueCarbonRegistry
# ---------------------------------------------------------------------------


class BlueCarbonRegistry:
    """Registry service applying the transition tables over the Record Store.

    Attributes:
        config: RegistryConfig instance.
        store: RecordStore holding the collections.
    """

    def __init__(
        self,
        config: Optional[RegistryConfig] = None,
        store: Optional[RecordStore] = None,
    ) -> None:
        """Initialize BlueCarbonRegistry.

        Args:
            config: Optional config. Uses global config if None.
            store: Optional store. Creates one over ``config.data_dir`` if None.
        """
        self.config = config or get_config()
        self.store = store or RecordStore(self.config.data_dir)
        self._lock = threading.RLock()
        logger.info("BlueCarbonRegistry initialized (data_dir=%s)", self.store.data_dir)

    # ------------------------------------------------------------------
    # Internal plumbing
    # ------------------------------------------------------------------

    def _save(self, collections: Dict[str, List[Record]]) -> None:
        self.store.save_many(collections)
        for name, records in collections.items():
            update_record_count(name, len(records))

    def _resolve(
        self, table: TransitionTable, current: Any, action: Any, role: RoleLike,
    ) -> Any:
        try:
            return table.resolve(current, action, role)
        except ForbiddenError:
            record_transition_failure(table.entity_type, "forbidden")
            raise
        except InvalidTransitionError:
            record_transition_failure(table.entity_type, "invalid_transition")
            raise

    def _page_bounds(self, page: int, limit: Optional[int]) -> Tuple[int, int]:
        limit = self.config.default_page_size if limit is None else limit
        invalid: Dict[str, str] = {}
        if not 1 <= page <= MAX_PAGE:
            invalid["page"] = f"Page must be between 1 and {MAX_PAGE}"
        if not 1 <= limit <= self.config.max_page_size:
            invalid["limit"] = f"Limit must be between 1 and {self.config.max_page_size}"
        if invalid:
            raise ValidationError("Validation failed", invalid_fields=invalid)
        return page, limit

    def _paginate(
        self, records: List[Record], page: int, limit: Optional[int],
    ) -> Tuple[List[Record], Pagination]:
        page, limit = self._page_bounds(page, limit)
        start = (page - 1) * limit
        end = page * limit
        total = len(records)
        pagination = Pagination(
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_items=total,
            has_next=end < total,
            has_prev=page > 1,
        )
        return records[start:end], pagination

    @staticmethod
    def _notify(
        notifications: List[Record],
        recipient: Optional[str],
        title: str,
        message: str,
        kind: str = "info",
    ) -> None:
        if not recipient:
            return
        notifications.append(
            Notification(recipient=recipient, title=title, message=message, kind=kind)
            .to_record()
        )

    def resolve_role(self, address: Optional[str]) -> ActorRole:
        """Map an actor address to its role via the configured allowlists.

        Addresses outside both allowlists are plain stakeholders; a missing
        address is public.
        """
        if not address:
            return ActorRole.PUBLIC
        key = address.strip().lower()
        if key in self.config.admin_addresses:
            return ActorRole.ADMIN
        if key in self.config.verifier_addresses:
            return ActorRole.VERIFIER
        return ActorRole.STAKEHOLDER

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def register_project(
        self, data: Union[ProjectCreate, Mapping[str, Any]],
    ) -> Record:
        """Register a new project in state ``pending``.

        Args:
            data: ProjectCreate or camelCase mapping.

        Returns:
            The stored project record.

        Raises:
            ValidationError: If the payload is invalid. Nothing is persisted.
        """
        with _track("register_project"):
            payload = _validate(ProjectCreate, data)
            project = Project(
                name=payload.name,
                location=payload.location,
                area=payload.area,
                ecosystem_type=payload.ecosystem_type,
                owner=payload.owner_address or "unknown",
                description=payload.description,
                coordinates=payload.coordinates,
                document_hashes=payload.document_hashes,
                estimated_credits=payload.estimated_credits,
            )
            project.status_history.append(
                StatusChange(
                    to_state=ProjectStatus.PENDING.value,
                    action="register",
                    actor=payload.owner_address,
                )
            )
            record = project.to_record()

            with self._lock:
                projects = self.store.load(PROJECTS)
                projects.append(record)
                self._save({PROJECTS: projects})

            logger.info("Registered project %s (%s)", project.id, project.name)
            return record

    def list_projects(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        status: Optional[str] = None,
        ecosystem_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """List projects with optional status / ecosystem filters.

        Returns:
            ``{"projects": [...], "pagination": {...}}``
        """
        projects = self.store.load(PROJECTS)
        for field_name, enum_cls, value in (
            ("status", ProjectStatus, status),
            ("ecosystemType", EcosystemType, ecosystem_type),
        ):
            if not value:
                continue
            try:
                wanted = enum_cls.parse(value).value
            except ValueError as exc:
                raise ValidationError(
                    "Validation failed", invalid_fields={field_name: str(exc)},
                ) from exc
            projects = [p for p in projects if p.get(field_name) == wanted]

        items, pagination = self._paginate(projects, page, limit)
        return {"projects": items, "pagination": pagination.to_record()}

    def get_project(self, project_id: str) -> Record:
        """Return one project record.

        Raises:
            NotFoundError: If the id is unknown.
        """
        projects = self.store.load(PROJECTS)
        return projects[_index_of(projects, project_id, "project")]

    def transition_project(
        self,
        project_id: str,
        action: Optional[Union[ProjectAction, str]] = None,
        role: RoleLike = ActorRole.PUBLIC,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
        target_state: Optional[Union[ProjectStatus, str]] = None,
    ) -> Record:
        """Apply an action (or move to a target state) on a project.

        Args:
            project_id: Project id.
            action: ProjectAction to apply. Ignored if ``target_state`` is set.
            role: Role of the actor.
            reason: Optional reason, stored for suspend / reject.
            actor: Optional actor address recorded in the history.
            target_state: Desired state; the action leading there is used.

        Returns:
            The updated project record.

        Raises:
            NotFoundError: Unknown project id.
            ForbiddenError: Role does not satisfy the action's role.
            InvalidTransitionError: Action not allowed from the current state.
        """
        with _track("transition_project"), self._lock:
            projects = self.store.load(PROJECTS)
            try:
                idx = _index_of(projects, project_id, "project")
            except NotFoundError:
                record_transition_failure("project", "not_found")
                raise
            project = _decode(Project, projects[idx], PROJECTS)
            current = project.status

            if target_state is not None:
                action = PROJECT_TRANSITIONS.action_for(current, target_state)
            if action is None:
                raise ValidationError(
                    "Validation failed",
                    invalid_fields={"action": "An action or target state is required"},
                )
            target = self._resolve(PROJECT_TRANSITIONS, current, action, role)
            act = ProjectAction(action)

            now = _utcnow()
            project.status = target
            project.last_modified = now
            if act is ProjectAction.APPROVE:
                project.approved_at = now
            elif act is ProjectAction.VERIFY:
                project.verified_at = now
            elif act is ProjectAction.SUSPEND:
                project.suspended_at = now
                project.suspension_reason = reason
            elif act is ProjectAction.ACTIVATE:
                project.suspension_reason = None
            elif act is ProjectAction.REJECT:
                project.rejected_at = now
                project.rejection_reason = reason
            project.status_history.append(
                StatusChange(
                    from_state=current.value,
                    to_state=target.value,
                    action=act.value,
                    actor=actor,
                    reason=reason,
                    at=now,
                )
            )
            projects[idx] = project.to_record()

            notifications = self.store.load(NOTIFICATIONS)
            message = f"Project '{project.name}' is now {target.value}."
            if reason:
                message += f" Reason: {reason}"
            self._notify(
                notifications,
                project.owner if project.owner != "unknown" else None,
                _PROJECT_NOTICES[act],
                message,
                kind="warning" if act in (ProjectAction.SUSPEND, ProjectAction.REJECT) else "success",
            )

            self._save({PROJECTS: projects, NOTIFICATIONS: notifications})

        record_transition("project", act.value)
        logger.info(
            "Project %s: %s -> %s (%s)", project_id, current.value, target.value, act.value,
        )
        return projects[idx]

    def mobile_projects(self) -> List[Record]:
        """Summaries of projects open to field data collection."""
        accepting = {s.value for s in MRV_ACCEPTING_PROJECT_STATES}
        return [
            {
                "id": p.get("id"),
                "name": p.get("name"),
                "location": p.get("location"),
                "ecosystemType": p.get("ecosystemType"),
                "status": p.get("status"),
            }
            for p in self.store.load(PROJECTS)
            if p.get("status") in accepting
        ]

    # ------------------------------------------------------------------
    # Stakeholders
    # ------------------------------------------------------------------

    def register_stakeholder(
        self, data: Union[StakeholderCreate, Mapping[str, Any]],
    ) -> Record:
        """Register a stakeholder (unapproved, initial reputation).

        Raises:
            ValidationError: Invalid payload or address already registered.
        """
        with _track("register_stakeholder"):
            payload = _validate(StakeholderCreate, data)
            stakeholder = Stakeholder(
                address=payload.address,
                name=payload.name,
                organization=payload.organization,
                stakeholder_type=payload.stakeholder_type,
                location=payload.location,
                email=payload.email,
                phone=payload.phone,
                website=payload.website,
                description=payload.description,
                reputation_score=self.config.initial_reputation,
            )
            stakeholder.status_history.append(
                StatusChange(
                    to_state=StakeholderState.UNAPPROVED.value,
                    action="register",
                    actor=payload.address,
                )
            )

            with self._lock:
                stakeholders = self.store.load(STAKEHOLDERS)
                if payload.address and any(
                    _decode(Stakeholder, s, STAKEHOLDERS).matches(payload.address)
                    for s in stakeholders
                ):
                    raise ValidationError(
                        "Stakeholder already registered",
                        invalid_fields={"address": "Address is already registered"},
                    )
                record = stakeholder.to_record()
                stakeholders.append(record)
                self._save({STAKEHOLDERS: stakeholders})

            logger.info("Registered stakeholder %s (%s)", stakeholder.id, stakeholder.name)
            return record

    def list_stakeholders(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        approved: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """List stakeholders, optionally by approval state."""
        stakeholders = self.store.load(STAKEHOLDERS)
        if approved is not None:
            stakeholders = [s for s in stakeholders if bool(s.get("approved")) == approved]
        items, pagination = self._paginate(stakeholders, page, limit)
        return {"stakeholders": items, "pagination": pagination.to_record()}

    def _stakeholder_index(self, stakeholders: List[Record], identifier: str) -> int:
        for i, record in enumerate(stakeholders):
            if _decode(Stakeholder, record, STAKEHOLDERS).matches(identifier):
                return i
        raise NotFoundError(
            f"Stakeholder not found: {identifier}",
            entity_type="stakeholder",
            entity_id=identifier,
        )

    def get_stakeholder(self, identifier: str) -> Record:
        """Return a stakeholder by id or wallet address.

        Raises:
            NotFoundError: If nothing matches.
        """
        stakeholders = self.store.load(STAKEHOLDERS)
        return stakeholders[self._stakeholder_index(stakeholders, identifier)]

    def approve_stakeholder(
        self,
        identifier: str,
        role: RoleLike = ActorRole.PUBLIC,
        actor: Optional[str] = None,
        reason: Optional[str] = None,
        target_state: Optional[Union[StakeholderState, str]] = None,
    ) -> Record:
        """Approve a stakeholder (one-way).

        ``target_state``, when given, must resolve to the approve action.

        Raises:
            NotFoundError: Unknown stakeholder.
            ForbiddenError: Role is not admin.
            InvalidTransitionError: Stakeholder already approved.
        """
        with _track("approve_stakeholder"), self._lock:
            stakeholders = self.store.load(STAKEHOLDERS)
            try:
                idx = self._stakeholder_index(stakeholders, identifier)
            except NotFoundError:
                record_transition_failure("stakeholder", "not_found")
                raise
            stakeholder = _decode(Stakeholder, stakeholders[idx], STAKEHOLDERS)
            current = StakeholderState.of(stakeholder.approved)
            action = StakeholderAction.APPROVE
            if target_state is not None:
                action = STAKEHOLDER_TRANSITIONS.action_for(current, target_state)
            target = self._resolve(STAKEHOLDER_TRANSITIONS, current, action, role)

            now = _utcnow()
            stakeholder.approved = True
            stakeholder.approved_at = now
            stakeholder.approved_by = actor
            stakeholder.status_history.append(
                StatusChange(
                    from_state=current.value,
                    to_state=target.value,
                    action=StakeholderAction.APPROVE.value,
                    actor=actor,
                    reason=reason,
                    at=now,
                )
            )
            stakeholders[idx] = stakeholder.to_record()

            notifications = self.store.load(NOTIFICATIONS)
            self._notify(
                notifications,
                stakeholder.address or stakeholder.id,
                "Stakeholder Approved",
                f"{stakeholder.organization} has been approved as a "
                f"{stakeholder.stakeholder_type.display_name} stakeholder.",
                kind="success",
            )
            self._save({STAKEHOLDERS: stakeholders, NOTIFICATIONS: notifications})

        record_transition("stakeholder", StakeholderAction.APPROVE.value)
        logger.info("Stakeholder %s approved by %s", stakeholder.id, actor or "-")
        return stakeholders[idx]

    # ------------------------------------------------------------------
    # MRV data
    # ------------------------------------------------------------------

    def submit_mrv(self, data: Union[MRVSubmission, Mapping[str, Any]]) -> Record:
        """Submit field data for a project.

        The project must be ``active`` or ``verified``. A submission naming
        ``supersedes`` replaces an archived ``requiresUpdate`` record of the
        same project, which is linked back via ``supersededBy``.

        Raises:
            ValidationError: Invalid payload.
            NotFoundError: Unknown project or superseded record.
            InvalidTransitionError: Project not accepting data, or the
                superseded record is not awaiting an update.
        """
        with _track("submit_mrv"):
            payload = _validate(MRVSubmission, data)

            with self._lock:
                projects = self.store.load(PROJECTS)
                project = _decode(
                    Project,
                    projects[_index_of(projects, payload.project_id, "project")],
                    PROJECTS,
                )
                if project.status not in MRV_ACCEPTING_PROJECT_STATES:
                    raise InvalidTransitionError(
                        f"Project '{project.id}' does not accept MRV data "
                        f"in state '{project.status.value}'",
                        entity_type="project",
                        current_state=project.status.value,
                        attempted="submit_mrv",
                    )

                mrv_data = self.store.load(MRV_DATA)
                mrv = MRVData(
                    project_id=project.id,
                    collector=payload.collector_address,
                    data_hash=payload.data_hash,
                    coordinates=payload.coordinates,
                    carbon_sequestration=payload.carbon_sequestration,
                    measurements=(
                        payload.measurements.model_dump(by_alias=True, exclude_none=True)
                        if payload.measurements else {}
                    ),
                    observations=payload.observations,
                    photos=payload.photos,
                    collected_at=payload.timestamp,
                    supersedes=payload.supersedes,
                )
                mrv.status_history.append(
                    StatusChange(
                        to_state=MRVStatus.SUBMITTED.value,
                        action="submit",
                        actor=payload.collector_address,
                    )
                )

                if payload.supersedes:
                    old_idx = _index_of(mrv_data, payload.supersedes, "mrv_data")
                    old = _decode(MRVData, mrv_data[old_idx], MRV_DATA)
                    if (
                        old.project_id != project.id
                        or old.status is not MRVStatus.REQUIRES_UPDATE
                        or old.superseded_by
                    ):
                        raise InvalidTransitionError(
                            f"MRV data '{old.id}' cannot be superseded",
                            entity_type="mrv_data",
                            current_state=old.status.value,
                            attempted="supersede",
                        )
                    old.superseded_by = mrv.id
                    mrv_data[old_idx] = old.to_record()

                record = mrv.to_record()
                mrv_data.append(record)

                notifications = self.store.load(NOTIFICATIONS)
                self._notify(
                    notifications,
                    project.owner if project.owner != "unknown" else None,
                    "New MRV Data",
                    f"New field data was submitted for '{project.name}'.",
                )
                self._save({MRV_DATA: mrv_data, NOTIFICATIONS: notifications})

            logger.info("MRV data %s submitted for project %s", mrv.id, project.id)
            return record

    def list_mrv(
        self,
        project_id: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """List MRV data, optionally for one project or status.

        Returns:
            ``{"data": [...], "pagination": {...}}``
        """
        records = self.store.load(MRV_DATA)
        if project_id:
            records = [m for m in records if m.get("projectId") == project_id]
        if status:
            try:
                wanted = MRVStatus(status).value
            except ValueError as exc:
                raise ValidationError(
                    "Validation failed",
                    invalid_fields={"status": f"Unknown MRV status '{status}'"},
                ) from exc
            records = [m for m in records if m.get("status") == wanted]
        items, pagination = self._paginate(records, page, limit)
        return {"data": items, "pagination": pagination.to_record()}

    def get_mrv(self, mrv_id: str) -> Record:
        """Return one MRV data record."""
        records = self.store.load(MRV_DATA)
        return records[_index_of(records, mrv_id, "mrv_data")]

    def review_mrv(
        self,
        mrv_id: str,
        action: Union[MRVAction, str] = MRVAction.VERIFY,
        role: RoleLike = ActorRole.PUBLIC,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
        target_state: Optional[Union[MRVStatus, str]] = None,
    ) -> Record:
        """Apply a verifier action (or move to a target state) on an MRV record.

        ``target_state`` takes precedence over ``action``.

        Side effects written with the state change:
            - verify: project ``actualCredits`` += ``carbonSequestration``;
              collector reputation + verified delta.
            - reject: collector reputation - rejected delta.
            - every action: a notification to the collector.

        Reputation is clamped to ``[0, max_reputation]``.

        Raises:
            NotFoundError: Unknown MRV id, or its project is missing.
            ForbiddenError: Role is not verifier/admin.
            InvalidTransitionError: Action not allowed from the current state.
        """
        with _track("review_mrv"), self._lock:
            mrv_data = self.store.load(MRV_DATA)
            try:
                idx = _index_of(mrv_data, mrv_id, "mrv_data")
            except NotFoundError:
                record_transition_failure("mrv_data", "not_found")
                raise
            mrv = _decode(MRVData, mrv_data[idx], MRV_DATA)
            current = mrv.status
            if target_state is not None:
                action = MRV_TRANSITIONS.action_for(current, target_state)
            target = self._resolve(MRV_TRANSITIONS, current, action, role)
            act = MRVAction(action)

            now = _utcnow()
            mrv.status = target
            if act is MRVAction.REVIEW:
                mrv.reviewed_at = now
            elif act is MRVAction.VERIFY:
                mrv.verified_at = now
                mrv.verifier = actor
            elif act is MRVAction.REJECT:
                mrv.rejected_at = now
                mrv.rejection_reason = reason
            elif act is MRVAction.REQUEST_UPDATE:
                mrv.update_requested_at = now
                mrv.update_reason = reason
            mrv.status_history.append(
                StatusChange(
                    from_state=current.value,
                    to_state=target.value,
                    action=act.value,
                    actor=actor,
                    reason=reason,
                    at=now,
                )
            )
            mrv_data[idx] = mrv.to_record()
            changes: Dict[str, List[Record]] = {MRV_DATA: mrv_data}

            if act is MRVAction.VERIFY:
                projects = self.store.load(PROJECTS)
                p_idx = _index_of(projects, mrv.project_id, "project")
                project = _decode(Project, projects[p_idx], PROJECTS)
                project.actual_credits = round(
                    project.actual_credits + mrv.carbon_sequestration, 6,
                )
                project.last_modified = now
                projects[p_idx] = project.to_record()
                changes[PROJECTS] = projects

            delta = {
                MRVAction.VERIFY: self.config.verified_reputation_delta,
                MRVAction.REJECT: -self.config.rejected_reputation_delta,
            }.get(act)
            if delta is not None:
                stakeholders = self.store.load(STAKEHOLDERS)
                try:
                    s_idx = self._stakeholder_index(stakeholders, mrv.collector)
                except NotFoundError:
                    logger.warning(
                        "No stakeholder for collector %s; reputation unchanged",
                        mrv.collector,
                    )
                else:
                    stakeholder = _decode(Stakeholder, stakeholders[s_idx], STAKEHOLDERS)
                    stakeholder.reputation_score = max(
                        0,
                        min(self.config.max_reputation, stakeholder.reputation_score + delta),
                    )
                    stakeholders[s_idx] = stakeholder.to_record()
                    changes[STAKEHOLDERS] = stakeholders

            notifications = self.store.load(NOTIFICATIONS)
            message = f"Your MRV submission {mrv.id} is now {target.value}."
            if reason:
                message += f" Reason: {reason}"
            self._notify(
                notifications,
                mrv.collector,
                _MRV_NOTICES[act],
                message,
                kind="warning" if act in (MRVAction.REJECT, MRVAction.REQUEST_UPDATE) else "info",
            )
            changes[NOTIFICATIONS] = notifications

            self._save(changes)

        record_transition("mrv_data", act.value)
        logger.info("MRV data %s: %s -> %s", mrv_id, current.value, target.value)
        return mrv_data[idx]

    # ------------------------------------------------------------------
    # Carbon credits
    # ------------------------------------------------------------------

    def mint_credits(self, data: Union[CreditMint, Mapping[str, Any]]) -> Record:
        """Mint a credit batch against a project's verified sequestration.

        Raises:
            ValidationError: Invalid payload, or the batch would take the
                project's minted total above its ``actualCredits``.
            NotFoundError: Unknown project.
        """
        with _track("mint_credits"):
            payload = _validate(CreditMint, data)

            with self._lock:
                project = _decode(Project, self.get_project(payload.project_id), PROJECTS)
                credits = self.store.load(CREDITS)
                minted = sum(
                    float(c.get("amount") or 0)
                    for c in credits if c.get("projectId") == project.id
                )
                available = round(project.actual_credits - minted, 6)
                if payload.amount > available:
                    raise ValidationError(
                        "Amount exceeds verified credits",
                        invalid_fields={
                            "amount": f"Only {available} credits are available to mint",
                        },
                    )

                credit = CarbonCredit(
                    project_id=project.id,
                    owner=payload.recipient_address,
                    amount=payload.amount,
                    verification_hash=payload.verification_hash,
                )
                record = credit.to_record()
                credits.append(record)

                notifications = self.store.load(NOTIFICATIONS)
                self._notify(
                    notifications,
                    payload.recipient_address,
                    "Credits Minted",
                    f"{payload.amount} credits were minted for '{project.name}'.",
                    kind="success",
                )
                self._save({CREDITS: credits, NOTIFICATIONS: notifications})

            logger.info("Minted %s credits for project %s", payload.amount, project.id)
            return record

    def credit_balance(self, address: str) -> Dict[str, Any]:
        """Active (unretired) credits held by ``address``."""
        key = address.lower()
        held = [
            c for c in self.store.load(CREDITS)
            if str(c.get("owner", "")).lower() == key and not c.get("retired")
        ]
        balance = sum(float(c.get("amount") or 0) for c in held)
        return {"address": address, "balance": round(balance, 2), "credits": held}

    def retire_credits(self, data: Union[CreditRetire, Mapping[str, Any]]) -> List[Record]:
        """Retire whole credit batches, oldest first, until ``amount`` is covered.

        Batches larger than the remaining amount are skipped.

        Raises:
            ValidationError: Invalid payload or insufficient credits; nothing
                is written in that case.
        """
        with _track("retire_credits"):
            payload = _validate(CreditRetire, data)
            key = payload.owner_address.lower()

            with self._lock:
                credits = self.store.load(CREDITS)
                remaining = payload.amount
                retired: List[Record] = []
                now = _utcnow()
                for i, record in enumerate(credits):
                    if remaining <= 0:
                        break
                    if str(record.get("owner", "")).lower() != key or record.get("retired"):
                        continue
                    credit = _decode(CarbonCredit, record, CREDITS)
                    if credit.amount <= remaining:
                        credit.retired = True
                        credit.retired_at = now
                        credit.retirement_reason = payload.reason
                        credit.status = "retired"
                        credits[i] = credit.to_record()
                        retired.append(credits[i])
                        remaining = round(remaining - credit.amount, 6)

                if remaining > 0:
                    raise ValidationError(
                        "Insufficient credits to retire",
                        invalid_fields={"amount": "Insufficient credits to retire"},
                    )
                self._save({CREDITS: credits})

            logger.info(
                "Retired %s credits (%d batches) for %s",
                payload.amount, len(retired), payload.owner_address,
            )
            return retired

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def record_transaction(
        self, data: Union[TransactionCreate, Mapping[str, Any]],
    ) -> Record:
        """Store a reference to an on-chain transaction.

        Raises:
            ValidationError: Invalid payload or hash already recorded.
        """
        with _track("record_transaction"):
            payload = _validate(TransactionCreate, data)
            with self._lock:
                transactions = self.store.load(TRANSACTIONS)
                key = payload.transaction_hash.lower()
                if any(str(t.get("transactionHash", "")).lower() == key for t in transactions):
                    raise ValidationError(
                        "Transaction already recorded",
                        invalid_fields={"transactionHash": "Transaction already recorded"},
                    )
                record = Transaction(
                    transaction_hash=payload.transaction_hash,
                    contract_address=payload.contract_address,
                    from_address=payload.from_address,
                    to_address=payload.to_address,
                ).to_record()
                transactions.append(record)
                self._save({TRANSACTIONS: transactions})
            return record

    def get_transaction(self, transaction_hash: str) -> Record:
        """Look up a transaction by hash (case-insensitive)."""
        key = transaction_hash.lower()
        for record in self.store.load(TRANSACTIONS):
            if str(record.get("transactionHash", "")).lower() == key:
                return record
        raise NotFoundError(
            f"Transaction not found: {transaction_hash}",
            entity_type="transaction",
            entity_id=transaction_hash,
        )

    # ------------------------------------------------------------------
    # Search & notifications
    # ------------------------------------------------------------------

    def search(self, query: Optional[str], search_type: Optional[str] = None) -> Dict[str, Any]:
        """Case-insensitive substring search, at most 10 hits per type.

        Raises:
            ValidationError: Unknown ``search_type``.
        """
        if search_type and search_type not in SEARCH_TYPES:
            raise ValidationError(
                "Validation failed",
                invalid_fields={"type": f"Type must be one of: {', '.join(SEARCH_TYPES)}"},
            )
        results: Dict[str, List[Record]] = {
            "projects": [], "stakeholders": [], "transactions": [],
        }
        term = (query or "").strip().lower()
        if term:
            if search_type in (None, "project"):
                results["projects"] = [
                    p for p in self.store.load(PROJECTS)
                    if _matches(p, term, "name", "location", "ecosystemType")
                ][:SEARCH_RESULT_LIMIT]
            if search_type in (None, "stakeholder"):
                results["stakeholders"] = [
                    s for s in self.store.load(STAKEHOLDERS)
                    if _matches(s, term, "name", "organization", "location")
                ][:SEARCH_RESULT_LIMIT]
            if search_type in (None, "transaction"):
                results["transactions"] = [
                    t for t in self.store.load(TRANSACTIONS)
                    if _matches(t, term, "transactionHash", "fromAddress", "toAddress")
                ][:SEARCH_RESULT_LIMIT]
        return {"query": query or "", "type": search_type or "all", "results": results}

    def list_notifications(self, user: Optional[str] = None) -> Dict[str, Any]:
        """Newest 20 notifications for ``user`` (own + broadcast) and the unread count."""
        notifications = self.store.load(NOTIFICATIONS)
        if user:
            key = user.lower()
            notifications = [
                n for n in notifications
                if str(n.get("recipient", "")).lower() in (key, BROADCAST_RECIPIENT)
            ]
        ordered = [
            n for _, n in sorted(
                enumerate(notifications),
                key=lambda pair: (str(pair[1].get("timestamp", "")), pair[0]),
                reverse=True,
            )
        ]
        return {
            "notifications": ordered[:NOTIFICATION_LIMIT],
            "unreadCount": sum(1 for n in ordered if not n.get("read")),
        }

    def mark_notification_read(self, notification_id: str) -> Record:
        """Mark a notification read.

        Raises:
            NotFoundError: Unknown notification id.
        """
        with _track("mark_notification_read"), self._lock:
            notifications = self.store.load(NOTIFICATIONS)
            idx = _index_of(notifications, notification_id, "notification")
            notification = _decode(Notification, notifications[idx], NOTIFICATIONS)
            if not notification.read:
                notification.read = True
                notification.read_at = _utcnow()
                notifications[idx] = notification.to_record()
                self._save({NOTIFICATIONS: notifications})
            return notifications[idx]

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_statistics(self) -> RegistryStatistics:
        """Registry statistics recomputed from the current collections."""
        return compute_statistics(
            self.store.load(PROJECTS),
            self.store.load(STAKEHOLDERS),
            self.store.load(MRV_DATA),
        )

    def get_overview(self) -> Dict[str, Any]:
        """Analytics overview including credits and distributions."""
        return compute_overview(
            self.store.load(PROJECTS),
            self.store.load(STAKEHOLDERS),
            self.store.load(MRV_DATA),
            self.store.load(CREDITS),
        )


__all__ = [
    "BlueCarbonRegistry",
    "SEARCH_TYPES",
]
