"""
Award Lifecycle - draft -> issued -> finalized.

Rules:
- issue:  draft only, by a profit sharing admin.
- accept: issued only, by the user linked to the owning stakeholder record.
          Admins acting on someone's behalf and supervisors are rejected.
- delete: draft only, by an admin. Issued/finalized awards are the audit trail.
- edit:   draft only, by an admin.
- No backward transitions.

Every check happens before any write. The write itself is conditional on the
expected pre-state; losing that race raises ConflictError. Writes are always
addressed to the award's owning stakeholder record, even when the award is
being viewed through another record of the same user.

After a committed issue/accept the agreement is regenerated and the other
party notified. A failing side effect is logged and returned as a warning;
the status change stands.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from app.core.auth import Actor
from app.core.timezone import utc_timestamp
from app.modules.profit_sharing.documents import DocumentRegenerator
from app.modules.profit_sharing.domain import Award, AwardStatus, parse_business_date
from app.modules.profit_sharing.exceptions import (
    AccessDeniedError,
    CollaboratorFailure,
    ConflictError,
    InputError,
    InvalidTransitionError,
    NotFoundError,
)
from app.modules.profit_sharing.store import EDITABLE_AWARD_FIELDS, ProfitSharingStore
from app.shared.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


# Allowed forward moves: action -> (required pre-state, post-state)
TRANSITIONS = {
    'issue': (AwardStatus.DRAFT, AwardStatus.ISSUED),
    'accept': (AwardStatus.ISSUED, AwardStatus.FINALIZED),
}


@dataclass
class TransitionResult:
    award: Award
    warnings: List[CollaboratorFailure] = field(default_factory=list)


def _require_actor(actor: Optional[Actor], action: str) -> Actor:
    if actor is None or not actor.user_id:
        raise AccessDeniedError(f"{action} requires an acting user")
    return actor


def _require_admin(actor: Optional[Actor], action: str) -> Actor:
    actor = _require_actor(actor, action)
    if not actor.is_admin:
        raise AccessDeniedError(f"Only profit sharing admins may {action} awards")
    return actor


def _require_status(award: Award, expected: AwardStatus, action: str) -> None:
    if award.status != expected.value:
        raise InvalidTransitionError(
            f"Cannot {action} award {award.id}: status is '{award.status}', expected '{expected.value}'"
        )


class AwardLifecycle:
    """Applies lifecycle transitions through the store."""

    def __init__(
        self,
        store: ProfitSharingStore,
        notifier: Optional[NotificationDispatcher] = None,
        documents: Optional[DocumentRegenerator] = None,
        clock: Callable[[], datetime] = utc_timestamp,
    ):
        self.store = store
        self.notifier = notifier
        self.documents = documents
        self.clock = clock

    def _load(self, award_id: str) -> Award:
        award = self.store.get_award(award_id)
        if award is None:
            raise NotFoundError(f"Award {award_id} not found")
        return award

    def _transition(self, award: Award, action: str, actor: Actor) -> Award:
        before, after = TRANSITIONS[action]
        updated = self.store.update_award_status(
            stakeholder_record_id=award.owner_stakeholder_id,
            award_id=award.id,
            expected_status=before.value,
            new_status=after.value,
            actor_id=actor.user_id,
            timestamp=self.clock(),
        )
        if updated is None:
            raise ConflictError(award.id, before.value)
        logger.info(f"Award {award.id} {before.value} -> {after.value} by {actor.user_id}")
        return updated

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def issue(self, award_id: str, actor: Optional[Actor]) -> TransitionResult:
        actor = _require_admin(actor, 'issue')
        award = self._load(award_id)
        _require_status(award, AwardStatus.DRAFT, 'issue')

        updated = self._transition(award, 'issue', actor)
        warnings = self._after_commit(updated, event_type='award_issued', recipient='stakeholder')
        return TransitionResult(award=updated, warnings=warnings)

    def accept(self, award_id: str, actor: Optional[Actor]) -> TransitionResult:
        actor = _require_actor(actor, 'accept')
        award = self._load(award_id)
        _require_status(award, AwardStatus.ISSUED, 'accept')

        owner = self.store.get_stakeholder(award.owner_stakeholder_id)
        if owner is None or not owner.linked_user_id or owner.linked_user_id != actor.user_id:
            raise AccessDeniedError(
                f"Award {award.id} can only be accepted by the stakeholder it was issued to"
            )

        updated = self._transition(award, 'accept', actor)
        warnings = self._after_commit(updated, event_type='award_accepted', recipient='issuer')
        return TransitionResult(award=updated, warnings=warnings)

    def delete(self, award_id: str, actor: Optional[Actor]) -> None:
        _require_admin(actor, 'delete')
        award = self._load(award_id)
        _require_status(award, AwardStatus.DRAFT, 'delete')

        if not self.store.delete_award(award.owner_stakeholder_id, award.id, AwardStatus.DRAFT.value):
            raise ConflictError(award.id, AwardStatus.DRAFT.value)
        logger.info(f"Award {award.id} deleted by {actor.user_id}")

    def edit(self, award_id: str, fields: Dict[str, Any], actor: Optional[Actor]) -> Award:
        _require_admin(actor, 'edit')
        award = self._load(award_id)
        _require_status(award, AwardStatus.DRAFT, 'edit')

        changes = self._validated_changes(award, fields)
        updated = self.store.update_award_fields(
            award.owner_stakeholder_id, award.id, AwardStatus.DRAFT.value, changes
        )
        if updated is None:
            raise ConflictError(award.id, AwardStatus.DRAFT.value)
        return updated

    @staticmethod
    def _validated_changes(award: Award, fields: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(fields) - EDITABLE_AWARD_FIELDS
        if unknown:
            raise InputError(f"Award fields not editable: {', '.join(sorted(unknown))}", award.id)

        changes = dict(fields)
        for key in ('award_date', 'award_start_date', 'award_end_date'):
            if key in changes:
                changes[key] = parse_business_date(changes[key])

        start = changes.get('award_start_date', award.award_start_date)
        end = changes.get('award_end_date', award.award_end_date)
        if start and end and start > end:
            raise InputError(f"Award start {start} is after end {end}", award.id)

        if 'shares_issued' in changes and changes['shares_issued'] is not None:
            shares = int(changes['shares_issued'])
            if shares < 0:
                raise InputError("shares_issued cannot be negative", award.id)
            changes['shares_issued'] = shares
        return changes

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    def _after_commit(self, award: Award, event_type: str, recipient: str) -> List[CollaboratorFailure]:
        warnings: List[CollaboratorFailure] = []
        stakeholder = self.store.get_stakeholder(award.owner_stakeholder_id)
        plan = self.store.get_plan(award.plan_id)
        company_id = award.effective_company_id or (stakeholder.company_id if stakeholder else None)
        company = self.store.get_company(company_id) if company_id else None

        if self.documents is not None:
            try:
                document_ref = self.documents.regenerate_award_document(award, plan, stakeholder, company)
                self.store.set_award_document(award.owner_stakeholder_id, award.id, document_ref)
            except Exception as e:
                logger.error(f"Award document regeneration failed for {award.id}: {e}", exc_info=True)
                warnings.append(CollaboratorFailure('document', award.id, str(e)))

        if self.notifier is not None:
            if recipient == 'stakeholder':
                user_id = stakeholder.linked_user_id if stakeholder else None
                email = stakeholder.email if stakeholder else None
            else:
                user_id, email = award.issued_by, None
            payload = {
                'award_id': award.id,
                'plan': plan.name if plan else award.plan_id,
                'company': company.name if company else None,
                'stakeholder': stakeholder.name if stakeholder else None,
                'shares_issued': award.shares_issued,
                'start_date': award.award_start_date.isoformat() if award.award_start_date else None,
                'end_date': award.award_end_date.isoformat() if award.award_end_date else None,
                'status': award.status,
                'email': email,
            }
            try:
                self.notifier.notify(user_id, event_type, payload)
            except Exception as e:
                logger.error(f"Notification {event_type} failed for award {award.id}: {e}", exc_info=True)
                warnings.append(CollaboratorFailure('notification', award.id, str(e)))

        return warnings
