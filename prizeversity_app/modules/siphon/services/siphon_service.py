"""
Siphon Service
Peer-initiated requests to move bits away from a group member.

Lifecycle: the group votes, a majority forwards the request to the teacher,
and the teacher's approval shares the amount among the other members. The
target's spending is frozen while the request is open; unresolved requests
expire at expires_at and the periodic sweep moves them to 'expired'.
"""
from datetime import datetime, timedelta
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ....core.error_handlers import (
    ConflictError,
    InsufficientFundsError,
    NotFoundError,
    PolicyError,
    PrizeversityError,
    ValidationError,
)
from ....core.signals import siphon_created, siphon_review_requested, siphon_updated, siphon_voted
from ....extensions import db
from ....models import Group, GroupMember, SiphonRequest, SiphonVote, Transaction, User
from ....utils.time_utils import as_utc, utcnow
from ...classroom.services.classroom_service import ClassroomService
from ...groups.logics.quorum import eligible_voters, evaluate, tally_eligible
from ...wallet.services.ledger_service import LedgerService
from ..logics import state_machine
from .freeze_service import FreezeService


class SiphonService:

    @staticmethod
    def _get_locked(siphon_id: int) -> Optional[SiphonRequest]:
        return SiphonRequest.query.filter_by(siphon_id=siphon_id).with_for_update().first()

    @staticmethod
    def get_siphon(siphon_id: int) -> SiphonRequest:
        siphon = SiphonService._get_locked(siphon_id)
        if siphon is None:
            raise NotFoundError('Siphon request not found', resource='siphon')
        return siphon

    @staticmethod
    def _get_group(group_id: int) -> Group:
        group = db.session.get(Group, group_id)
        if group is None:
            raise NotFoundError('Group not found', resource='group')
        return group

    @staticmethod
    def _voters(group: Group, target_user_id: int):
        return eligible_voters(((m.user_id, m.status) for m in group.members), target_user_id)

    @staticmethod
    def _apply_tally(siphon: SiphonRequest, now: datetime):
        """Move a pending request to its group decision once the outcome is certain."""
        voters = SiphonService._voters(siphon.group, siphon.target_user_id)
        ballots = {v.user_id: v.vote for v in siphon.votes}
        current_tally = tally_eligible(ballots, voters)
        new_status = state_machine.status_after_vote(siphon.status, evaluate(current_tally, len(voters)))
        if new_status != siphon.status:
            SiphonService._transition(siphon, new_status, now)
        return current_tally

    @staticmethod
    def _announce_decision(siphon: SiphonRequest) -> None:
        siphon_updated.send(None, siphon=siphon)
        if siphon.status == state_machine.GROUP_APPROVED:
            teacher_id = ClassroomService.get_classroom(siphon.classroom_id).teacher_id
            siphon_review_requested.send(None, siphon=siphon, teacher_id=teacher_id)

    @staticmethod
    def retally_group(group: Group, now: Optional[datetime] = None) -> List[SiphonRequest]:
        """
        Re-evaluate the group's pending requests after a membership change.

        Runs inside the caller's unit of work; returns the requests whose
        status changed so the caller can announce them after its commit.
        """
        now = now or utcnow()
        changed = []
        pending = (
            SiphonRequest.query
            .filter_by(group_id=group.group_id, status=state_machine.PENDING)
            .with_for_update()
            .all()
        )
        for siphon in pending:
            if SiphonService._expire_if_due(siphon, now):
                changed.append(siphon)
                continue
            SiphonService._apply_tally(siphon, now)
            if siphon.status != state_machine.PENDING:
                changed.append(siphon)
        return changed

    @staticmethod
    def announce(siphons: List[SiphonRequest]) -> None:
        for siphon in siphons:
            current_app.logger.info(f"[Siphon] #{siphon.siphon_id} -> {siphon.status} after membership change")
            SiphonService._announce_decision(siphon)

    @staticmethod
    def _transition(siphon: SiphonRequest, target: str, now: datetime, actor_id: Optional[int] = None) -> None:
        siphon.status = state_machine.next_status(siphon.status, target)
        if state_machine.releases_freeze(siphon.status):
            siphon.resolved_at = now
            siphon.resolved_by_id = actor_id
            FreezeService.lift_for_siphon(siphon.siphon_id, now)

    @staticmethod
    def _expire_if_due(siphon: SiphonRequest, now: datetime) -> bool:
        """Expire a lapsed request inside the current unit of work."""
        if not siphon.is_due(now):
            return False
        SiphonService._transition(siphon, state_machine.EXPIRED, now)
        return True

    @staticmethod
    def _commit_expiry(siphon: SiphonRequest) -> None:
        LedgerService.commit()
        current_app.logger.info(f"[Siphon] #{siphon.siphon_id} expired")
        siphon_updated.send(None, siphon=siphon)

    @staticmethod
    def create_siphon(
        group_id: int,
        initiator: User,
        target_user_id: int,
        amount: int,
        reason: str,
        proof: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SiphonRequest:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 1:
            raise ValidationError('Amount must be a positive integer')
        reason = (reason or '').strip()
        if not reason:
            raise ValidationError('A reason is required')

        group = SiphonService._get_group(group_id)
        classroom = ClassroomService.get_classroom(group.classroom_id)
        approved = set(group.approved_member_ids)

        if initiator.user_id not in approved:
            raise PolicyError('Only approved group members can open a siphon request')
        if target_user_id == initiator.user_id:
            raise ValidationError('You cannot open a siphon request against yourself')
        if target_user_id not in approved:
            raise ValidationError('Target must be an approved member of this group')
        ClassroomService.assert_not_banned(classroom.classroom_id, target_user_id)

        now = now or utcnow()
        existing = (
            SiphonRequest.query
            .filter(
                SiphonRequest.group_id == group_id,
                SiphonRequest.target_user_id == target_user_id,
                SiphonRequest.status.in_(SiphonRequest.ACTIVE_STATUSES),
            )
            .with_for_update()
            .all()
        )
        for open_request in existing:
            if not SiphonService._expire_if_due(open_request, now):
                raise ConflictError('A siphon request is already open for this user')

        hours = state_machine.resolve_timeout_hours(
            classroom.siphon_timeout_hours,
            current_app.config.get('SIPHON_DEFAULT_TIMEOUT_HOURS', state_machine.DEFAULT_TIMEOUT_HOURS),
        )
        siphon = SiphonRequest(
            group_id=group_id,
            classroom_id=classroom.classroom_id,
            initiator_id=initiator.user_id,
            target_user_id=target_user_id,
            amount=amount,
            reason=reason,
            proof=proof,
            status=state_machine.PENDING,
            created_at=now,
            expires_at=state_machine.compute_expiry(now, hours),
        )
        db.session.add(siphon)
        db.session.flush()
        FreezeService.freeze(target_user_id, classroom.classroom_id, siphon.siphon_id, siphon.expires_at)
        LedgerService.commit()

        current_app.logger.info(
            f"[Siphon] #{siphon.siphon_id} opened by {initiator.user_id} against {target_user_id} "
            f"in group {group_id} for {amount} bits"
        )
        for expired in existing:
            siphon_updated.send(None, siphon=expired)
        siphon_created.send(None, siphon=siphon)
        return siphon

    @staticmethod
    def vote(siphon_id: int, user: User, vote: str, now: Optional[datetime] = None) -> SiphonRequest:
        """
        Record one ballot and move the request if the outcome is now certain.

        Eligibility is recomputed from the current membership on every vote,
        so a member leaving the group changes the denominator.
        """
        vote = (vote or '').strip().lower()
        if vote not in SiphonVote.VOTES:
            raise ValidationError("Vote must be 'yes' or 'no'")

        now = now or utcnow()
        siphon = SiphonService.get_siphon(siphon_id)
        if SiphonService._expire_if_due(siphon, now):
            SiphonService._commit_expiry(siphon)
            raise ConflictError('This siphon request has expired')
        if siphon.status != state_machine.PENDING:
            raise ConflictError('This siphon request is not open for voting')

        voters = SiphonService._voters(siphon.group, siphon.target_user_id)
        if user.user_id not in voters:
            raise ConflictError('You are not eligible to vote on this request')
        if any(v.user_id == user.user_id for v in siphon.votes):
            raise ConflictError('You have already voted on this request')

        siphon.votes.append(SiphonVote(user_id=user.user_id, vote=vote, cast_at=now))
        previous = siphon.status
        current_tally = SiphonService._apply_tally(siphon, now)

        try:
            LedgerService.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError('You have already voted on this request') from exc

        current_app.logger.info(
            f"[Siphon] #{siphon.siphon_id}: {user.user_id} voted {vote} "
            f"({current_tally.yes} yes / {current_tally.no} no of {len(voters)})"
        )
        siphon_voted.send(None, siphon=siphon)
        if siphon.status != previous:
            SiphonService._announce_decision(siphon)
        return siphon

    @staticmethod
    def _awaiting_teacher(siphon_id: int, actor: User, now: datetime) -> SiphonRequest:
        siphon = SiphonService._get_locked(siphon_id)
        if siphon is None:
            raise NotFoundError('Siphon request not found', resource='siphon')
        classroom = ClassroomService.get_classroom(siphon.classroom_id)
        ClassroomService.require_teacher(classroom, actor, 'decide siphon requests')
        if SiphonService._expire_if_due(siphon, now):
            SiphonService._commit_expiry(siphon)
            raise NotFoundError('This siphon request has expired', resource='siphon')
        if siphon.status != state_machine.GROUP_APPROVED:
            raise NotFoundError('Siphon request is not awaiting teacher approval', resource='siphon')
        return siphon

    @staticmethod
    def teacher_approve(siphon_id: int, actor: User, now: Optional[datetime] = None) -> SiphonRequest:
        """
        Move the amount from the target to the other approved members.

        The split is even; an indivisible remainder stays with the target.
        Fails with InsufficientFundsError (request left group_approved) when
        the target cannot cover the amount, and with ConflictError when no
        other approved member is left to receive it.
        """
        now = now or utcnow()
        siphon = SiphonService._awaiting_teacher(siphon_id, actor, now)
        group = siphon.group
        recipients = sorted(
            uid for uid in group.approved_member_ids if uid != siphon.target_user_id
        )
        if not recipients:
            raise ConflictError('No other approved members are left to receive the siphoned bits')
        per_recipient, debited = state_machine.split_transfer(siphon.amount, len(recipients))

        balances = LedgerService.lock_balances(
            [siphon.target_user_id] + recipients, siphon.classroom_id
        )
        target_balance = balances[siphon.target_user_id]
        if target_balance.balance < siphon.amount:
            raise InsufficientFundsError(
                'Target does not have enough bits to cover this siphon',
                balance=target_balance.balance,
                required=siphon.amount,
            )

        if debited > 0:
            LedgerService.post(
                target_balance,
                -debited,
                f'Siphoned by group {group.name}',
                kind=Transaction.KIND_SIPHON,
                assigned_by_id=actor.user_id,
            )
        if per_recipient > 0:
            for uid in recipients:
                LedgerService.post(
                    balances[uid],
                    per_recipient,
                    f'Siphon share from group {group.name}',
                    kind=Transaction.KIND_SIPHON,
                    assigned_by_id=actor.user_id,
                )

        SiphonService._transition(siphon, state_machine.TEACHER_APPROVED, now, actor.user_id)
        LedgerService.commit()

        current_app.logger.info(
            f"[Siphon] #{siphon.siphon_id} approved by {actor.user_id}: "
            f"{debited} bits from {siphon.target_user_id} to {len(recipients)} members"
        )
        LedgerService.publish(balances.values())
        siphon_updated.send(None, siphon=siphon)
        return siphon

    @staticmethod
    def teacher_reject(siphon_id: int, actor: User, now: Optional[datetime] = None) -> SiphonRequest:
        now = now or utcnow()
        siphon = SiphonService._awaiting_teacher(siphon_id, actor, now)
        SiphonService._transition(siphon, state_machine.TEACHER_REJECTED, now, actor.user_id)
        LedgerService.commit()

        current_app.logger.info(f"[Siphon] #{siphon.siphon_id} rejected by {actor.user_id}")
        siphon_updated.send(None, siphon=siphon)
        return siphon

    @staticmethod
    def list_for_group(group_id: int, user: User) -> List[SiphonRequest]:
        group = SiphonService._get_group(group_id)
        classroom = ClassroomService.get_classroom(group.classroom_id)
        role = ClassroomService.actor_role(classroom, user)
        is_member = any(
            m.user_id == user.user_id and m.status == GroupMember.STATUS_APPROVED for m in group.members
        )
        if role not in (ClassroomService.ROLE_TEACHER, ClassroomService.ROLE_TA) and not is_member:
            raise PolicyError('Only group members and classroom staff can view siphon requests')
        return (
            SiphonRequest.query
            .filter_by(group_id=group_id)
            .order_by(SiphonRequest.created_at.desc())
            .all()
        )

    @staticmethod
    def expire_due_siphons(now: Optional[datetime] = None) -> int:
        """
        Expire every active request whose expires_at has passed.

        Each request is re-read under lock and committed on its own, so
        repeated or overlapping runs expire nothing twice. Failures are
        logged and left for the next run.
        """
        now = now or utcnow()
        due_ids = [
            row.siphon_id for row in
            SiphonRequest.query
            .filter(
                SiphonRequest.status.in_(SiphonRequest.ACTIVE_STATUSES),
                SiphonRequest.expires_at <= now,
            )
            .with_entities(SiphonRequest.siphon_id)
            .all()
        ]

        expired = 0
        for siphon_id in due_ids:
            try:
                siphon = SiphonService._get_locked(siphon_id)
                if siphon is None or not SiphonService._expire_if_due(siphon, now):
                    db.session.rollback()
                    continue
                SiphonService._commit_expiry(siphon)
                expired += 1
            except (SQLAlchemyError, PrizeversityError) as exc:
                db.session.rollback()
                current_app.logger.error(f"[Siphon] Sweep could not expire #{siphon_id}: {exc}")
        if expired:
            current_app.logger.info(f"[Siphon] Sweep expired {expired} requests")
        return expired

    @staticmethod
    def purge_resolved_siphons(now: Optional[datetime] = None, retention_days: Optional[int] = None) -> int:
        """Delete terminal requests resolved more than retention_days ago."""
        now = as_utc(now or utcnow())
        if retention_days is None:
            retention_days = current_app.config.get('SIPHON_RETENTION_DAYS', 30)
        cutoff = now - timedelta(days=retention_days)

        stale = (
            SiphonRequest.query
            .filter(
                SiphonRequest.status.in_(tuple(state_machine.TERMINAL)),
                SiphonRequest.resolved_at.isnot(None),
                SiphonRequest.resolved_at < cutoff,
            )
            .all()
        )
        for siphon in stale:
            db.session.delete(siphon)
        LedgerService.commit()
        if stale:
            current_app.logger.info(f"[Siphon] Purged {len(stale)} resolved requests older than {retention_days} days")
        return len(stale)
