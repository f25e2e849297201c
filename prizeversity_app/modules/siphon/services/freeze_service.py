"""
Freeze Service
Account freezes placed on the target of an open siphon.
"""
from datetime import datetime
from typing import Optional

from ....core.error_handlers import AccountFrozenError
from ....extensions import db
from ....models import AccountFreeze
from ....utils.time_utils import as_utc, utcnow


class FreezeService:

    @staticmethod
    def freeze(user_id: int, classroom_id: int, siphon_id: int, expires_at: datetime) -> AccountFreeze:
        freeze = AccountFreeze(
            user_id=user_id,
            classroom_id=classroom_id,
            siphon_id=siphon_id,
            expires_at=expires_at,
        )
        db.session.add(freeze)
        return freeze

    @staticmethod
    def active_freeze(user_id: int, classroom_id: int, now: Optional[datetime] = None) -> Optional[AccountFreeze]:
        """The freeze that lasts longest among the live ones, if any."""
        now = as_utc(now or utcnow())
        candidates = AccountFreeze.query.filter_by(
            user_id=user_id, classroom_id=classroom_id, lifted_at=None
        ).all()
        live = [f for f in candidates if f.is_active(now)]
        if not live:
            return None
        return max(live, key=lambda f: as_utc(f.expires_at))

    @staticmethod
    def is_frozen(user_id: int, classroom_id: int, now: Optional[datetime] = None) -> bool:
        return FreezeService.active_freeze(user_id, classroom_id, now) is not None

    @staticmethod
    def assert_not_frozen(user_id: int, classroom_id: int, now: Optional[datetime] = None) -> None:
        freeze = FreezeService.active_freeze(user_id, classroom_id, now)
        if freeze is not None:
            raise AccountFrozenError(expires_at=as_utc(freeze.expires_at))

    @staticmethod
    def lift_for_siphon(siphon_id: int, now: Optional[datetime] = None) -> int:
        """Lift every freeze a siphon placed. Already-lifted ones are left alone."""
        now = now or utcnow()
        freezes = AccountFreeze.query.filter_by(siphon_id=siphon_id, lifted_at=None).all()
        for freeze in freezes:
            freeze.lifted_at = now
        return len(freezes)
