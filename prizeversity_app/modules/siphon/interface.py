from .services.freeze_service import FreezeService
from .services.siphon_service import SiphonService


def assert_not_frozen(user_id: int, classroom_id: int, now=None) -> None:
    """Public API: raise AccountFrozenError while a siphon freeze is live."""
    FreezeService.assert_not_frozen(user_id, classroom_id, now)


def retally_group_siphons(group, now=None):
    """Public API: re-evaluate a group's open votes after its membership changed."""
    return SiphonService.retally_group(group, now)


def announce_siphon_changes(siphons) -> None:
    SiphonService.announce(siphons)
