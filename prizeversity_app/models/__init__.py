"""Database models package for Prizeversity."""

from ..extensions import db

from .user import User
from .classroom import BanRecord, Classroom, ClassroomBalance, ClassroomMember
from .group import Group, GroupMember, GroupSet
from .ledger import PendingAdjustment, Transaction
from .siphon import AccountFreeze, SiphonRequest, SiphonVote
from .bazaar import (
    Item,
    MysteryBoxPoolEntry,
    MysteryBoxTemplate,
    OwnedItem,
    OwnedMysteryBox,
    RewardLog,
)

__all__ = [
    'db',
    'User',
    'Classroom',
    'ClassroomMember',
    'ClassroomBalance',
    'BanRecord',
    'GroupSet',
    'Group',
    'GroupMember',
    'Transaction',
    'PendingAdjustment',
    'SiphonRequest',
    'SiphonVote',
    'AccountFreeze',
    'Item',
    'MysteryBoxTemplate',
    'MysteryBoxPoolEntry',
    'OwnedMysteryBox',
    'OwnedItem',
    'RewardLog',
]
