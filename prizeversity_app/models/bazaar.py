"""Bazaar items, mystery box templates and student inventory."""

from __future__ import annotations

from sqlalchemy.types import JSON

from ..extensions import db
from ..utils.time_utils import isoformat, utcnow


class Item(db.Model):
    """An item listed in a classroom's bazaar."""

    __tablename__ = 'items'

    CATEGORY_ATTACK = 'Attack'
    CATEGORY_DEFEND = 'Defend'
    CATEGORY_UTILITY = 'Utility'
    CATEGORY_PASSIVE = 'Passive'
    CATEGORY_MYSTERY_BOX = 'MysteryBox'

    item_id = db.Column(db.Integer, primary_key=True)
    classroom_id = db.Column(db.Integer, db.ForeignKey('classrooms.classroom_id'), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(500))
    price = db.Column(db.Integer, default=0, nullable=False)
    category = db.Column(db.String(30), default=CATEGORY_UTILITY, nullable=False)
    primary_effect = db.Column(db.String(60))
    primary_effect_value = db.Column(db.Float)

    @property
    def is_mystery_box(self) -> bool:
        return self.category == self.CATEGORY_MYSTERY_BOX

    def to_dict(self):
        return {
            'itemId': self.item_id,
            'name': self.name,
            'description': self.description,
            'price': self.price,
            'category': self.category,
        }


class MysteryBoxTemplate(db.Model):
    """Configuration of a MysteryBox bazaar item."""

    __tablename__ = 'mystery_box_templates'

    template_id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey('items.item_id'), nullable=False, unique=True)
    classroom_id = db.Column(db.Integer, db.ForeignKey('classrooms.classroom_id'), nullable=False, index=True)
    luck_multiplier = db.Column(db.Float, default=1.5, nullable=False)
    pity_enabled = db.Column(db.Boolean, default=False, nullable=False)
    pity_threshold = db.Column(db.Integer, default=10, nullable=False)
    pity_minimum_rarity = db.Column(db.String(20), default='rare', nullable=False)
    max_opens_per_student = db.Column(db.Integer, nullable=True)
    active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    item = db.relationship('Item', foreign_keys=[item_id])
    pool = db.relationship(
        'MysteryBoxPoolEntry', backref='template', lazy=True, cascade='all, delete-orphan',
        order_by='MysteryBoxPoolEntry.id'
    )

    @property
    def name(self) -> str:
        return self.item.name

    @property
    def price(self) -> int:
        return self.item.price

    def to_dict(self):
        return {
            'templateId': self.template_id,
            'itemId': self.item_id,
            'name': self.item.name,
            'price': self.item.price,
            'luckMultiplier': self.luck_multiplier,
            'pityEnabled': self.pity_enabled,
            'pityThreshold': self.pity_threshold,
            'pityMinimumRarity': self.pity_minimum_rarity,
            'maxOpensPerStudent': self.max_opens_per_student,
            'active': self.active,
            'pool': [entry.to_dict() for entry in self.pool],
        }


class MysteryBoxPoolEntry(db.Model):
    __tablename__ = 'mystery_box_pool_entries'

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(db.Integer, db.ForeignKey('mystery_box_templates.template_id'), nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey('items.item_id'), nullable=False)
    rarity = db.Column(db.String(20), default='common', nullable=False)
    base_drop_chance = db.Column(db.Float, nullable=False)

    item = db.relationship('Item', foreign_keys=[item_id])

    def to_dict(self):
        return {
            'itemId': self.item_id,
            'itemName': self.item.name if self.item else None,
            'rarity': self.rarity,
            'baseDropChance': self.base_drop_chance,
        }


class OwnedMysteryBox(db.Model):
    """Per-student open history of one template."""

    __tablename__ = 'owned_mystery_boxes'

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(db.Integer, db.ForeignKey('mystery_box_templates.template_id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False)
    opens_count = db.Column(db.Integer, default=0, nullable=False)
    # Rarity tiers of the most recent opens, oldest first, capped at pity_threshold
    recent_opens = db.Column(JSON, default=list, nullable=False)
    version = db.Column(db.Integer, nullable=False)

    template = db.relationship('MysteryBoxTemplate')

    __table_args__ = (db.UniqueConstraint('template_id', 'user_id', name='_owned_box_uc'),)
    __mapper_args__ = {'version_id_col': version}

    @property
    def uses_remaining(self):
        """None when the template has no open limit."""
        limit = self.template.max_opens_per_student
        if limit is None:
            return None
        return max(0, limit - (self.opens_count or 0))


class OwnedItem(db.Model):
    """An item in a student's inventory, cloned from a bazaar item."""

    __tablename__ = 'owned_items'

    owned_item_id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False, index=True)
    classroom_id = db.Column(db.Integer, db.ForeignKey('classrooms.classroom_id'), nullable=False)
    source_item_id = db.Column(db.Integer, db.ForeignKey('items.item_id'), nullable=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(500))
    price = db.Column(db.Integer, default=0, nullable=False)
    category = db.Column(db.String(30), nullable=False)
    primary_effect = db.Column(db.String(60))
    primary_effect_value = db.Column(db.Float)
    acquired_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    @classmethod
    def clone_from(cls, item, owner_id, classroom_id):
        return cls(
            owner_id=owner_id,
            classroom_id=classroom_id,
            source_item_id=item.item_id,
            name=item.name,
            description=item.description,
            price=item.price,
            category=item.category,
            primary_effect=item.primary_effect,
            primary_effect_value=item.primary_effect_value,
        )

    def to_dict(self):
        return {
            'ownedItemId': self.owned_item_id,
            'sourceItemId': self.source_item_id,
            'name': self.name,
            'description': self.description,
            'price': self.price,
            'category': self.category,
            'acquiredAt': isoformat(self.acquired_at),
        }


class RewardLog(db.Model):
    """One row per mystery box open."""

    __tablename__ = 'reward_logs'

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(db.Integer, db.ForeignKey('mystery_box_templates.template_id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False, index=True)
    classroom_id = db.Column(db.Integer, db.ForeignKey('classrooms.classroom_id'), nullable=False)
    owned_item_id = db.Column(db.Integer, db.ForeignKey('owned_items.owned_item_id'), nullable=False)
    rarity = db.Column(db.String(20), nullable=False)
    pity_triggered = db.Column(db.Boolean, default=False, nullable=False)
    luck_bonus = db.Column(db.Float, default=0.0, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
