"""
Mystery Box Service
Template configuration and the open flow for MysteryBox bazaar items.

Templates are validated when they are created or updated; opening a box
trusts the stored configuration and only checks the student's side.
"""
import random
from typing import Any, Dict, List, Optional

from flask import current_app

from ....core.error_handlers import (
    ConflictError,
    InsufficientFundsError,
    NotFoundError,
    PolicyError,
    UsesExhaustedError,
    ValidationError,
)
from ....core.signals import mystery_box_opened
from ....extensions import db
from ....models import (
    Item,
    MysteryBoxPoolEntry,
    MysteryBoxTemplate,
    OwnedItem,
    OwnedMysteryBox,
    RewardLog,
    Transaction,
    User,
)
from ...classroom.services.classroom_service import ClassroomService
from ...siphon.interface import assert_not_frozen
from ...wallet.services.ledger_service import LedgerService
from ..logics.reward_engine import (
    DEFAULT_RARITY_WEIGHTS,
    PoolEntry,
    PoolValidationError,
    final_chances,
    luck_bonus,
    roll,
    validate_pool,
    validate_rarity_weights,
)

_TEMPLATE_FIELDS = (
    'luck_multiplier',
    'pity_enabled',
    'pity_threshold',
    'pity_minimum_rarity',
    'max_opens_per_student',
    'active',
)


class MysteryBoxService:

    @staticmethod
    def rarity_weights() -> Dict[str, float]:
        weights = current_app.config.get('MYSTERY_BOX_RARITY_WEIGHTS') or DEFAULT_RARITY_WEIGHTS
        return validate_rarity_weights(weights)

    @staticmethod
    def get_template(template_id: int) -> MysteryBoxTemplate:
        template = db.session.get(MysteryBoxTemplate, template_id)
        if template is None:
            raise NotFoundError('Mystery box not found', resource='mystery_box')
        return template

    @staticmethod
    def _build_pool(classroom_id: int, raw_pool: List[Dict[str, Any]]) -> List[MysteryBoxPoolEntry]:
        rows = []
        for raw in raw_pool or []:
            item = db.session.get(Item, raw['item_id'])
            if item is None or item.classroom_id != classroom_id:
                raise ValidationError(f"Item {raw['item_id']} does not exist in this classroom")
            rows.append(MysteryBoxPoolEntry(
                item=item,
                item_id=item.item_id,
                rarity=(raw['rarity'] or '').lower(),
                base_drop_chance=float(raw['base_drop_chance']),
            ))
        return rows

    @staticmethod
    def _validate(template: MysteryBoxTemplate, pool: List[MysteryBoxPoolEntry]) -> None:
        entries = [
            PoolEntry(row.item_id, row.rarity, row.base_drop_chance, row.item.is_mystery_box)
            for row in pool
        ]
        try:
            validate_pool(
                entries,
                pity_enabled=template.pity_enabled,
                pity_threshold=template.pity_threshold,
                pity_minimum_rarity=template.pity_minimum_rarity,
            )
        except PoolValidationError as exc:
            raise ValidationError(str(exc)) from exc

    @staticmethod
    def create_template(actor: User, data: Dict[str, Any]) -> MysteryBoxTemplate:
        classroom = ClassroomService.get_classroom(data['classroom_id'])
        ClassroomService.require_teacher(classroom, actor, 'create mystery boxes')

        item = Item(
            classroom_id=classroom.classroom_id,
            name=data['name'],
            description=data.get('description') or '',
            price=data.get('price', 0),
            category=Item.CATEGORY_MYSTERY_BOX,
        )
        template = MysteryBoxTemplate(item=item, classroom_id=classroom.classroom_id)
        for field_name in _TEMPLATE_FIELDS:
            if field_name in data:
                setattr(template, field_name, data[field_name])
        template.pity_enabled = bool(template.pity_enabled)
        template.pity_threshold = template.pity_threshold or 10
        template.pity_minimum_rarity = (template.pity_minimum_rarity or 'rare').lower()

        pool = MysteryBoxService._build_pool(classroom.classroom_id, data.get('pool'))
        MysteryBoxService._validate(template, pool)

        template.pool = pool
        db.session.add(item)
        db.session.add(template)
        LedgerService.commit()

        current_app.logger.info(
            f"[MysteryBox] Template {template.template_id} '{item.name}' created in classroom "
            f"{classroom.classroom_id} with {len(pool)} items"
        )
        return template

    @staticmethod
    def update_template(actor: User, template_id: int, data: Dict[str, Any]) -> MysteryBoxTemplate:
        """Partial update; the merged configuration is validated as a whole."""
        template = MysteryBoxService.get_template(template_id)
        classroom = ClassroomService.get_classroom(template.classroom_id)
        ClassroomService.require_teacher(classroom, actor, 'edit mystery boxes')

        with db.session.no_autoflush:
            for field_name in ('name', 'description', 'price'):
                if field_name in data:
                    setattr(template.item, field_name, data[field_name])
            for field_name in _TEMPLATE_FIELDS:
                if field_name in data:
                    setattr(template, field_name, data[field_name])
            if template.pity_minimum_rarity:
                template.pity_minimum_rarity = template.pity_minimum_rarity.lower()

            if 'pool' in data:
                pool = MysteryBoxService._build_pool(template.classroom_id, data['pool'])
            else:
                pool = list(template.pool)

            try:
                MysteryBoxService._validate(template, pool)
            except ValidationError:
                db.session.rollback()
                raise

            if 'pool' in data:
                template.pool = pool
        LedgerService.commit()

        current_app.logger.info(f"[MysteryBox] Template {template.template_id} updated by {actor.user_id}")
        return template

    @staticmethod
    def odds_for(template: MysteryBoxTemplate, student_luck: float) -> List[Dict[str, Any]]:
        """Final per-item chances for a given luck value."""
        entries = [PoolEntry(r.item_id, r.rarity, r.base_drop_chance) for r in template.pool]
        bonus = luck_bonus(student_luck, template.luck_multiplier)
        chances = final_chances(entries, bonus, MysteryBoxService.rarity_weights())
        return [
            {'itemId': row.item_id, 'rarity': row.rarity, 'chance': chance}
            for row, chance in zip(template.pool, chances)
        ]

    @staticmethod
    def _owned_state(template: MysteryBoxTemplate, user_id: int) -> OwnedMysteryBox:
        owned = (
            OwnedMysteryBox.query
            .filter_by(template_id=template.template_id, user_id=user_id)
            .with_for_update()
            .first()
        )
        if owned is None:
            owned = OwnedMysteryBox(
                template_id=template.template_id,
                template=template,
                user_id=user_id,
                opens_count=0,
                recent_opens=[],
            )
            db.session.add(owned)
        return owned

    @staticmethod
    def open_box(
        student: User,
        template_id: int,
        classroom_id: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> Dict[str, Any]:
        """
        Buy and open one box.

        Debits the price, rolls the pool (pity first), clones the won item
        into the student's inventory and records the open.
        """
        template = MysteryBoxService.get_template(template_id)
        if classroom_id is not None and classroom_id != template.classroom_id:
            raise NotFoundError('Mystery box not found in this classroom', resource='mystery_box')
        classroom_id = template.classroom_id
        if not template.active:
            raise ConflictError('This mystery box is not available')

        classroom = ClassroomService.get_classroom(classroom_id)
        if ClassroomService.actor_role(classroom, student) != ClassroomService.ROLE_STUDENT:
            raise PolicyError('Only students can open mystery boxes')
        ClassroomService.assert_not_banned(classroom_id, student.user_id)
        assert_not_frozen(student.user_id, classroom_id)

        owned = MysteryBoxService._owned_state(template, student.user_id)
        if owned.uses_remaining == 0:
            raise UsesExhaustedError()

        balance = LedgerService.get_balance(student.user_id, classroom_id, lock=True)
        price = template.price or 0
        if balance.balance < price:
            raise InsufficientFundsError(
                f"You need {price} bits but only have {balance.balance}",
                balance=balance.balance,
                required=price,
            )

        pool_rows = {row.item_id: row for row in template.pool}
        result = roll(
            [PoolEntry(r.item_id, r.rarity, r.base_drop_chance) for r in template.pool],
            student_luck=balance.luck,
            luck_multiplier=template.luck_multiplier,
            recent_opens=owned.recent_opens or [],
            pity_enabled=template.pity_enabled,
            pity_threshold=template.pity_threshold,
            pity_minimum_rarity=template.pity_minimum_rarity,
            weights=MysteryBoxService.rarity_weights(),
            rng=rng,
        )
        won = pool_rows[result.entry.item_id]

        owned_item = OwnedItem.clone_from(won.item, student.user_id, classroom_id)
        db.session.add(owned_item)

        pity_tag = ' [PITY]' if result.pity_triggered else ''
        LedgerService.post(
            balance,
            -price,
            f"Opened {template.name} - won {won.item.name} ({won.rarity}){pity_tag}",
            kind=Transaction.KIND_MYSTERY_BOX,
            assigned_by_id=student.user_id,
        )

        owned.opens_count = (owned.opens_count or 0) + 1
        owned.recent_opens = result.recent_opens
        db.session.flush()

        db.session.add(RewardLog(
            template_id=template.template_id,
            user_id=student.user_id,
            classroom_id=classroom_id,
            owned_item_id=owned_item.owned_item_id,
            rarity=won.rarity,
            pity_triggered=result.pity_triggered,
            luck_bonus=result.luck_bonus,
        ))
        LedgerService.commit()

        current_app.logger.info(
            f"[MysteryBox] {student.user_id} opened template {template.template_id}: "
            f"{won.item.name} ({won.rarity}){pity_tag}"
        )
        LedgerService.publish([balance])
        mystery_box_opened.send(
            None,
            classroom_id=classroom_id,
            student_id=student.user_id,
            template_name=template.name,
            item_name=won.item.name,
            rarity=won.rarity,
            is_pity=result.pity_triggered,
        )

        awarded = owned_item.to_dict()
        awarded['rarity'] = won.rarity
        return {
            'awardedItem': awarded,
            'isPityTriggered': result.pity_triggered,
            'luckBonus': result.luck_bonus,
            'usesRemaining': owned.uses_remaining,
            'newBalance': balance.balance,
        }
