from marshmallow import EXCLUDE, Schema, fields, validate

from .logics.reward_engine import PITY_RARITIES, RARITY_ORDER


class PoolEntrySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    item_id = fields.Int(required=True, data_key='itemId')
    rarity = fields.Str(required=True, validate=validate.OneOf(RARITY_ORDER))
    base_drop_chance = fields.Float(required=True, allow_nan=False, data_key='baseDropChance')


class TemplateSchema(Schema):
    """Template configuration; loaded with partial=True for updates."""

    class Meta:
        unknown = EXCLUDE

    classroom_id = fields.Int(required=True, data_key='classroomId')
    name = fields.Str(required=True, validate=validate.Length(min=1, max=120))
    description = fields.Str(validate=validate.Length(max=500))
    price = fields.Int(required=True, strict=True, validate=validate.Range(min=0))
    luck_multiplier = fields.Float(
        allow_nan=False, validate=validate.Range(min=0), data_key='luckMultiplier'
    )
    pity_enabled = fields.Bool(data_key='pityEnabled')
    pity_threshold = fields.Int(strict=True, validate=validate.Range(min=1), data_key='pityThreshold')
    pity_minimum_rarity = fields.Str(validate=validate.OneOf(PITY_RARITIES), data_key='pityMinimumRarity')
    max_opens_per_student = fields.Int(
        strict=True, allow_none=True, validate=validate.Range(min=1), data_key='maxOpensPerStudent'
    )
    active = fields.Bool()
    pool = fields.List(fields.Nested(PoolEntrySchema), required=True)


class OpenBoxSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    classroom_id = fields.Int(load_default=None, allow_none=True, data_key='classroomId')
