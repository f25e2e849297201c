from marshmallow import EXCLUDE, Schema, fields, validate


class BalanceUpdateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    student_id = fields.Int(required=True, strict=True, data_key='studentId')
    amount = fields.Int(required=True, strict=True)


class _MultiplierFlagsSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    description = fields.Str(load_default='')
    apply_group_multipliers = fields.Bool(load_default=True, data_key='applyGroupMultipliers')
    apply_personal_multipliers = fields.Bool(load_default=True, data_key='applyPersonalMultipliers')


class BulkAdjustSchema(_MultiplierFlagsSchema):
    classroom_id = fields.Int(required=True, data_key='classroomId')
    updates = fields.List(
        fields.Nested(BalanceUpdateSchema), required=True, validate=validate.Length(min=1)
    )


class GroupAdjustSchema(_MultiplierFlagsSchema):
    amount = fields.Int(required=True, strict=True)


class TransferSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    classroom_id = fields.Int(required=True, data_key='classroomId')
    recipient_id = fields.Int(required=True, data_key='recipientId')
    amount = fields.Int(required=True, strict=True, validate=validate.Range(min=1))
    note = fields.Str(load_default='')
