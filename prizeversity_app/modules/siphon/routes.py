from flask import jsonify
from flask_login import current_user, login_required
from marshmallow import EXCLUDE, Schema, fields, validate

from ...core.error_handlers import success_response
from ...core.validation import load_payload
from . import siphon_api_bp
from .services.siphon_service import SiphonService


class CreateSiphonSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    target_user_id = fields.Int(required=True, data_key='targetUserId')
    amount = fields.Int(required=True, strict=True, validate=validate.Range(min=1))
    reason = fields.Str(required=True, validate=validate.Length(min=1, max=2000))
    proof = fields.Str(load_default=None, allow_none=True)


class VoteSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    vote = fields.Str(required=True, validate=validate.OneOf(('yes', 'no')))


@siphon_api_bp.route('/groups/<int:group_id>', methods=['POST'])
@login_required
def create_siphon(group_id):
    data = load_payload(CreateSiphonSchema())
    siphon = SiphonService.create_siphon(
        group_id,
        current_user,
        data['target_user_id'],
        data['amount'],
        data['reason'],
        proof=data['proof'],
    )
    return jsonify(success_response(
        {'siphonId': siphon.siphon_id, 'expiresAt': siphon.to_dict()['expiresAt']},
        'Siphon request created',
    )), 201


@siphon_api_bp.route('/groups/<int:group_id>', methods=['GET'])
@login_required
def list_group_siphons(group_id):
    siphons = SiphonService.list_for_group(group_id, current_user)
    return jsonify(success_response({'siphons': [s.to_dict() for s in siphons]}))


@siphon_api_bp.route('/<int:siphon_id>/vote', methods=['POST'])
@login_required
def vote(siphon_id):
    data = load_payload(VoteSchema())
    siphon = SiphonService.vote(siphon_id, current_user, data['vote'])
    return jsonify(success_response({'status': siphon.status, 'siphon': siphon.to_dict()}))


@siphon_api_bp.route('/<int:siphon_id>/teacher-approve', methods=['POST'])
@login_required
def teacher_approve(siphon_id):
    siphon = SiphonService.teacher_approve(siphon_id, current_user)
    return jsonify(success_response({'status': siphon.status, 'siphon': siphon.to_dict()}))


@siphon_api_bp.route('/<int:siphon_id>/teacher-reject', methods=['POST'])
@login_required
def teacher_reject(siphon_id):
    siphon = SiphonService.teacher_reject(siphon_id, current_user)
    return jsonify(success_response({'status': siphon.status, 'siphon': siphon.to_dict()}))
