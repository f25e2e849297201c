from flask import jsonify
from flask_login import current_user, login_required
from marshmallow import EXCLUDE, Schema, fields

from ...core.error_handlers import success_response
from ...core.validation import load_payload
from . import groups_api_bp
from .services.membership_service import MembershipService


class GroupMultiplierSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    multiplier = fields.Float(required=True, allow_nan=False)


@groups_api_bp.route('/<int:group_id>', methods=['GET'])
@login_required
def get_group(group_id):
    group = MembershipService.get_group(group_id)
    return jsonify(success_response({'group': group.to_dict()}))


@groups_api_bp.route('/<int:group_id>/join', methods=['POST'])
@login_required
def join_group(group_id):
    group = MembershipService.request_join(group_id, current_user)
    return jsonify(success_response({'group': group.to_dict()}))


@groups_api_bp.route('/<int:group_id>/members/<int:user_id>/approve', methods=['POST'])
@login_required
def approve_member(group_id, user_id):
    group = MembershipService.approve_member(group_id, user_id, current_user)
    return jsonify(success_response({'group': group.to_dict()}))


@groups_api_bp.route('/<int:group_id>/members/<int:user_id>/reject', methods=['POST'])
@login_required
def reject_member(group_id, user_id):
    group = MembershipService.reject_member(group_id, user_id, current_user)
    return jsonify(success_response({'group': group.to_dict()}))


@groups_api_bp.route('/<int:group_id>/leave', methods=['POST'])
@login_required
def leave_group(group_id):
    group = MembershipService.leave_group(group_id, current_user)
    return jsonify(success_response({'group': group.to_dict()}))


@groups_api_bp.route('/<int:group_id>/multiplier', methods=['POST'])
@login_required
def set_multiplier(group_id):
    data = load_payload(GroupMultiplierSchema())
    group = MembershipService.set_group_multiplier(group_id, data['multiplier'], current_user)
    return jsonify(success_response({'group': group.to_dict()}))
