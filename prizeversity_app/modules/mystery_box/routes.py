from flask import jsonify
from flask_login import current_user, login_required

from ...core.error_handlers import PolicyError, success_response
from ...core.validation import load_payload
from ..classroom.services.classroom_service import ClassroomService
from ..wallet.services.ledger_service import LedgerService
from . import mystery_box_api_bp
from .schemas import OpenBoxSchema, TemplateSchema
from .services.mystery_box_service import MysteryBoxService


@mystery_box_api_bp.route('', methods=['POST'])
@login_required
def create_template():
    data = load_payload(TemplateSchema())
    template = MysteryBoxService.create_template(current_user, data)
    return jsonify(success_response({'mysteryBox': template.to_dict()}, 'Mystery box created')), 201


@mystery_box_api_bp.route('/<int:template_id>', methods=['PUT'])
@login_required
def update_template(template_id):
    data = load_payload(TemplateSchema(partial=True))
    data.pop('classroom_id', None)
    template = MysteryBoxService.update_template(current_user, template_id, data)
    return jsonify(success_response({'mysteryBox': template.to_dict()}, 'Mystery box updated'))


@mystery_box_api_bp.route('/<int:template_id>', methods=['GET'])
@login_required
def get_template(template_id):
    """Template with the odds as they apply to the current user."""
    template = MysteryBoxService.get_template(template_id)
    classroom = ClassroomService.get_classroom(template.classroom_id)
    if ClassroomService.actor_role(classroom, current_user) is None:
        raise PolicyError('You are not a member of this classroom')
    luck = LedgerService.luck_of(current_user.user_id, template.classroom_id)
    data = template.to_dict()
    data['odds'] = MysteryBoxService.odds_for(template, luck)
    return jsonify(success_response({'mysteryBox': data}))


@mystery_box_api_bp.route('/<int:template_id>/open', methods=['POST'])
@login_required
def open_box(template_id):
    data = load_payload(OpenBoxSchema())
    result = MysteryBoxService.open_box(current_user, template_id, classroom_id=data['classroom_id'])
    return jsonify(success_response(result))
