from flask import Blueprint, request, jsonify, current_app
from models import UserRole
from auth import role_required, get_current_user
from forms import ApprovalDecisionForm
from services import ApprovalService, BookingService, ValidationError
import logging

logger = logging.getLogger(__name__)

approval_bp = Blueprint('approvals', __name__)


@approval_bp.route('/pending', methods=['GET'])
@role_required(UserRole.APPROVER_LEVEL1, UserRole.APPROVER_LEVEL2)
def pending_approvals():
    """Inbox of approvals the current user can act on"""
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', current_app.config['APPROVALS_PER_PAGE'], type=int), 100)

    service = ApprovalService()
    approvals = service.pending_for(
        get_current_user(),
        search=request.args.get('search', '').strip() or None,
        page=page,
        per_page=per_page
    )

    return jsonify({
        'success': True,
        'approvals': [service.to_dict(a) for a in approvals.items],
        'pagination': {
            'page': approvals.page,
            'pages': approvals.pages,
            'per_page': approvals.per_page,
            'total': approvals.total,
            'has_next': approvals.has_next,
            'has_prev': approvals.has_prev
        }
    })


def _decide(approval_id, decision):
    form = ApprovalDecisionForm()
    if not form.validate():
        raise ValidationError('Invalid approval notes', form.errors)

    service = ApprovalService()
    action = service.approve if decision == 'approve' else service.reject
    approval = action(approval_id, get_current_user(), notes=form.notes.data or None)

    return jsonify({
        'success': True,
        'approval': service.to_dict(approval),
        'booking': BookingService().to_dict(approval.booking),
        'notifications': service.notification_service.drain()
    })


# Authorization is checked per approval level inside the service so that
# refused attempts are audited.
@approval_bp.route('/<int:approval_id>/approve', methods=['POST'])
@role_required()
def approve(approval_id):
    return _decide(approval_id, 'approve')


@approval_bp.route('/<int:approval_id>/reject', methods=['POST'])
@role_required()
def reject(approval_id):
    return _decide(approval_id, 'reject')
