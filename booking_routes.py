from flask import Blueprint, request, jsonify, current_app
from models import UserRole
from auth import role_required, get_current_user
from forms import BookingForm
from services import BookingService, UnauthorizedError, ValidationError
import logging

logger = logging.getLogger(__name__)

booking_bp = Blueprint('bookings', __name__)

# Roles that may see every booking rather than only their own
_OVERSEER_ROLES = (UserRole.ADMIN, UserRole.APPROVER_LEVEL1, UserRole.APPROVER_LEVEL2)


@booking_bp.route('', methods=['POST'])
@role_required()
def create_booking():
    """Request a vehicle and driver for a date range"""
    form = BookingForm()
    if not form.validate():
        raise ValidationError('Booking request is invalid', form.errors)

    service = BookingService()
    booking = service.create_booking(
        requester=get_current_user(),
        vehicle_id=form.vehicle_id.data,
        driver_id=form.driver_id.data,
        start_date=form.start_date.data,
        end_date=form.end_date.data,
        purpose=form.purpose.data,
        approver_level1_id=form.approver_level1_id.data,
        approver_level2_id=form.approver_level2_id.data
    )

    return jsonify({
        'success': True,
        'booking': service.to_dict(booking),
        'notifications': service.notification_service.drain()
    }), 201


@booking_bp.route('', methods=['GET'])
@role_required()
def list_bookings():
    user = get_current_user()
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', current_app.config['BOOKINGS_PER_PAGE'], type=int), 100)

    requester_id = request.args.get('requester_id', type=int)
    if user.role not in _OVERSEER_ROLES:
        requester_id = user.id

    service = BookingService()
    bookings = service.list_bookings(
        search=request.args.get('search', '').strip() or None,
        status=request.args.get('status') or None,
        date_from=request.args.get('date_from') or None,
        date_to=request.args.get('date_to') or None,
        requester_id=requester_id,
        page=page,
        per_page=per_page
    )

    return jsonify({
        'success': True,
        'bookings': [service.to_dict(b) for b in bookings.items],
        'pagination': {
            'page': bookings.page,
            'pages': bookings.pages,
            'per_page': bookings.per_page,
            'total': bookings.total,
            'has_next': bookings.has_next,
            'has_prev': bookings.has_prev
        }
    })


@booking_bp.route('/<int:booking_id>', methods=['GET'])
@role_required()
def get_booking(booking_id):
    user = get_current_user()
    service = BookingService()
    booking = service.get_booking(booking_id)
    if user.role not in _OVERSEER_ROLES and booking.user_id != user.id:
        raise UnauthorizedError('You can only view your own bookings')

    return jsonify({'success': True, 'booking': service.to_dict(booking)})


@booking_bp.route('/<int:booking_id>/cancel', methods=['POST'])
@role_required()
def cancel_booking(booking_id):
    service = BookingService()
    booking = service.cancel_booking(booking_id, get_current_user())

    return jsonify({
        'success': True,
        'booking': service.to_dict(booking),
        'notifications': service.notification_service.drain()
    })
