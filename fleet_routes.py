from flask import Blueprint, jsonify
from models import UserRole, ResourceKind
from auth import role_required, get_current_user
from forms import ResourceStatusForm, FuelLogForm, ServiceLogForm, UsageLogForm
from services import ResourceService, StatusRefreshService, LogbookService, ValidationError
from services.resource_service import parse_kind
import logging

logger = logging.getLogger(__name__)

fleet_bp = Blueprint('fleet', __name__)


def vehicle_to_dict(vehicle):
    return {
        'id': vehicle.id,
        'license_plate': vehicle.license_plate,
        'type': vehicle.type,
        'fuel_consumption': vehicle.fuel_consumption,
        'status': vehicle.status.value
    }


def driver_to_dict(driver):
    return {
        'id': driver.id,
        'name': driver.name,
        'license_number': driver.license_number,
        'status': driver.status.value
    }


def _resource_to_dict(kind, resource):
    return vehicle_to_dict(resource) if kind == ResourceKind.VEHICLE else driver_to_dict(resource)


@fleet_bp.route('/<kind>/available', methods=['GET'])
@role_required()
def available_resources(kind):
    """Vehicles or drivers currently available"""
    kind = parse_kind(kind)
    resources = ResourceService().get_available(kind)
    return jsonify({
        'success': True,
        f'{kind.value}s': [_resource_to_dict(kind, r) for r in resources]
    })


@fleet_bp.route('/<kind>/<int:resource_id>/status', methods=['PUT'])
@role_required(UserRole.ADMIN)
def update_resource_status(kind, resource_id):
    kind = parse_kind(kind)
    form = ResourceStatusForm(kind=kind.value)
    if not form.validate():
        raise ValidationError('Invalid status', form.errors)

    resource = ResourceService().set_status(kind, resource_id, form.status.data,
                                            acting_user=get_current_user())
    return jsonify({
        'success': True,
        'message': f'{kind.value.capitalize()} status updated successfully',
        kind.value: _resource_to_dict(kind, resource)
    })


@fleet_bp.route('/refresh-status', methods=['POST'])
@role_required(UserRole.ADMIN)
def refresh_status():
    counts = StatusRefreshService().refresh()
    return jsonify({'success': True, 'counts': counts})


def fuel_log_to_dict(log):
    return {
        'id': log.id,
        'vehicle_id': log.vehicle_id,
        'amount': float(log.amount),
        'log_date': log.log_date.isoformat(),
        'notes': log.notes
    }


def service_log_to_dict(log):
    return {
        'id': log.id,
        'vehicle_id': log.vehicle_id,
        'service_date': log.service_date.isoformat(),
        'service_type': log.service_type,
        'description': log.description,
        'cost': float(log.cost or 0)
    }


def usage_log_to_dict(log):
    return {
        'id': log.id,
        'booking_id': log.booking_id,
        'start_km': log.start_km,
        'end_km': log.end_km,
        'distance': log.distance,
        'fuel_used': float(log.fuel_used) if log.fuel_used is not None else None,
        'notes': log.notes
    }


@fleet_bp.route('/fuel-logs', methods=['POST'])
@role_required(UserRole.ADMIN)
def create_fuel_log():
    form = FuelLogForm()
    if not form.validate():
        raise ValidationError('Invalid fuel log', form.errors)

    log = LogbookService().add_fuel_log(
        vehicle_id=form.vehicle_id.data,
        amount=form.amount.data,
        log_date=form.log_date.data,
        notes=form.notes.data or None,
        acting_user=get_current_user()
    )
    return jsonify({'success': True, 'fuel_log': fuel_log_to_dict(log)}), 201


@fleet_bp.route('/vehicles/<int:vehicle_id>/fuel-logs', methods=['GET'])
@role_required()
def list_fuel_logs(vehicle_id):
    logs = LogbookService().list_fuel_logs(vehicle_id)
    return jsonify({'success': True, 'fuel_logs': [fuel_log_to_dict(log) for log in logs]})


@fleet_bp.route('/service-logs', methods=['POST'])
@role_required(UserRole.ADMIN)
def create_service_log():
    form = ServiceLogForm()
    if not form.validate():
        raise ValidationError('Invalid service log', form.errors)

    log = LogbookService().add_service_log(
        vehicle_id=form.vehicle_id.data,
        service_date=form.service_date.data,
        service_type=form.service_type.data,
        cost=form.cost.data,
        description=form.description.data or None,
        acting_user=get_current_user()
    )
    return jsonify({'success': True, 'service_log': service_log_to_dict(log)}), 201


@fleet_bp.route('/vehicles/<int:vehicle_id>/service-logs', methods=['GET'])
@role_required()
def list_service_logs(vehicle_id):
    logs = LogbookService().list_service_logs(vehicle_id)
    return jsonify({'success': True, 'service_logs': [service_log_to_dict(log) for log in logs]})


@fleet_bp.route('/usage-logs', methods=['POST'])
@role_required(UserRole.ADMIN)
def create_usage_log():
    form = UsageLogForm()
    if not form.validate():
        raise ValidationError('Invalid usage log', form.errors)

    log = LogbookService().record_usage(
        booking_id=form.booking_id.data,
        start_km=form.start_km.data,
        end_km=form.end_km.data,
        fuel_used=form.fuel_used.data,
        notes=form.notes.data or None,
        acting_user=get_current_user()
    )
    return jsonify({'success': True, 'usage_log': usage_log_to_dict(log)}), 201


@fleet_bp.route('/vehicles/<int:vehicle_id>/usage-logs', methods=['GET'])
@role_required()
def list_usage_logs(vehicle_id):
    logs = LogbookService().list_usage_logs(vehicle_id)
    return jsonify({'success': True, 'usage_logs': [usage_log_to_dict(log) for log in logs]})
