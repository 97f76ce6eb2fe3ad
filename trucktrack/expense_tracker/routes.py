# trucktrack/expense_tracker/routes.py
from datetime import datetime
from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from trucktrack.init_db import db
from trucktrack.decorators import capability_required
from trucktrack.exceptions import ValidationError
from trucktrack.expense_tracker.models import Expense
from trucktrack.expense_tracker.views import build_report, export_to_xlsx, report_period
from trucktrack.fleet.models import Customer, Trip, Vehicle
from trucktrack.fleet.views import drivers_query, trips_query
from trucktrack.logging_config import setup_logging
from trucktrack.store import get_or_404
from trucktrack.validation import finite_number, json_body


expense_tracker_bp = Blueprint('expense_tracker', __name__)

logger = setup_logging()


def _parse_expense(data, partial=False):
    fields = {}
    if 'type' in data or not partial:
        fields['type'] = str(data.get('type') or '').strip()
    if 'description' in data:
        fields['description'] = str(data.get('description') or '').strip() or None
    if 'amount' in data or not partial:
        try:
            amount = finite_number(data.get('amount'), 'amount')
        except ValidationError:
            return None, 'Amount must be a number.'
        if amount < 0:
            return None, 'Amount cannot be negative.'
        fields['amount'] = round(amount, 2)
    if 'date' in data or not partial:
        try:
            fields['date'] = datetime.strptime(str(data.get('date')), '%Y-%m-%d').date()
        except ValueError:
            return None, 'Invalid date. Use YYYY-MM-DD.'
    if 'type' in fields and not fields['type']:
        return None, 'Type, amount, and date are required.'
    return fields, None

@expense_tracker_bp.route('/expenses', methods=['GET'])
@login_required
@capability_required('expenses')
def get_expenses():
    try:
        expenses = Expense.query.order_by(Expense.date.desc(), Expense.id.desc()).all()
        expense_list = [expense.to_dict() for expense in expenses]
    except SQLAlchemyError as e:
        logger.error(f"Error retrieving expenses: {e}")
        return jsonify({'message': 'Error retrieving expenses.'}), 500

    return jsonify(expense_list), 200

@expense_tracker_bp.route('/expenses', methods=['POST'])
@login_required
@capability_required('expenses', write=True)
def add_expense():
    data = json_body(allow_empty=True)

    if not data.get('type') or data.get('amount') in (None, '') or not data.get('date'):
        logger.warning("Expense submitted with missing fields.")
        return jsonify({'message': 'Type, amount, and date are required.'}), 400

    fields, error = _parse_expense(data)
    if error:
        return jsonify({'message': error}), 400

    session = db.session()
    try:
        new_expense = Expense(**fields)
        session.add(new_expense)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error adding expense: {e}")
        return jsonify({'message': 'Error adding expense.'}), 500

    logger.info(f"Expense {new_expense.id} added by {current_user.username}.")
    return jsonify(new_expense.to_dict()), 201

@expense_tracker_bp.route('/expenses/<int:expense_id>', methods=['PUT'])
@login_required
@capability_required('expenses', write=True)
def update_expense(expense_id):
    data = json_body(allow_empty=True)
    expense = get_or_404(Expense, expense_id, 'Expense')

    fields, error = _parse_expense(data, partial=True)
    if error:
        return jsonify({'message': error}), 400

    session = db.session()
    try:
        for name, value in fields.items():
            setattr(expense, name, value)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error updating expense: {e}")
        return jsonify({'message': 'Error updating expense.'}), 500

    return jsonify({'message': 'Expense updated successfully!', 'expense': expense.to_dict()}), 200

@expense_tracker_bp.route('/expenses/<int:expense_id>', methods=['DELETE'])
@login_required
@capability_required('expenses', write=True)
def delete_expense(expense_id):
    expense = get_or_404(Expense, expense_id, 'Expense')

    session = db.session()
    try:
        session.delete(expense)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error deleting expense: {e}")
        return jsonify({'message': 'Error deleting expense.'}), 500

    logger.info(f"Expense {expense_id} deleted by {current_user.username}.")
    return '', 204

@expense_tracker_bp.route('/dashboard/stats', methods=['GET'])
@login_required
@capability_required('dashboard')
def dashboard_stats():
    try:
        stats = {
            'totalTrips': trips_query(current_user).count(),
            'activeDrivers': drivers_query(current_user).filter_by(status='Active').count(),
            'totalVehicles': Vehicle.query.count(),
            'totalCustomers': Customer.query.count(),
            'totalExpenses': round(db.session.query(func.coalesce(func.sum(Expense.amount), 0)).scalar(), 2),
        }
    except SQLAlchemyError as e:
        logger.error(f"Error getting dashboard stats: {e}")
        return jsonify({'message': 'Failed to get dashboard stats.'}), 500

    return jsonify(stats), 200

def _report_data(report_type, period):
    start, end = report_period(report_type, period)
    trips = trips_query(current_user).filter(Trip.date >= start, Trip.date <= end).order_by(Trip.date).all()
    expenses = Expense.query.filter(Expense.date >= start, Expense.date <= end).order_by(Expense.date).all()
    return build_report(trips, expenses, start, end), trips, expenses

@expense_tracker_bp.route('/reports/<report_type>', methods=['POST'])
@login_required
@capability_required('reports')
def generate_report(report_type):
    data = json_body(allow_empty=True)
    period = data.get('month') if report_type == 'monthly' else data.get('week')

    report, _, _ = _report_data(report_type, period)
    report['type'] = report_type
    logger.info(f"{report_type.capitalize()} report for {period} generated by {current_user.username}.")
    return jsonify(report), 200

@expense_tracker_bp.route('/reports/export', methods=['GET'])
@login_required
@capability_required('reports')
def export_report():
    report_type = request.args.get('type', 'monthly')
    period = request.args.get('period')

    report, trips, expenses = _report_data(report_type, period)
    if not trips and not expenses:
        return jsonify({'message': f'No data available for {period}'}), 404

    filename = f"trucktrack_{report_type}_{period}.xlsx"
    return export_to_xlsx(report, trips, expenses, filename)
