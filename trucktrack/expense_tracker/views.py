# trucktrack/expense_tracker/views.py
import calendar
from datetime import date, datetime, timedelta
from io import BytesIO
from flask import send_file
from openpyxl import Workbook
from trucktrack.exceptions import ValidationError
from trucktrack.logging_config import setup_logging


logger = setup_logging()

REPORT_TYPES = ('monthly', 'weekly')

def report_period(report_type, value):
    """Return the first and last day covered by a ``YYYY-MM`` month or ``YYYY-Www`` week."""
    if report_type not in REPORT_TYPES:
        raise ValidationError(f"Report type must be one of: {', '.join(REPORT_TYPES)}.")
    if not value or not isinstance(value, str):
        raise ValidationError(f'Please provide the {"month" if report_type == "monthly" else "week"}.')

    try:
        if report_type == 'monthly':
            start = datetime.strptime(value, '%Y-%m').date()
            last_day = calendar.monthrange(start.year, start.month)[1]
            return start, start.replace(day=last_day)

        year, week = value.split('-W')
        start = date.fromisocalendar(int(year), int(week), 1)
        return start, start + timedelta(days=6)
    except (TypeError, ValueError):
        raise ValidationError('Invalid month format. Use YYYY-MM.' if report_type == 'monthly'
                              else 'Invalid week format. Use YYYY-Www.')

def build_report(trips, expenses, start, end):
    days = [start + timedelta(days=offset) for offset in range((end - start).days + 1)]
    per_day = {day: {'trips': 0, 'revenue': 0.0, 'expenses': 0.0} for day in days}

    for trip in trips:
        if trip.date in per_day:
            per_day[trip.date]['trips'] += 1
            per_day[trip.date]['revenue'] += trip.price or 0.0

    for expense in expenses:
        if expense.date in per_day:
            per_day[expense.date]['expenses'] += expense.amount

    details = []
    for day in days:
        entry = per_day[day]
        details.append({
            'date': day.isoformat(),
            'trips': entry['trips'],
            'revenue': round(entry['revenue'], 2),
            'expenses': round(entry['expenses'], 2),
            'profit': round(entry['revenue'] - entry['expenses'], 2),
        })

    total_revenue = round(sum(entry['revenue'] for entry in details), 2)
    total_expenses = round(sum(entry['expenses'] for entry in details), 2)

    return {
        'startDate': start.isoformat(),
        'endDate': end.isoformat(),
        'totalTrips': sum(entry['trips'] for entry in details),
        'totalRevenue': total_revenue,
        'totalExpenses': total_expenses,
        'netProfit': round(total_revenue - total_expenses, 2),
        'dates': [entry['date'] for entry in details],
        'revenue': [entry['revenue'] for entry in details],
        'expenses': [entry['expenses'] for entry in details],
        'details': details,
    }

def export_to_xlsx(report, trips, expenses, filename):
    wb = Workbook()
    ws = wb.active
    ws.title = "Summary"

    # Headers
    ws.append(["Date", "Trips", "Revenue", "Expenses", "Profit"])

    for detail in report['details']:
        ws.append([detail['date'], detail['trips'], detail['revenue'], detail['expenses'], detail['profit']])

    # Add totals
    ws.append([])
    ws.append(["Total Trips", report['totalTrips']])
    ws.append(["Total Revenue", report['totalRevenue']])
    ws.append(["Total Expenses", report['totalExpenses']])
    ws.append(["Net Profit", report['netProfit']])

    trip_sheet = wb.create_sheet("Trips")
    trip_sheet.append(["Date", "Origin", "Destination", "Driver", "Vehicle", "Status", "Distance (km)", "Price"])
    for trip in trips:
        trip_sheet.append([
            trip.date.strftime('%Y-%m-%d'), trip.origin, trip.destination,
            trip.driver.name if trip.driver else '', trip.vehicle.plate_number if trip.vehicle else '',
            trip.status, trip.distance, trip.price,
        ])

    expense_sheet = wb.create_sheet("Expenses")
    expense_sheet.append(["Date", "Type", "Amount", "Description"])
    for exp in expenses:
        expense_sheet.append([exp.date.strftime('%Y-%m-%d'), exp.type, exp.amount, exp.description or ''])

    # Save to a BytesIO object
    output = BytesIO()
    wb.save(output)
    output.seek(0)

    logger.info(f"Report exported to {filename}.")
    return send_file(output, download_name=filename, as_attachment=True,
                     mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
