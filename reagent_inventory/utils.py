# reagent_inventory/utils.py

import io
from datetime import datetime, timedelta

import pandas as pd
import pytz
from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.orm import joinedload

from reagent_inventory.extensions import db
from reagent_inventory.models import Reagent, StockTransaction, User

REPORT_COLUMNS = [
    'Date', 'Time', 'Reagent', 'Category', 'Machine', 'Type',
    'Quantity', 'Previous', 'New', 'User', 'Reason'
]


def format_timestamp(timestamp):
    """Convert a naive UTC timestamp to the configured timezone.

    Args:
        timestamp: UTC datetime object

    Returns:
        datetime: Localized datetime
    """
    if timestamp is None:
        return None
    local_tz = pytz.timezone(current_app.config.get('TIMEZONE', 'UTC'))
    return pytz.utc.localize(timestamp).astimezone(local_tz)


def parse_date(value):
    """Parse a YYYY-MM-DD query string value; None when blank or invalid."""
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d')
    except ValueError:
        return None


def filter_transactions(filters, user_id=None):
    """Build the transaction report query.

    Args:
        filters: Mapping with optional 'type', 'search', 'start_date'
            and 'end_date' (YYYY-MM-DD, end date inclusive)
        user_id: Restrict to one user's transactions

    Returns:
        Query: Transactions newest first
    """
    query = StockTransaction.query\
        .join(Reagent, StockTransaction.reagent_id == Reagent.id)\
        .options(
            joinedload(StockTransaction.reagent).joinedload(Reagent.category),
            joinedload(StockTransaction.reagent).joinedload(Reagent.machine),
            joinedload(StockTransaction.user)
        )

    if user_id is not None:
        query = query.filter(StockTransaction.user_id == user_id)

    transaction_type = filters.get('type')
    if transaction_type in StockTransaction.TYPES:
        query = query.filter(StockTransaction.transaction_type == transaction_type)

    search = (filters.get('search') or '').strip()
    if search:
        query = query.filter(Reagent.name.ilike(f"%{search}%"))

    start = parse_date(filters.get('start_date'))
    if start:
        query = query.filter(StockTransaction.created_at >= start)

    end = parse_date(filters.get('end_date'))
    if end:
        query = query.filter(StockTransaction.created_at < end + timedelta(days=1))

    return query.order_by(
        StockTransaction.created_at.desc(),
        StockTransaction.id.desc()
    )


def transaction_rows(transactions):
    """Flatten transactions into report rows keyed by REPORT_COLUMNS."""
    rows = []
    for t in transactions:
        local = format_timestamp(t.created_at)
        reagent = t.reagent
        rows.append({
            'Date': local.strftime('%Y-%m-%d'),
            'Time': local.strftime('%H:%M:%S'),
            'Reagent': reagent.name,
            'Category': reagent.category.name if reagent.category else '',
            'Machine': reagent.machine.name if reagent.machine else '',
            'Type': t.transaction_type,
            'Quantity': t.quantity,
            'Previous': t.previous_stock,
            'New': t.new_stock,
            'User': t.user.full_name if t.user else '',
            'Reason': t.reason or ''
        })
    return rows


def generate_csv(data):
    """Generate CSV file as a stream.

    Args:
        data: List of dictionaries keyed by REPORT_COLUMNS

    Returns:
        BytesIO: CSV file stream
    """
    df = pd.DataFrame(data, columns=REPORT_COLUMNS)
    output = io.BytesIO()
    output.write(df.to_csv(index=False).encode('utf-8'))
    output.seek(0)
    return output


def generate_excel(data):
    """Generate Excel file as a stream.

    Args:
        data: List of dictionaries keyed by REPORT_COLUMNS

    Returns:
        BytesIO: Excel file stream
    """
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='xlsxwriter') as writer:
        df = pd.DataFrame(data, columns=REPORT_COLUMNS)
        df.to_excel(writer, sheet_name='Transactions', index=False)
        workbook = writer.book
        worksheet = writer.sheets['Transactions']

        header_format = workbook.add_format({
            'bold': True,
            'bg_color': '#4F81BD',
            'font_color': 'white',
            'border': 1
        })

        for col_num, value in enumerate(df.columns.values):
            worksheet.write(0, col_num, value, header_format)
            longest = df[value].astype(str).apply(len).max() if len(df) else 0
            worksheet.set_column(col_num, col_num, max(longest, len(value)) + 2)

    output.seek(0)
    return output


def recompute_stock(reagent_id):
    """Stock implied by the ledger: the sum of signed transaction quantities.

    Reagents are created with zero stock, so replaying every withdrawal
    and addition gives the expected current_stock.
    """
    signed = case(
        (StockTransaction.transaction_type == 'withdraw', -StockTransaction.quantity),
        else_=StockTransaction.quantity
    )
    total = db.session.query(func.coalesce(func.sum(signed), 0))\
        .filter(StockTransaction.reagent_id == reagent_id)\
        .scalar()
    return int(total)


def dashboard_stats():
    """Counters for the admin dashboard."""
    today = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    return {
        'total_reagents': Reagent.active().count(),
        'low_stock_count': Reagent.low_stock().count(),
        'total_users': User.query.filter_by(is_active=True).count(),
        'today_transactions': db.session.query(StockTransaction.id)
        .filter(StockTransaction.created_at >= today).count(),
    }
