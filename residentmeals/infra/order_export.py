"""
Spreadsheet export of a resident order (CSV, opens directly in Excel).
"""
import csv
import io
import logging
from typing import List

logger = logging.getLogger(__name__)

MEAL_COLUMNS = ('Day', 'Meal Type', 'Items', 'Bagel Type', 'Price')


def order_header_rows(order) -> List[list]:
    return [
        ['Weekly Meal Order'],
        ['Resident:', order.resident_name],
        ['Room:', order.room_number or 'N/A'],
        ['Order Number:', order.order_number],
        ['Week:', f"{order.week_start_date.isoformat()} to {order.week_end_date.isoformat()}"],
        ['Subtotal:', f"${order.subtotal}"],
        ['Tax:', f"${order.tax}"],
        ['Total:', f"${order.total}"],
        ['Status:', order.status],
        ['Payment Status:', order.payment_status],
    ]


def meal_rows(order) -> List[list]:
    rows = []
    for meal in order.meals:
        rows.append([
            meal.day,
            meal.meal_type,
            ', '.join(i.name for i in meal.items),
            meal.bagel_type or '',
            f"${meal.item_total():.2f}",
        ])
    return rows


def export_order_csv(order) -> bytes:
    """Header block, a blank line, then one row per meal."""
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerows(order_header_rows(order))
    writer.writerow([])
    writer.writerow(MEAL_COLUMNS)
    writer.writerows(meal_rows(order))
    logger.info(f"Exported order {order.order_number} ({len(order.meals)} meals) to CSV")
    # BOM so Excel picks UTF-8 for resident names
    return buf.getvalue().encode('utf-8-sig')
