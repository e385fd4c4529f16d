from pathlib import Path

from residentmeals.utilities.config import DATA_DIR as _CONFIGURED_DATA_DIR

# Centralized paths for data files (single source of truth)
DATA_DIR = Path(_CONFIGURED_DATA_DIR).resolve()
MENU_FILE = DATA_DIR / 'menu_items.json'
RESIDENTS_FILE = DATA_DIR / 'residents.json'
FACILITIES_FILE = DATA_DIR / 'facilities.json'
ORDERS_FILE = DATA_DIR / 'resident_orders.json'

__all__ = ['DATA_DIR', 'MENU_FILE', 'RESIDENTS_FILE', 'FACILITIES_FILE', 'ORDERS_FILE']
