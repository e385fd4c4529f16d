"""Configuration management for the resident meal ordering service."""
import os
from decimal import Decimal
from typing import Final
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file if it exists
env_path = Path(__file__).parent.parent.parent / '.env'
if env_path.exists():
    load_dotenv(env_path)

# Application Settings
APP_HOST: Final[str] = os.getenv('APP_HOST', '0.0.0.0')
APP_PORT: Final[int] = int(os.getenv('APP_PORT', '8000'))
DEBUG: Final[bool] = os.getenv('DEBUG', 'False').lower() == 'true'
LOG_LEVEL: Final[str] = os.getenv('LOG_LEVEL', 'INFO').upper()

# Pricing (NY sales tax)
TAX_RATE: Final[Decimal] = Decimal(os.getenv('TAX_RATE', '0.08875'))

# Weekly ordering cutoff: the day before the week starts (Sunday), at CUTOFF_HOUR:CUTOFF_MINUTE
ORDER_TIMEZONE: Final[str] = os.getenv('ORDER_TIMEZONE', 'America/New_York')
CUTOFF_HOUR: Final[int] = int(os.getenv('CUTOFF_HOUR', '12'))
CUTOFF_MINUTE: Final[int] = int(os.getenv('CUTOFF_MINUTE', '0'))

# Payment processor
STRIPE_SECRET_KEY: Final[str] = os.getenv('STRIPE_SECRET_KEY', '')
STRIPE_API_BASE: Final[str] = os.getenv('STRIPE_API_BASE', 'https://api.stripe.com')
PAYMENT_CURRENCY: Final[str] = os.getenv('PAYMENT_CURRENCY', 'usd')
PAYMENT_TIMEOUT_SECONDS: Final[float] = float(os.getenv('PAYMENT_TIMEOUT_SECONDS', '20'))
STATEMENT_DESCRIPTOR: Final[str] = os.getenv('STATEMENT_DESCRIPTOR', 'MKD MEALS')

# File Paths
BASE_DIR: Final[Path] = Path(__file__).parent.parent
DATA_DIR: Final[Path] = Path(os.getenv('DATA_DIR', str(BASE_DIR / 'data')))
