# blogdesk/utils/formatters.py
from datetime import datetime
import pytz
from ..config import Config

def format_datetime(dt: datetime) -> str:
    """Render a timestamp in the configured timezone"""
    local_tz = pytz.timezone(Config.TIMEZONE)
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(local_tz).strftime("%Y-%m-%d %H:%M:%S")

def format_view_count(count: int) -> str:
    return f"{count:,}"
