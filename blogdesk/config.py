# blogdesk/config.py
import os
import logging
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent.parent

class Config:
    """Configuration settings for the blog backend"""

    # Database settings
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")

    # Cache settings
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    CATEGORY_CACHE_TTL: int = int(os.getenv("CATEGORY_CACHE_TTL", "3600"))
    ANALYTICS_CACHE_TTL: int = int(os.getenv("ANALYTICS_CACHE_TTL", "300"))

    # Auth settings
    ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "")

    # Other settings
    TIMEZONE: str = os.getenv("TIMEZONE", "UTC")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Paths
    LOG_DIR = BASE_DIR / "logs"

    @classmethod
    def validate(cls):
        """Check settings required to reach the database"""
        if not cls.DATABASE_URL:
            raise ValueError("No DATABASE_URL set in environment")

def setup_logging():
    """Configure logging settings"""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    Config.LOG_DIR.mkdir(exist_ok=True)
    log_file = Config.LOG_DIR / "blogdesk.log"

    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
        format=log_format,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )
