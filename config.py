"""
Exhibition Leads configuration
Loads settings from environment variables with sensible defaults.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

# Load .env file
env_path = Path(__file__).parent / '.env'
load_dotenv(env_path)


class Config:
    """Application configuration."""

    # Database
    DATABASE_URL = os.getenv('DATABASE_URL') or os.getenv('MONGODB_URI') or 'mongodb://localhost:27017'
    DATABASE_NAME = os.getenv('DATABASE_NAME', 'customer_details_db')

    PORT = int(os.getenv('PORT', '5000'))

    # Media host (Cloudinary)
    CLOUD_NAME = os.getenv('CLOUD_NAME', '')
    API_KEY = os.getenv('API_KEY', '')
    API_SECRET = os.getenv('API_SECRET', '')
    MEDIA_FOLDER = os.getenv('MEDIA_FOLDER', 'leads')
    MEDIA_UPLOAD_TIMEOUT = float(os.getenv('MEDIA_UPLOAD_TIMEOUT', '30'))
    MAX_UPLOAD_BYTES = int(os.getenv('MAX_UPLOAD_BYTES', str(2 * 1024 * 1024)))

    # Record defaults
    DEFAULT_CITY = os.getenv('DEFAULT_CITY', 'Mumbai')
    DEFAULT_EXHIBITION = os.getenv('DEFAULT_EXHIBITION', 'Tech Expo Mumbai')

    if not (CLOUD_NAME and API_KEY and API_SECRET):
        _logger.warning("Cloudinary credentials are not set, image uploads will fail.")


# Singleton instance
config = Config()
