"""
Contentful Export - export organization users with their space roles and teams.
"""

__version__ = "0.1.0"

from .config import ExportConfig
from .exporter import ContentfulExporter, build_user_records
from .models import UserRecord, extract_role_names

__all__ = ["ContentfulExporter", "ExportConfig", "UserRecord", "build_user_records", "extract_role_names"]
