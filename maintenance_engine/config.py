"""
Runtime configuration for the maintenance engine.

All values come from the environment so the same build runs locally on SQLite
and in production on PostgreSQL.
"""
import os

# Use PostgreSQL in production (from DATABASE_URL env var), SQLite locally
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./maintenance.db")

# Fix for Render/Heroku: they use postgres:// but SQLAlchemy needs postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Pagination
DEFAULT_PAGE_LIMIT = int(os.getenv("DEFAULT_PAGE_LIMIT", "10"))

# Request numbers look like MR-ACX-20240115-001; fallback MR-GEN-123456
REQUEST_NUMBER_PREFIX = "MR"
REQUEST_NUMBER_FALLBACK_TAG = "GEN"

# Values used when an internal request is filed without client details
INTERNAL_CLIENT_DEFAULTS = {
    "client_name": "Internal Request",
    "client_email": "internal@company.com",
    "client_phone": "N/A",
    "client_company": "Internal",
}
