"""
FastAPI dependencies (DB session, settings)
"""
from tacohut.config import get_settings as _get_settings
from tacohut.infrastructure.db.session import get_db as _get_db


# Re-exported so tests can override them in one place
get_db = _get_db
get_settings = _get_settings
