"""
FastAPI dependencies (DB session)
"""
from subtrack.infrastructure.db.session import get_db as _get_db


# Re-export get_db so routers and tests share one dependency key
get_db = _get_db
