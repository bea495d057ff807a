from app.db.base import Base  # noqa: F401

from .user import User  # noqa: F401
from .summary import Summary  # noqa: F401
from .audit_log import AuditLog  # noqa: F401
