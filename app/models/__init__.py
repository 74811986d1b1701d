from app.core.database import Base
from app.models.activities import Activity
from app.models.companies import Company
from app.models.roles import Role
from app.models.users import User, UserInvitation

__all__ = [
    "Activity",
    "Base",
    "Company",
    "Role",
    "User",
    "UserInvitation",
]
