from typing import Optional, Union

from app.auth.models import User
from app.core.enums import RoleName


def has_role(user: Optional[User], role_name: Union[RoleName, str]) -> bool:
    """Role check used by lifecycle validations. Inactive users hold no role."""
    if user is None or user.status != "ACTIVE":
        return False
    expected = role_name.value if isinstance(role_name, RoleName) else str(role_name)
    return (user.role or "").lower() == expected.lower()
