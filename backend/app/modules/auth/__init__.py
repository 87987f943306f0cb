# Authentication module

from app.modules.auth.dependencies import (
    get_current_user,
    get_current_admin,
    get_admin_actor,
)

__all__ = [
    "get_current_user",
    "get_current_admin",
    "get_admin_actor",
]
