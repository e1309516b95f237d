from .directory import Caller, IdentityDirectory
from .auth import AuthManager, get_auth_manager

__all__ = ["Caller", "IdentityDirectory", "AuthManager", "get_auth_manager"]
