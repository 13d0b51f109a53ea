from .accounts import Account
from .service import new_service

__all__ = ["Account", "new_service"]
