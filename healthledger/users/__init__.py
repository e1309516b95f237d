from .service import UserRegistry

__all__ = ["UserRegistry"]
