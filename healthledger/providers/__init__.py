from .service import ProviderRegistry

__all__ = ["ProviderRegistry"]
