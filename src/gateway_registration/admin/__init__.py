from .client import AdminAPIClient
from .memory_gateway import MemoryGateway

__all__ = [
    "AdminAPIClient",
    "MemoryGateway",
]
