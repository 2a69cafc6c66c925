from .groups import DatabaseGroupRepository
from .market import DatabaseMarketServerRepository
from .servers import DatabaseServerConfigRepository
from .users import DatabaseUserRepository
from .vectors import DatabaseVectorRepository

__all__ = [
    "DatabaseUserRepository",
    "DatabaseGroupRepository",
    "DatabaseServerConfigRepository",
    "DatabaseMarketServerRepository",
    "DatabaseVectorRepository",
]
