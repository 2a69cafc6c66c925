from .groups import FileGroupRepository
from .market import FileMarketServerRepository
from .servers import FileServerConfigRepository
from .users import FileUserRepository
from .vectors import FileVectorRepository

__all__ = [
    "FileUserRepository",
    "FileGroupRepository",
    "FileServerConfigRepository",
    "FileMarketServerRepository",
    "FileVectorRepository",
]
