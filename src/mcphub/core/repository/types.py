"""Record shapes returned by every repository, whichever backend served the call."""

import hashlib
import hmac
import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..settings.models import EntityKind

ServerType = Literal["stdio", "sse", "streamable-http"]


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode()).hexdigest()


class UserRecord(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password_hash: str = Field(..., description="sha256 hex digest of the password")
    is_admin: bool = False

    def check_password(self, password: str) -> bool:
        return hmac.compare_digest(self.password_hash, hash_password(password))


class GroupRecord(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    servers: List[str] = Field(default_factory=list, description="Member server names")

    @field_validator("servers")
    @classmethod
    def dedupe_servers(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(v))


class ServerConfigRecord(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: ServerType = "stdio"
    url: Optional[str] = None
    command: Optional[str] = None
    args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)
    enabled: bool = True
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MarketRepository(BaseModel):
    type: Optional[str] = None
    url: Optional[str] = None


class MarketAuthor(BaseModel):
    name: Optional[str] = None


class MarketServerRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    display_name: str = ""
    description: str = ""
    repository: Optional[MarketRepository] = None
    homepage: Optional[str] = None
    author: Optional[MarketAuthor] = None
    license: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    examples: List[Dict[str, Any]] = Field(default_factory=list)
    installations: Dict[str, Any] = Field(default_factory=dict)
    arguments: Dict[str, Any] = Field(default_factory=dict)
    tools: List[Dict[str, Any]] = Field(default_factory=list)
    is_official: bool = False

    def searchable_text(self) -> str:
        parts = [self.name, self.display_name, self.description]
        parts.extend(self.categories)
        parts.extend(self.tags)
        return " ".join(p for p in parts if p).lower()

    def matches(self, query: str) -> bool:
        terms = [t for t in query.lower().split(" ") if t]
        if not terms:
            return True
        text = self.searchable_text()
        return any(term in text for term in terms)


def sort_market_servers(servers: List[MarketServerRecord]) -> List[MarketServerRecord]:
    """Official servers first, then by display name."""
    return sorted(servers, key=lambda s: (not s.is_official, s.display_name or s.name))


__all__ = [
    "EntityKind",
    "ServerType",
    "UserRecord",
    "GroupRecord",
    "ServerConfigRecord",
    "MarketRepository",
    "MarketAuthor",
    "MarketServerRecord",
    "hash_password",
    "sort_market_servers",
]
