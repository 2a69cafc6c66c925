from __future__ import annotations

import uuid
from typing import Any, List, Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import TypeDecorator, TypeEngine

from ...storage.manager import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class EmbeddingVector(TypeDecorator):
    """pgvector ``vector`` on PostgreSQL, a JSON float array elsewhere.

    The PostgreSQL column is created without a width; the schema reconciler
    assigns one the first time vectors are written.
    """

    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(Vector())
        return dialect.type_descriptor(JSON())

    def process_bind_param(
        self, value: Optional[List[float]], dialect: Dialect
    ) -> Optional[List[float]]:
        if value is None:
            return None
        return [float(v) for v in value]

    def process_result_value(self, value: Any, dialect: Dialect) -> Optional[List[float]]:
        if value is None:
            return None
        return [float(v) for v in value]


class User(Base):  # type: ignore[valid-type,misc]
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', is_admin={self.is_admin})>"


class Group(Base):  # type: ignore[valid-type,misc]
    __tablename__ = "groups"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(100), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    server_mappings = relationship(
        "GroupServerMapping",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="GroupServerMapping.position",
    )

    @property
    def server_names(self) -> List[str]:
        return [str(m.server_name) for m in self.server_mappings]

    def __repr__(self) -> str:
        return f"<Group(id='{self.id}', name='{self.name}')>"


class GroupServerMapping(Base):  # type: ignore[valid-type,misc]
    __tablename__ = "group_server_mappings"
    __table_args__ = (
        UniqueConstraint("group_id", "server_name", name="uq_group_server_mapping"),
    )

    id = Column(Integer, primary_key=True)
    group_id = Column(
        String(36), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    server_name = Column(String(100), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    group = relationship("Group", back_populates="server_mappings")


class ServerConfig(Base):  # type: ignore[valid-type,misc]
    __tablename__ = "server_configs"

    name = Column(String(100), primary_key=True)
    type = Column(String(32), nullable=False, default="stdio")
    url = Column(String(500), nullable=True)
    command = Column(String(500), nullable=True)
    args = Column(JSON, nullable=True)  # List[str]
    env = Column(JSON, nullable=True)  # Dict[str, str]
    enabled = Column(Boolean, nullable=False, default=True)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=True)  # Dict[str, Any]

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<ServerConfig(name='{self.name}', type='{self.type}', enabled={self.enabled})>"


class MarketServer(Base):  # type: ignore[valid-type,misc]
    __tablename__ = "market_servers"

    name = Column(String(100), primary_key=True)
    display_name = Column(String(200), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    repository = Column(JSON, nullable=True)  # {type, url}
    homepage = Column(String(500), nullable=True)
    author = Column(JSON, nullable=True)  # {name}
    license = Column(String(100), nullable=True)
    categories = Column(JSON, nullable=True)  # List[str]
    tags = Column(JSON, nullable=True)  # List[str]
    examples = Column(JSON, nullable=True)  # List[Dict[str, Any]]
    installations = Column(JSON, nullable=True)  # Dict[str, Any]
    arguments = Column(JSON, nullable=True)  # Dict[str, Any]
    tools = Column(JSON, nullable=True)  # List[Dict[str, Any]]
    is_official = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<MarketServer(name='{self.name}', is_official={self.is_official})>"


class VectorEmbedding(Base):  # type: ignore[valid-type,misc]
    __tablename__ = "vector_embeddings"
    __table_args__ = (
        UniqueConstraint(
            "content_type", "content_id", name="uq_vector_embeddings_content"
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    content_type = Column(String(50), nullable=False, index=True)
    content_id = Column(String(255), nullable=False)
    text_content = Column(Text, nullable=False)
    embedding = Column(EmbeddingVector(), nullable=False)
    dimensions = Column(Integer, nullable=False)
    meta = Column("metadata", JSON, nullable=True)  # Dict[str, Any]
    model = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<VectorEmbedding(content_type='{self.content_type}', content_id='{self.content_id}', dimensions={self.dimensions})>"


class VectorSchemaState(Base):  # type: ignore[valid-type,misc]
    """Configured width per vector store, for engines without typed vector columns."""

    __tablename__ = "vector_schema_state"

    store_name = Column(String(100), primary_key=True)
    dimensions = Column(Integer, nullable=True)
    index_strategy = Column(String(50), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now())
