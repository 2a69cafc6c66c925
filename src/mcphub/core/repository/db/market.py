from typing import Any, Dict, List, Optional

from ...exceptions import AlreadyExistsError
from ..types import MarketServerRecord, sort_market_servers
from .base import DatabaseRepository
from .models import MarketServer


class DatabaseMarketServerRepository(DatabaseRepository):
    """Marketplace catalog rows; list columns are JSON so filtering happens in Python."""

    def _to_record(self, server: MarketServer) -> MarketServerRecord:
        return MarketServerRecord.model_validate(
            {
                "name": server.name,
                "display_name": server.display_name or "",
                "description": server.description or "",
                "repository": server.repository,
                "homepage": server.homepage,
                "author": server.author,
                "license": server.license,
                "categories": server.categories or [],
                "tags": server.tags or [],
                "examples": server.examples or [],
                "installations": server.installations or {},
                "arguments": server.arguments or {},
                "tools": server.tools or [],
                "is_official": bool(server.is_official),
            }
        )

    def _apply(self, server: MarketServer, record: MarketServerRecord) -> None:
        data = record.model_dump(mode="json")
        for field, value in data.items():
            if field == "name":
                continue
            setattr(server, field, value)

    def _get(self, name: str) -> Optional[MarketServer]:
        return self.db.query(MarketServer).filter(MarketServer.name == name).first()

    def find_all(self) -> List[MarketServerRecord]:
        servers = self.db.query(MarketServer).all()
        return sort_market_servers([self._to_record(s) for s in servers])

    def find_by_key(self, key: str) -> Optional[MarketServerRecord]:
        server = self._get(key)
        return self._to_record(server) if server else None

    def create(self, record: MarketServerRecord) -> MarketServerRecord:
        with self._write(f"create market server '{record.name}'"):
            if self._get(record.name):
                raise AlreadyExistsError(f"Market server '{record.name}' already exists")
            server = MarketServer(name=record.name)
            self._apply(server, record)
            self.db.add(server)
        return record

    def update(self, key: str, changes: Dict[str, Any]) -> Optional[MarketServerRecord]:
        with self._write(f"update market server '{key}'"):
            server = self._get(key)
            if server is None:
                return None
            merged = {**self._to_record(server).model_dump(), **changes, "name": key}
            self._apply(server, MarketServerRecord.model_validate(merged))
        return self.find_by_key(key)

    def delete(self, key: str) -> bool:
        with self._write(f"delete market server '{key}'"):
            server = self._get(key)
            if server is None:
                return False
            self.db.delete(server)
        return True

    def categories(self) -> List[str]:
        found = set()
        for server in self.find_all():
            found.update(server.categories)
        return sorted(found)

    def tags(self) -> List[str]:
        found = set()
        for server in self.find_all():
            found.update(server.tags)
        return sorted(found)

    def search(self, query: str) -> List[MarketServerRecord]:
        return [s for s in self.find_all() if s.matches(query or "")]

    def filter_by_category(self, category: str) -> List[MarketServerRecord]:
        if not category:
            return self.find_all()
        return [s for s in self.find_all() if category in s.categories]

    def filter_by_tag(self, tag: str) -> List[MarketServerRecord]:
        if not tag:
            return self.find_all()
        return [s for s in self.find_all() if tag in s.tags]
