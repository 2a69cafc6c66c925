import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from ...exceptions import AlreadyExistsError
from ..types import MarketServerRecord, sort_market_servers

logger = logging.getLogger(__name__)


class FileMarketServerRepository:
    """Marketplace catalog read from a JSON object keyed by server name."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._lock = threading.RLock()

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ValueError(f"Failed to load market catalog {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(
                f"Invalid market catalog: expected object, got {type(data).__name__}"
            )
        return data

    def _save(self, data: Dict[str, Dict[str, Any]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except IOError as e:
            raise ValueError(f"Failed to save market catalog: {e}") from e

    def find_all(self) -> List[MarketServerRecord]:
        servers = []
        for name, raw in self._load().items():
            try:
                servers.append(MarketServerRecord.model_validate({**raw, "name": name}))
            except ValueError as e:
                logger.error(f"Skipping invalid market server '{name}': {e}")
        return sort_market_servers(servers)

    def find_by_key(self, key: str) -> Optional[MarketServerRecord]:
        raw = self._load().get(key)
        if raw is None:
            return None
        return MarketServerRecord.model_validate({**raw, "name": key})

    def create(self, record: MarketServerRecord) -> MarketServerRecord:
        with self._lock:
            data = self._load()
            if record.name in data:
                raise AlreadyExistsError(f"Market server '{record.name}' already exists")
            data[record.name] = record.model_dump(mode="json")
            self._save(data)
        return record

    def update(self, key: str, changes: Dict[str, Any]) -> Optional[MarketServerRecord]:
        with self._lock:
            data = self._load()
            if key not in data:
                return None
            updated = MarketServerRecord.model_validate(
                {**data[key], **changes, "name": key}
            )
            data[key] = updated.model_dump(mode="json")
            self._save(data)
        return updated

    def delete(self, key: str) -> bool:
        with self._lock:
            data = self._load()
            if data.pop(key, None) is None:
                return False
            self._save(data)
        return True

    def categories(self) -> List[str]:
        return sorted({c for s in self.find_all() for c in s.categories})

    def tags(self) -> List[str]:
        return sorted({t for s in self.find_all() for t in s.tags})

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

    def close(self) -> None:
        pass
