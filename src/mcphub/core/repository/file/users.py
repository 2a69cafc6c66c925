import logging
from typing import Any, Dict, List, Optional

from ...exceptions import AlreadyExistsError
from ...settings.store import SettingsStore
from ..types import UserRecord

logger = logging.getLogger(__name__)


class FileUserRepository:
    """Users stored in the ``users`` list of the settings file."""

    def __init__(self, store: SettingsStore):
        self.store = store

    def find_all(self) -> List[UserRecord]:
        return [UserRecord.model_validate(u) for u in self.store.load()["users"]]

    def find_by_key(self, key: str) -> Optional[UserRecord]:
        for user in self.find_all():
            if user.username == key:
                return user
        return None

    def create(self, record: UserRecord) -> UserRecord:
        def _mutate(data: Dict[str, Any]) -> UserRecord:
            if any(u.get("username") == record.username for u in data["users"]):
                raise AlreadyExistsError(f"User '{record.username}' already exists")
            data["users"].append(record.model_dump())
            return record

        created = self.store.update(_mutate)
        logger.info(f"Created user '{record.username}' in settings file")
        return created

    def update(self, key: str, changes: Dict[str, Any]) -> Optional[UserRecord]:
        def _mutate(data: Dict[str, Any]) -> Optional[UserRecord]:
            for i, raw in enumerate(data["users"]):
                if raw.get("username") == key:
                    updated = UserRecord.model_validate(
                        {**raw, **changes, "username": key}
                    )
                    data["users"][i] = updated.model_dump()
                    return updated
            return None

        return self.store.update(_mutate)

    def delete(self, key: str) -> bool:
        def _mutate(data: Dict[str, Any]) -> bool:
            before = len(data["users"])
            data["users"] = [u for u in data["users"] if u.get("username") != key]
            return len(data["users"]) < before

        return self.store.update(_mutate)

    def close(self) -> None:
        pass
