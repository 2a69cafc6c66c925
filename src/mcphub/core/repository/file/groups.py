from typing import Any, Dict, List, Optional

from ...exceptions import AlreadyExistsError
from ...settings.store import SettingsStore
from ..types import GroupRecord


class FileGroupRepository:
    """Groups stored in the ``groups`` list of the settings file, keyed by id."""

    def __init__(self, store: SettingsStore):
        self.store = store

    def find_all(self) -> List[GroupRecord]:
        return [GroupRecord.model_validate(g) for g in self.store.load()["groups"]]

    def find_by_key(self, key: str) -> Optional[GroupRecord]:
        return next((g for g in self.find_all() if g.id == key), None)

    def find_by_name(self, name: str) -> Optional[GroupRecord]:
        return next((g for g in self.find_all() if g.name == name), None)

    def create(self, record: GroupRecord) -> GroupRecord:
        def _mutate(data: Dict[str, Any]) -> GroupRecord:
            for raw in data["groups"]:
                if raw.get("id") == record.id or raw.get("name") == record.name:
                    raise AlreadyExistsError(f"Group '{record.name}' already exists")
            data["groups"].append(record.model_dump())
            return record

        return self.store.update(_mutate)

    def update(self, key: str, changes: Dict[str, Any]) -> Optional[GroupRecord]:
        def _mutate(data: Dict[str, Any]) -> Optional[GroupRecord]:
            for i, raw in enumerate(data["groups"]):
                if raw.get("id") != key:
                    continue
                updated = GroupRecord.model_validate({**raw, **changes, "id": key})
                if any(
                    g.get("name") == updated.name and g.get("id") != key
                    for g in data["groups"]
                ):
                    raise AlreadyExistsError(f"Group '{updated.name}' already exists")
                data["groups"][i] = updated.model_dump()
                return updated
            return None

        return self.store.update(_mutate)

    def delete(self, key: str) -> bool:
        def _mutate(data: Dict[str, Any]) -> bool:
            before = len(data["groups"])
            data["groups"] = [g for g in data["groups"] if g.get("id") != key]
            return len(data["groups"]) < before

        return self.store.update(_mutate)

    def add_server(self, group_id: str, server_name: str) -> Optional[GroupRecord]:
        group = self.find_by_key(group_id)
        if group is None:
            return None
        if server_name in group.servers:
            return group
        return self.update(group_id, {"servers": group.servers + [server_name]})

    def remove_server(self, group_id: str, server_name: str) -> Optional[GroupRecord]:
        group = self.find_by_key(group_id)
        if group is None:
            return None
        return self.update(
            group_id, {"servers": [s for s in group.servers if s != server_name]}
        )

    def close(self) -> None:
        pass
