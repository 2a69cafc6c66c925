from typing import Any, Dict, List, Optional

from ...exceptions import AlreadyExistsError
from ..types import GroupRecord
from .base import DatabaseRepository
from .models import Group, GroupServerMapping


class DatabaseGroupRepository(DatabaseRepository):
    """Groups with their member servers kept in ``group_server_mappings``."""

    def _to_record(self, group: Group) -> GroupRecord:
        return GroupRecord(
            id=str(group.id),
            name=str(group.name),
            description=group.description,
            servers=group.server_names,
        )

    def _get(self, group_id: str) -> Optional[Group]:
        return self.db.query(Group).filter(Group.id == group_id).first()

    def _set_servers(self, group: Group, servers: List[str]) -> None:
        # Reuse surviving rows so the flush never inserts a duplicate
        # (group_id, server_name) before the orphan is deleted
        existing = {str(m.server_name): m for m in group.server_mappings}
        mappings = []
        for position, name in enumerate(dict.fromkeys(servers)):
            mapping = existing.get(name) or GroupServerMapping(server_name=name)
            mapping.position = position  # type: ignore[assignment]
            mappings.append(mapping)
        group.server_mappings = mappings

    def find_all(self) -> List[GroupRecord]:
        groups = self.db.query(Group).order_by(Group.name).all()
        return [self._to_record(g) for g in groups]

    def find_by_key(self, key: str) -> Optional[GroupRecord]:
        group = self._get(key)
        return self._to_record(group) if group else None

    def find_by_name(self, name: str) -> Optional[GroupRecord]:
        group = self.db.query(Group).filter(Group.name == name).first()
        return self._to_record(group) if group else None

    def create(self, record: GroupRecord) -> GroupRecord:
        with self._write(f"create group '{record.name}'"):
            duplicate = (
                self.db.query(Group)
                .filter((Group.id == record.id) | (Group.name == record.name))
                .first()
            )
            if duplicate:
                raise AlreadyExistsError(f"Group '{record.name}' already exists")
            group = Group(id=record.id, name=record.name, description=record.description)
            self._set_servers(group, record.servers)
            self.db.add(group)
        return record

    def update(self, key: str, changes: Dict[str, Any]) -> Optional[GroupRecord]:
        with self._write(f"update group '{key}'"):
            group = self._get(key)
            if group is None:
                return None
            merged = self._to_record(group).model_copy(update=changes)
            validated = GroupRecord.model_validate(merged.model_dump())
            if validated.name != group.name:
                clash = (
                    self.db.query(Group)
                    .filter(Group.name == validated.name, Group.id != key)
                    .first()
                )
                if clash:
                    raise AlreadyExistsError(f"Group '{validated.name}' already exists")
            group.name = validated.name  # type: ignore[assignment]
            group.description = validated.description  # type: ignore[assignment]
            if "servers" in changes:
                self._set_servers(group, validated.servers)
        return self.find_by_key(key)

    def delete(self, key: str) -> bool:
        with self._write(f"delete group '{key}'"):
            group = self._get(key)
            if group is None:
                return False
            self.db.delete(group)
        return True

    def add_server(self, group_id: str, server_name: str) -> Optional[GroupRecord]:
        group = self._get(group_id)
        if group is None:
            return None
        if server_name in group.server_names:
            return self._to_record(group)
        return self.update(group_id, {"servers": group.server_names + [server_name]})

    def remove_server(self, group_id: str, server_name: str) -> Optional[GroupRecord]:
        group = self._get(group_id)
        if group is None:
            return None
        servers = [s for s in group.server_names if s != server_name]
        return self.update(group_id, {"servers": servers})
