from typing import Any, Dict, List, Optional

from ...exceptions import AlreadyExistsError
from ..types import UserRecord
from .base import DatabaseRepository
from .models import User


class DatabaseUserRepository(DatabaseRepository):
    def _to_record(self, user: User) -> UserRecord:
        return UserRecord(
            username=str(user.username),
            password_hash=str(user.password_hash),
            is_admin=bool(user.is_admin),
        )

    def _get(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def find_all(self) -> List[UserRecord]:
        users = self.db.query(User).order_by(User.username).all()
        return [self._to_record(u) for u in users]

    def find_by_key(self, key: str) -> Optional[UserRecord]:
        user = self._get(key)
        return self._to_record(user) if user else None

    def create(self, record: UserRecord) -> UserRecord:
        with self._write(f"create user '{record.username}'"):
            if self._get(record.username):
                raise AlreadyExistsError(f"User '{record.username}' already exists")
            user = User(
                username=record.username,
                password_hash=record.password_hash,
                is_admin=record.is_admin,
            )
            self.db.add(user)
        return record

    def update(self, key: str, changes: Dict[str, Any]) -> Optional[UserRecord]:
        with self._write(f"update user '{key}'"):
            user = self._get(key)
            if user is None:
                return None
            merged = self._to_record(user).model_copy(update=changes)
            validated = UserRecord.model_validate(merged.model_dump())
            user.password_hash = validated.password_hash  # type: ignore[assignment]
            user.is_admin = validated.is_admin  # type: ignore[assignment]
        return self.find_by_key(key)

    def delete(self, key: str) -> bool:
        with self._write(f"delete user '{key}'"):
            user = self._get(key)
            if user is None:
                return False
            self.db.delete(user)
        return True
