from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from mcphub.core.exceptions import AlreadyExistsError, SchemaReconciliationError
from mcphub.core.repository import (
    DualBackendAdapter,
    EntityKind,
    StaticRoutingPolicy,
    UserRecord,
    hash_password,
)
from mcphub.core.repository.file import FileUserRepository


def _user(name: str = "alice") -> UserRecord:
    return UserRecord(username=name, password_hash=hash_password("secret"))


def _broken_factory():
    raise OperationalError("SELECT 1", {}, Exception("connection refused"))


@pytest.fixture
def file_users(settings) -> FileUserRepository:
    return FileUserRepository(settings)


class TestRouting:
    def test_file_routed_never_builds_database_repository(self, file_users):
        factory = MagicMock()
        adapter = DualBackendAdapter(
            EntityKind.USERS, StaticRoutingPolicy(False), file_users, factory
        )

        adapter.create(_user())

        assert adapter.find_by_key("alice").username == "alice"
        factory.assert_not_called()

    def test_database_routed_uses_and_closes_database_repository(self, file_users):
        db_repository = MagicMock()
        db_repository.find_all.return_value = [_user("bob")]
        adapter = DualBackendAdapter(
            EntityKind.USERS, StaticRoutingPolicy(True), file_users, lambda: db_repository
        )

        assert [u.username for u in adapter.find_all()] == ["bob"]
        db_repository.close.assert_called_once()

    def test_routing_is_consulted_on_every_call(self, file_users):
        routing = MagicMock()
        routing.use_database.side_effect = [False, True]
        db_repository = MagicMock()
        db_repository.find_all.return_value = []
        adapter = DualBackendAdapter(
            EntityKind.USERS, routing, file_users, lambda: db_repository
        )

        adapter.find_all()
        adapter.find_all()

        assert routing.use_database.call_count == 2
        db_repository.find_all.assert_called_once()


class TestFallback:
    def test_factory_failure_falls_back_to_file(self, file_users):
        file_users.create(_user())
        adapter = DualBackendAdapter(
            EntityKind.USERS, StaticRoutingPolicy(True), file_users, _broken_factory
        )

        assert adapter.find_by_key("alice") == file_users.find_by_key("alice")

    def test_operation_failure_falls_back_to_file(self, file_users):
        db_repository = MagicMock()
        db_repository.create.side_effect = OperationalError(
            "INSERT", {}, Exception("database is locked")
        )
        adapter = DualBackendAdapter(
            EntityKind.USERS, StaticRoutingPolicy(True), file_users, lambda: db_repository
        )

        created = adapter.create(_user())

        assert created.username == "alice"
        assert file_users.find_by_key("alice") is not None
        db_repository.close.assert_called_once()

    def test_close_failure_does_not_hide_result(self, file_users):
        db_repository = MagicMock()
        db_repository.find_all.return_value = []
        db_repository.close.side_effect = RuntimeError("already closed")
        adapter = DualBackendAdapter(
            EntityKind.USERS, StaticRoutingPolicy(True), file_users, lambda: db_repository
        )

        assert adapter.find_all() == []

    def test_domain_errors_are_not_masked(self, file_users):
        db_repository = MagicMock()
        db_repository.create.side_effect = AlreadyExistsError("User 'alice' already exists")
        adapter = DualBackendAdapter(
            EntityKind.USERS, StaticRoutingPolicy(True), file_users, lambda: db_repository
        )

        with pytest.raises(AlreadyExistsError):
            adapter.create(_user())
        assert file_users.find_by_key("alice") is None

    def test_schema_errors_are_not_masked(self, tmp_path):
        file_vectors = MagicMock()
        db_vectors = MagicMock()
        db_vectors.ensure_dimensions.side_effect = SchemaReconciliationError(
            "Failed to alter width", step="alter_width"
        )
        adapter = DualBackendAdapter(
            EntityKind.VECTOR_EMBEDDINGS,
            StaticRoutingPolicy(True),
            file_vectors,
            lambda: db_vectors,
        )

        with pytest.raises(SchemaReconciliationError) as exc_info:
            adapter.ensure_dimensions(50)
        assert exc_info.value.step == "alter_width"
        file_vectors.ensure_dimensions.assert_not_called()

    def test_file_errors_propagate(self):
        file_repository = MagicMock()
        file_repository.find_all.side_effect = ValueError("Failed to load settings")
        adapter = DualBackendAdapter(
            EntityKind.USERS, StaticRoutingPolicy(True), file_repository, _broken_factory
        )

        with pytest.raises(ValueError, match="Failed to load settings"):
            adapter.find_all()


class TestDynamicOperations:
    def test_extra_operations_are_forwarded(self, settings):
        from mcphub.core.repository.file import FileServerConfigRepository

        adapter = DualBackendAdapter(
            EntityKind.SERVER_CONFIGS,
            StaticRoutingPolicy(False),
            FileServerConfigRepository(settings),
            _broken_factory,
        )

        assert adapter.find_enabled() == []

    def test_unknown_operation_raises_attribute_error(self, file_users):
        adapter = DualBackendAdapter(
            EntityKind.USERS, StaticRoutingPolicy(False), file_users, _broken_factory
        )

        with pytest.raises(AttributeError, match="no operation 'explode'"):
            adapter.explode()
        with pytest.raises(AttributeError):
            adapter._private


class TestWeakConsistency:
    def test_database_write_is_invisible_after_fallback(self, db_registry):
        db_registry.users.create(_user())
        assert db_registry.users.find_by_key("alice") is not None

        db_registry.session_factory = _broken_factory

        assert db_registry.users.find_by_key("alice") is None
        assert db_registry.users.find_all() == []
