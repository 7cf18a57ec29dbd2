"""Unit tests specific to the SQLAlchemy tracking store."""

from datetime import UTC, datetime
from unittest.mock import patch

import pytest
from doc_change_tracker.models import DocType, PersistenceError
from doc_change_tracker.storage import SqlTrackingStore
from doc_change_tracker.storage.tables import Base
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

DOC_ID = "doxcnABCDEFGHIJ"


class TestSqlTrackingStore:
    """Test cases for SqlTrackingStore."""

    def test_initialize_creates_tables(self):
        """Test table creation."""
        store = SqlTrackingStore("sqlite://")
        store.initialize()

        tables = set(inspect(store.engine).get_table_names())
        assert {"tracked_documents", "document_changes"} <= tables
        store.close()

    @pytest.mark.asyncio
    async def test_state_survives_new_store_instance(self, tmp_path):
        """Test rows written by one store are read by another on the same database."""
        url = f"sqlite:///{tmp_path / 'tracker.db'}"
        notified_at = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)

        writer = SqlTrackingStore(url)
        writer.initialize()
        await writer.start_tracking("acme", DOC_ID, DocType.SHEET, "oc_chat_1")
        await writer.update_last_known_state("acme", DOC_ID, "ou_alice", 1000)
        await writer.update_last_notification_time("acme", DOC_ID, notified_at)
        writer.close()

        reader = SqlTrackingStore(url)
        tracked = await reader.get_tracked("acme", DOC_ID)
        reader.close()

        assert tracked.doc_type == DocType.SHEET
        assert tracked.last_known_modifier == "ou_alice"
        assert tracked.last_known_modified_at == 1000
        assert tracked.last_notification_at == notified_at

    @pytest.mark.asyncio
    async def test_database_errors_wrapped(self):
        """Test SQLAlchemy errors surface as PersistenceError with context."""
        store = SqlTrackingStore("sqlite://")
        store.initialize()
        Base.metadata.drop_all(store.engine)

        with pytest.raises(PersistenceError) as exc_info:
            await store.list_tracked("acme")

        assert exc_info.value.context["operation"] == "list_tracked"
        assert exc_info.value.context["tenant_id"] == "acme"
        assert isinstance(exc_info.value.cause, OperationalError)
        store.close()

    @pytest.mark.asyncio
    async def test_health_check_failure(self):
        """Test an unreachable database reports unhealthy instead of raising."""
        store = SqlTrackingStore("sqlite://")
        store.initialize()

        error = OperationalError("SELECT 1", {}, Exception("database is locked"))
        with patch.object(store, "_session_factory", side_effect=error):
            assert await store.health_check() is False
        store.close()
