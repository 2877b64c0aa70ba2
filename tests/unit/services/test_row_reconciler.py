import pytest
from unittest.mock import AsyncMock

from docsheet.core.config import ReloadPolicy
from docsheet.core.exceptions import DatabaseError, ValidationError
from docsheet.schemas.documents import (
    FileMetadata,
    PendingFromFileRow,
    PendingRow,
    PersistedRow,
    row_from_record,
)
from docsheet.services.row_reconciler import RowStoreReconciler


def _keys(rows):
    return [row.row_key for row in rows]


@pytest.fixture
def reconciler(store, document):
    return RowStoreReconciler(store, document, reload_policy=ReloadPolicy.DISCARD_PENDING)


@pytest.mark.asyncio
async def test_rows_are_persisted_then_pending(reconciler, store, document):
    await store.create_row(document.id, {"total": 1})
    await reconciler.refresh()
    pending = reconciler.add_pending_row()

    rows = reconciler.rows

    assert isinstance(rows[0], PersistedRow)
    assert rows[-1] is pending
    assert len(set(_keys(rows))) == len(rows)


@pytest.mark.asyncio
async def test_commit_row_moves_row_to_persisted(reconciler, store, document):
    pending = reconciler.add_pending_row({"a": "x"})

    created = await reconciler.commit_row(pending)

    assert reconciler.pending_rows == []
    assert [row.data for row in reconciler.persisted_rows] == [{"a": "x"}]
    assert reconciler.persisted_rows[0].id == created.id
    assert pending.local_id not in _keys(reconciler.rows)
    assert store.calls.count("create_row") == 1


@pytest.mark.asyncio
async def test_commit_legacy_temp_row(reconciler):
    row = row_from_record({"id": "temp-123", "document_id": reconciler.document_id, "data": {"a": "x"}})
    reconciler.pending_rows.append(row)

    await reconciler.commit_row(row)

    assert "temp-123" not in _keys(reconciler.pending_rows)
    durable = [row for row in reconciler.persisted_rows if row.data == {"a": "x"}]
    assert len(durable) == 1
    assert not str(durable[0].id).startswith("temp-")


@pytest.mark.asyncio
async def test_commit_failure_keeps_row_pending(reconciler, store):
    pending = reconciler.add_pending_row({"a": "x"})
    store.fail_create_row = True

    with pytest.raises(DatabaseError):
        await reconciler.commit_row(pending)

    assert reconciler.pending_rows == [pending]
    assert reconciler.persisted_rows == []


@pytest.mark.asyncio
async def test_commit_wraps_unexpected_errors(reconciler, store):
    pending = reconciler.add_pending_row()
    store.create_row = AsyncMock(side_effect=RuntimeError("connection reset"))

    with pytest.raises(DatabaseError, match="connection reset"):
        await reconciler.commit_row(pending)

    assert reconciler.pending_rows == [pending]


@pytest.mark.asyncio
async def test_commit_without_document_is_rejected(store):
    reconciler = RowStoreReconciler(store)
    pending = reconciler.add_pending_row()

    with pytest.raises(ValidationError):
        await reconciler.commit_row(pending)

    assert store.calls == []


@pytest.mark.asyncio
async def test_commit_all_commits_in_order(reconciler):
    reconciler.add_pending_row({"n": 1})
    reconciler.add_pending_from_file(
        {"n": 2}, FileMetadata(filename="b.pdf", file_size=10, file_type="application/pdf")
    )

    committed = await reconciler.commit_all()

    assert [row.data for row in committed] == [{"n": 1}, {"n": 2}]
    assert reconciler.pending_rows == []
    assert reconciler.persisted_rows[1].file_metadata.filename == "b.pdf"


@pytest.mark.asyncio
async def test_update_row_field(reconciler):
    pending = reconciler.add_pending_row()

    assert reconciler.update_row_field(pending.local_id, "total", 5) is True
    assert reconciler.get_row(pending.local_id).data == {"total": 5}
    assert reconciler.update_row_field("temp-missing", "total", 5) is False


@pytest.mark.asyncio
async def test_save_row_updates_persisted_row(reconciler, store, document):
    created = await store.create_row(document.id, {"total": 1})
    await reconciler.refresh()
    reconciler.update_row_field(created.row_key, "total", 2)

    saved = await reconciler.save_row(created.row_key)

    assert saved.data == {"total": 2}
    assert store.rows[created.id].data == {"total": 2}
    assert reconciler.persisted_rows[0].data == {"total": 2}


@pytest.mark.asyncio
async def test_delete_pending_row_is_local(reconciler, store):
    pending = reconciler.add_pending_row()

    assert await reconciler.delete_row(pending.local_id) is True
    assert reconciler.pending_rows == []
    assert "delete_row" not in store.calls


@pytest.mark.asyncio
async def test_delete_persisted_row(reconciler, store, document):
    created = await store.create_row(document.id, {"total": 1})
    await reconciler.refresh()

    assert await reconciler.delete_row(created.row_key) is True
    assert reconciler.persisted_rows == []
    assert created.id not in store.rows


@pytest.mark.asyncio
async def test_delete_cancelled_by_confirmation(reconciler, store, document):
    created = await store.create_row(document.id, {"total": 1})
    await reconciler.refresh()

    assert await reconciler.delete_row(created.row_key, confirm=lambda row: False) is False
    assert len(reconciler.persisted_rows) == 1
    assert "delete_row" not in store.calls


@pytest.mark.asyncio
async def test_delete_storage_failure_leaves_state(reconciler, store, document):
    created = await store.create_row(document.id, {"total": 1})
    await reconciler.refresh()
    store.delete_row = AsyncMock(side_effect=DatabaseError("Failed to delete row"))

    with pytest.raises(DatabaseError):
        await reconciler.delete_row(created.row_key)

    assert len(reconciler.persisted_rows) == 1


@pytest.mark.asyncio
async def test_reload_discards_pending(reconciler, store, document):
    reconciler.add_pending_row({"a": 1})
    reconciler.add_pending_row({"a": 2})
    fresh = await store.get_document(document.id)

    discarded = reconciler.reconcile_on_reload(fresh)

    assert reconciler.pending_rows == []
    assert len(discarded) == 2


@pytest.mark.asyncio
async def test_reload_can_preserve_pending(reconciler, store, document):
    pending = reconciler.add_pending_row({"a": 1})
    await store.create_row(document.id, {"a": 0})
    fresh = await store.get_document(document.id)

    discarded = reconciler.reconcile_on_reload(fresh, policy=ReloadPolicy.PRESERVE_PENDING)

    assert discarded == []
    assert _keys(reconciler.pending_rows) == [pending.local_id]
    assert len(reconciler.persisted_rows) == 1


@pytest.mark.asyncio
async def test_reload_rejects_other_document(reconciler, store):
    other = await store.create_document(user_id="user-1", name="Other", fields=[])

    with pytest.raises(ValidationError):
        reconciler.reconcile_on_reload(other)


def test_row_from_record_classifies_by_prefix():
    assert isinstance(row_from_record({"id": "temp-1", "data": {}}), PendingRow)
    file_row = row_from_record({
        "id": "file-1",
        "data": {},
        "file_metadata": {"filename": "a.pdf", "file_size": 3},
    })
    assert isinstance(file_row, PendingFromFileRow)
    persisted = row_from_record({
        "id": "8d3c1f0e-9a44-4b56-8f0c-2f8e5b6f7a10",
        "document_id": "2b1f6a3e-0c9d-4e8f-a7b6-5c4d3e2f1a00",
        "data": {"a": 1},
    })
    assert isinstance(persisted, PersistedRow)


@pytest.mark.asyncio
async def test_second_commit_of_same_row_does_not_insert(reconciler, store):
    pending = reconciler.add_pending_row({"a": "x"})

    first = await reconciler.commit_row(pending)
    second = await reconciler.commit_row(pending)

    assert second.id == first.id
    assert store.calls.count("create_row") == 1
    assert len(reconciler.persisted_rows) == 1
