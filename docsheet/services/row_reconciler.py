"""Per-document row reconciliation.

A reconciler owns the row state of one open document: the durable rows
last read from storage and the local rows not yet committed. The row set
shown to the user is always ``persisted_rows + pending_rows``.

Rows move from pending to durable through a two-phase commit: the local
draft is written with ``create_row``, then the whole document is
re-read and replaces the local durable state.
"""

from typing import Any, Callable, Dict, List, Optional, Union
from uuid import UUID

from docsheet.core.config import ReloadPolicy, settings
from docsheet.core.exceptions import AppError, DatabaseError, DocumentNotFoundError, ValidationError
from docsheet.schemas.documents import (
    Document,
    FileMetadata,
    LocalRow,
    PendingFromFileRow,
    PendingRow,
    PersistedRow,
)
from docsheet.services.store import DocumentStore
from docsheet.utils.logging import get_logger

LOGGER = get_logger(__name__)

AnyRow = Union[PersistedRow, PendingRow, PendingFromFileRow]


class RowStoreReconciler:
    """Authoritative in-memory row set for a single document."""

    def __init__(
        self,
        store: DocumentStore,
        document: Optional[Document] = None,
        reload_policy: Optional[ReloadPolicy] = None,
    ):
        self.store = store
        self.document = document
        self.persisted_rows: List[PersistedRow] = list(document.rows) if document else []
        self.pending_rows: List[LocalRow] = []
        # local_id -> durable row, so a repeated commit never inserts twice
        self._committed: Dict[str, PersistedRow] = {}
        self.reload_policy = reload_policy or settings.documents.reload_policy

    @property
    def document_id(self) -> Optional[UUID]:
        return self.document.id if self.document else None

    @property
    def rows(self) -> List[AnyRow]:
        """Rows to display: durable rows first, then local ones."""
        return [*self.persisted_rows, *self.pending_rows]

    def get_row(self, row_key: str) -> Optional[AnyRow]:
        for row in self.rows:
            if row.row_key == str(row_key):
                return row
        return None

    def add_pending_row(self, data: Optional[Dict[str, Any]] = None) -> PendingRow:
        """Append an empty local row. Nothing is written to storage."""
        row = PendingRow(document_id=self.document_id, data=dict(data or {}))
        self.pending_rows.append(row)
        return row

    def add_pending_from_file(
        self,
        data: Dict[str, Any],
        file_metadata: FileMetadata,
    ) -> PendingFromFileRow:
        """Append a row confirmed from an extraction result."""
        row = PendingFromFileRow(
            document_id=self.document_id,
            data=dict(data),
            file_metadata=file_metadata,
        )
        self.pending_rows.append(row)
        return row

    def update_row_field(self, row_key: str, field_name: str, value: Any) -> bool:
        """Replace one value in a row's data, wherever the row lives.

        Unknown keys are a no-op and return False.
        """
        for rows in (self.persisted_rows, self.pending_rows):
            for index, row in enumerate(rows):
                if row.row_key == str(row_key):
                    rows[index] = row.model_copy(update={"data": {**row.data, field_name: value}})
                    return True
        return False

    def _remove_pending(self, local_id: str) -> bool:
        remaining = [row for row in self.pending_rows if row.local_id != local_id]
        removed = len(remaining) != len(self.pending_rows)
        self.pending_rows = remaining
        return removed

    def _replace_document(self, document: Document) -> None:
        self.document = document
        self.persisted_rows = list(document.rows)

    async def refresh(self) -> Document:
        """Re-read the document from storage and replace the durable state."""
        if self.document_id is None:
            raise ValidationError("Document has not been created yet")
        fresh = await self.store.get_document(self.document_id)
        if fresh is None:
            raise DocumentNotFoundError(f"Document with ID {self.document_id} not found")
        self._replace_document(fresh)
        return fresh

    async def commit_row(self, row: LocalRow) -> PersistedRow:
        """Persist a local row, then re-read the whole document.

        On a storage failure the row stays pending and the error propagates.
        A second call with an already committed row returns the durable row
        from the first call without writing again.

        Raises:
            ValidationError: If neither the row nor the reconciler has a document
            DatabaseError: If storage rejects the row
        """
        document_id = row.document_id or self.document_id
        if document_id is None:
            raise ValidationError("Document must be saved before rows can be committed")

        if row.local_id in self._committed:
            LOGGER.info(f"Row {row.local_id} was already committed, skipping")
            return self._committed[row.local_id]

        try:
            created = await self.store.create_row(document_id, row.data, row.file_metadata)
        except AppError:
            LOGGER.error(
                "Row commit failed, keeping it pending",
                exc_info=True,
                extra={"document_id": str(document_id), "row": row.local_id},
            )
            raise
        except Exception as e:
            LOGGER.error(
                "Row commit failed, keeping it pending",
                exc_info=True,
                extra={"document_id": str(document_id), "row": row.local_id},
            )
            raise DatabaseError(f"Failed to commit row: {str(e)}", original_error=e)

        self._committed[row.local_id] = created
        if not self._remove_pending(row.local_id):
            LOGGER.info(f"Committed row {row.local_id} was no longer pending")
        self.persisted_rows.append(created)

        LOGGER.info(
            "Row committed",
            extra={"document_id": str(document_id), "row": row.local_id, "row_id": str(created.id)},
        )
        await self.refresh()
        return created

    async def commit_all(self) -> List[PersistedRow]:
        """Commit every pending row in order, stopping at the first failure."""
        committed = []
        for row in list(self.pending_rows):
            committed.append(await self.commit_row(row))
        return committed

    async def save_row(self, row_key: str) -> PersistedRow:
        """Write local edits of a row to storage.

        Pending rows are committed; durable rows are updated in place and
        replaced with what storage returns.
        """
        row = self.get_row(row_key)
        if row is None:
            raise ValidationError(f"Row {row_key} is not part of this document")
        if not isinstance(row, PersistedRow):
            return await self.commit_row(row)

        updated = await self.store.update_row(row.id, row.data)
        self.persisted_rows = [
            updated if existing.id == updated.id else existing
            for existing in self.persisted_rows
        ]
        return updated

    async def delete_row(
        self,
        row_key: str,
        confirm: Optional[Callable[[AnyRow], bool]] = None,
    ) -> bool:
        """Delete a row.

        Local rows are dropped without touching storage. Durable rows are
        deleted in storage first and only then removed locally.

        Args:
            row_key: Durable id or local id
            confirm: Optional user confirmation; returning False cancels

        Returns:
            True if a row was removed
        """
        row = self.get_row(row_key)
        if row is None:
            return False
        if confirm is not None and not confirm(row):
            return False

        if not isinstance(row, PersistedRow):
            return self._remove_pending(row.local_id)

        deleted = await self.store.delete_row(row.id)
        if not deleted:
            LOGGER.warning(f"Row {row.id} was already gone from storage")
        self.persisted_rows = [existing for existing in self.persisted_rows if existing.id != row.id]
        return deleted

    def reconcile_on_reload(
        self,
        fresh_document: Document,
        policy: Optional[ReloadPolicy] = None,
    ) -> List[LocalRow]:
        """Adopt an externally reloaded document.

        Durable rows are replaced wholesale. Under ``DISCARD_PENDING`` the
        local rows are dropped; under ``PRESERVE_PENDING`` they are kept.

        Returns:
            The local rows that were discarded
        """
        if self.document_id is not None and fresh_document.id != self.document_id:
            raise ValidationError(
                f"Cannot reconcile document {self.document_id} with {fresh_document.id}"
            )

        policy = policy or self.reload_policy
        self._replace_document(fresh_document)

        if policy is ReloadPolicy.PRESERVE_PENDING:
            self.pending_rows = [
                row.model_copy(update={"document_id": fresh_document.id}) for row in self.pending_rows
            ]
            return []

        discarded = self.pending_rows
        self.pending_rows = []
        if discarded:
            LOGGER.warning(
                f"Discarded {len(discarded)} unsaved rows on reload",
                extra={"document_id": str(fresh_document.id)},
            )
        return discarded
