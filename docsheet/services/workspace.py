"""Per-user working set of documents, templates and open row state."""

from typing import Dict, List, Optional
from uuid import UUID

from docsheet.core.config import ReloadPolicy
from docsheet.core.exceptions import DocumentNotFoundError
from docsheet.schemas.documents import Document, LocalRow, Template
from docsheet.services.row_reconciler import RowStoreReconciler
from docsheet.services.store import DocumentStore
from docsheet.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Workspace:
    """Explicit store of what one user is working on.

    Each opened document gets exactly one ``RowStoreReconciler`` for the
    lifetime of the workspace. Refreshing the document list reconciles
    every open reconciler with its fresh copy.
    """

    def __init__(
        self,
        store: DocumentStore,
        user_id: str,
        reload_policy: Optional[ReloadPolicy] = None,
    ):
        self.store = store
        self.user_id = user_id
        self.reload_policy = reload_policy
        self.documents: List[Document] = []
        self.templates: List[Template] = []
        self._reconcilers: Dict[UUID, RowStoreReconciler] = {}
        # Pending rows dropped by the last refresh, per document
        self.discarded: Dict[UUID, List[LocalRow]] = {}

    def document(self, document_id: UUID) -> Optional[Document]:
        for document in self.documents:
            if document.id == document_id:
                return document
        return None

    async def refresh_documents(self) -> List[Document]:
        """Reload the document list and reconcile open documents."""
        self.documents = await self.store.get_documents(self.user_id)
        self.discarded = {}

        for document_id, reconciler in self._reconcilers.items():
            fresh = self.document(document_id)
            if fresh is None:
                LOGGER.info(f"Open document {document_id} no longer listed, leaving its state as is")
                continue
            dropped = reconciler.reconcile_on_reload(fresh, policy=self.reload_policy)
            if dropped:
                self.discarded[document_id] = dropped
        return self.documents

    async def refresh_templates(self) -> List[Template]:
        self.templates = await self.store.get_templates(self.user_id)
        return self.templates

    async def open_document(self, document_id: UUID) -> RowStoreReconciler:
        """Return the reconciler for a document, loading it on first use.

        Raises:
            DocumentNotFoundError: If storage has no such document, or it
                belongs to another user
        """
        reconciler = self._reconcilers.get(document_id)
        if reconciler is not None:
            return reconciler

        document = self.document(document_id) or await self.store.get_document(document_id)
        if document is None or document.user_id != self.user_id:
            raise DocumentNotFoundError(f"Document with ID {document_id} not found")

        reconciler = RowStoreReconciler(self.store, document, reload_policy=self.reload_policy)
        self._reconcilers[document_id] = reconciler
        return reconciler

    def close_document(self, document_id: UUID) -> None:
        self._reconcilers.pop(document_id, None)
