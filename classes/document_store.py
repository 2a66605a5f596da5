# classes/document_store.py

import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from classes.config import DOCUMENT_ID, SEED_IF_EMPTY, create_session_factory
from classes.entities import Base, CollectionDocument
from classes.errors import DocumentStoreError
from classes.models import AppData
from classes.seed_data import seed_document

logger = logging.getLogger("gallery_backend")


class DocumentStore:
    """
    Wholesale read/write of the aggregate document in a single table row.

    No partial updates and no versioning: save() replaces whatever is stored.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        document_id: str = DOCUMENT_ID,
        seed_if_empty: bool = SEED_IF_EMPTY,
    ):
        self.SessionFactory = session_factory or create_session_factory()
        self.document_id = document_id
        self.seed_if_empty = seed_if_empty
        Base.metadata.create_all(self.SessionFactory.kw["bind"])

    def load(self) -> AppData:
        """
        Returns the stored document. A missing row yields the seed collection
        (or an empty document when seeding is off). Raises DocumentStoreError
        when the database or the stored JSON cannot be read.
        """
        session = self.SessionFactory()
        try:
            row = session.get(CollectionDocument, self.document_id)
            if row is None:
                logger.info(f"[DocumentStore] No document '{self.document_id}' yet; seed={self.seed_if_empty}")
                return seed_document() if self.seed_if_empty else AppData()
            return AppData.model_validate(row.content or {})
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"Could not read the collection: {e}") from e
        except ValidationError as e:
            raise DocumentStoreError(f"Stored collection is malformed: {e}") from e
        finally:
            session.close()

    def save(self, doc: AppData) -> None:
        content = doc.to_json_dict()
        session = self.SessionFactory()
        try:
            row = session.get(CollectionDocument, self.document_id)
            if row is None:
                session.add(CollectionDocument(document_id=self.document_id, content=content))
            else:
                row.content = content
            session.commit()
            logger.debug(
                f"[DocumentStore] Saved {len(doc.minerals)} minerals, "
                f"{len(doc.home_page_layout)} components, {len(doc.layout_history)} history entries."
            )
        except SQLAlchemyError as e:
            session.rollback()
            raise DocumentStoreError(f"Could not save the collection: {e}") from e
        finally:
            session.close()
