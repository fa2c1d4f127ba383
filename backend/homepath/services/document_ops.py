# backend/homepath/services/document_ops.py
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import desc

from ..domain.document_types import INITIAL_VERSION, classify_mime_type, next_version
from ..domain.enums import DocumentCategory, DocumentPermission, coerce
from ..domain.errors import Forbidden, InvalidInput, NotFound
from ..models import AppUser, Document, DocumentShare, DocumentVersion, Property
from ..schemas import DocumentRegister, DocumentShareIn, DocumentUpdate, DocumentVersionIn
from .events_facade import journal
from .ownership import must_get_document, must_get_property, must_get_step, must_own_document, must_own_property
from .store import PortfolioStore

# fields an edit may set but never clear
_REQUIRED_FIELDS = ("name", "category")


def _snapshot(doc: Document) -> dict[str, Any]:
    return {
        "name": doc.name,
        "category": doc.category,
        "doc_type": doc.doc_type,
        "version": doc.version,
        "expiration_date": doc.expiration_date,
        "size_bytes": doc.size_bytes,
        "is_active": doc.is_active,
    }


def list_property_documents(store: PortfolioStore, *, user_id: int, property_id: int) -> list[Document]:
    must_get_property(store, user_id=user_id, property_id=property_id)
    return store.find(
        Document,
        Document.property_id == int(property_id),
        Document.is_active.is_(True),
        order_by=(desc(Document.created_at), desc(Document.id)),
    )


def get_document(store: PortfolioStore, *, user_id: int, document_id: int) -> Document:
    return must_get_document(store, user_id=user_id, document_id=document_id)


def register_document(store: PortfolioStore, *, user_id: int, payload: DocumentRegister, now: datetime) -> Document:
    """
    Record an already-stored file against one of the caller's properties.

    doc_type is always derived from the media kind, never taken from input.
    """
    prop = must_own_property(store, user_id=user_id, property_id=payload.property_id)
    if payload.step_id is not None:
        _, step_prop = must_get_step(store, user_id=user_id, step_id=payload.step_id)
        if step_prop.id != prop.id:
            raise InvalidInput("step does not belong to this property")

    doc = Document(
        property_id=prop.id,
        step_id=payload.step_id,
        uploaded_by_user_id=int(user_id),
        name=payload.name.strip(),
        description=payload.description,
        category=coerce(DocumentCategory, payload.category).value,
        doc_type=classify_mime_type(payload.mime_type),
        original_name=payload.original_name,
        filename=payload.filename,
        storage_path=payload.storage_path,
        mime_type=payload.mime_type,
        size_bytes=int(payload.size_bytes),
        checksum=payload.checksum,
        version=INITIAL_VERSION,
        download_count=0,
        expiration_date=payload.expiration_date,
        created_at=now,
        updated_at=now,
    )
    store.add(doc)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="document.register",
        entity_type="Document",
        entity_id=doc.id,
        event_type="document_uploaded",
        property_id=prop.id,
        after=_snapshot(doc),
        payload={"document_id": int(doc.id), "category": doc.category, "doc_type": doc.doc_type},
    )
    store.commit()
    return store.refresh(doc)


def record_document_download(store: PortfolioStore, *, user_id: int, document_id: int, now: datetime) -> Document:
    doc = must_get_document(store, user_id=user_id, document_id=document_id)

    doc.download_count = int(doc.download_count or 0) + 1
    doc.last_downloaded_at = now
    doc.last_downloaded_by_user_id = int(user_id)
    store.add(doc)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="document.download",
        entity_type="Document",
        entity_id=doc.id,
        event_type="document_downloaded",
        property_id=doc.property_id,
        payload={"document_id": int(doc.id), "download_count": doc.download_count},
    )
    store.commit()
    return store.refresh(doc)


def _can_edit(store: PortfolioStore, doc: Document, *, user_id: int) -> bool:
    prop = store.get(Property, doc.property_id)
    if prop is not None and int(prop.owner_id) == int(user_id):
        return True
    share = store.find_one(
        DocumentShare,
        DocumentShare.document_id == doc.id,
        DocumentShare.user_id == int(user_id),
    )
    return share is not None and share.permission == DocumentPermission.EDIT.value


def add_document_version(
    store: PortfolioStore,
    *,
    user_id: int,
    document_id: int,
    payload: DocumentVersionIn,
    now: datetime,
) -> Document:
    """
    New file revision: minor version bump, and the document row now points at
    the new file. A changed media kind re-derives doc_type.
    """
    doc = must_get_document(store, user_id=user_id, document_id=document_id)
    if not _can_edit(store, doc, user_id=user_id):
        raise Forbidden("edit permission required")

    prior = _snapshot(doc)
    version = next_version([v.version for v in doc.versions])
    doc.versions.append(
        DocumentVersion(
            version=version,
            filename=payload.filename,
            storage_path=payload.storage_path,
            size_bytes=int(payload.size_bytes),
            uploaded_by_user_id=int(user_id),
            changelog=payload.changelog or "New version",
            uploaded_at=now,
        )
    )
    doc.version = version
    doc.filename = payload.filename
    doc.storage_path = payload.storage_path
    doc.size_bytes = int(payload.size_bytes)
    if payload.mime_type and payload.mime_type != doc.mime_type:
        doc.mime_type = payload.mime_type
        doc.doc_type = classify_mime_type(payload.mime_type)
    doc.updated_at = now
    store.add(doc)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="document.version",
        entity_type="Document",
        entity_id=doc.id,
        event_type="document_version_added",
        property_id=doc.property_id,
        before=prior,
        after=_snapshot(doc),
        payload={"document_id": int(doc.id), "version": version},
    )
    store.commit()
    return store.refresh(doc)


def update_document(
    store: PortfolioStore,
    *,
    user_id: int,
    document_id: int,
    payload: DocumentUpdate,
    now: datetime,
) -> Document:
    """
    Metadata only: name, description, category and expiration. File contents
    change through add_document_version.
    """
    doc, prop = must_own_document(store, user_id=user_id, document_id=document_id)

    changes = payload.model_dump(exclude_unset=True)
    for name in _REQUIRED_FIELDS:
        if name in changes and changes[name] is None:
            raise InvalidInput(f"{name} cannot be cleared")
    if "name" in changes:
        changes["name"] = changes["name"].strip()
    if "category" in changes:
        changes["category"] = coerce(DocumentCategory, changes["category"]).value

    prior = _snapshot(doc)
    for name, value in changes.items():
        setattr(doc, name, value)
    doc.updated_at = now
    store.add(doc)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="document.update",
        entity_type="Document",
        entity_id=doc.id,
        event_type="document_updated",
        property_id=prop.id,
        before=prior,
        after=_snapshot(doc),
        payload={"document_id": int(doc.id), "fields": sorted(changes)},
    )
    store.commit()
    return store.refresh(doc)


def share_document(
    store: PortfolioStore,
    *,
    user_id: int,
    document_id: int,
    payload: DocumentShareIn,
    now: datetime,
) -> Document:
    doc, prop = must_own_document(store, user_id=user_id, document_id=document_id)

    target = store.find_one(AppUser, AppUser.email == payload.user_email.strip().lower())
    if target is None:
        raise NotFound("user not found")
    if int(target.id) == int(prop.owner_id):
        raise InvalidInput("cannot share a document with its owner")

    permission = coerce(DocumentPermission, payload.permission).value
    share = store.find_one(
        DocumentShare,
        DocumentShare.document_id == doc.id,
        DocumentShare.user_id == int(target.id),
    )
    if share is None:
        share = DocumentShare(document_id=doc.id, user_id=int(target.id), permission=permission, shared_at=now)
    else:
        share.permission = permission
    store.add(share)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="document.share",
        entity_type="Document",
        entity_id=doc.id,
        event_type="document_shared",
        property_id=prop.id,
        after={"user_id": int(target.id), "permission": permission},
    )
    store.commit()
    return store.refresh(doc)


def delete_document(store: PortfolioStore, *, user_id: int, document_id: int, now: datetime) -> None:
    doc, prop = must_own_document(store, user_id=user_id, document_id=document_id)

    prior = _snapshot(doc)
    doc.is_active = False
    doc.updated_at = now
    store.add(doc)

    journal.record(
        store,
        now=now,
        actor_user_id=user_id,
        action="document.delete",
        entity_type="Document",
        entity_id=doc.id,
        event_type="document_deleted",
        property_id=prop.id,
        before=prior,
        after=_snapshot(doc),
    )
    store.commit()
