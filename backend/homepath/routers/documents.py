# backend/homepath/routers/documents.py
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..domain.document_types import format_size
from ..models import Document
from ..schemas import DocumentOut, DocumentRegister, DocumentShareIn, DocumentUpdate, DocumentVersionIn
from ..services import document_ops
from ..services.store import PortfolioStore

router = APIRouter(prefix="/documents", tags=["documents"])


def document_out(doc: Document, *, now: datetime) -> DocumentOut:
    out = DocumentOut.model_validate(doc)
    out.formatted_size = format_size(int(doc.size_bytes or 0))
    out.is_expired = doc.expiration_date is not None and doc.expiration_date < now
    return out


@router.get("/property/{property_id}", response_model=list[DocumentOut])
def list_documents(property_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    now = datetime.utcnow()
    rows = document_ops.list_property_documents(PortfolioStore(db), user_id=p.user_id, property_id=property_id)
    return [document_out(d, now=now) for d in rows]


@router.get("/{document_id}", response_model=DocumentOut)
def get_document(document_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    row = document_ops.get_document(PortfolioStore(db), user_id=p.user_id, document_id=document_id)
    return document_out(row, now=datetime.utcnow())


@router.post("", response_model=DocumentOut, status_code=201)
def register_document(payload: DocumentRegister, db: Session = Depends(get_db), p=Depends(get_principal)):
    now = datetime.utcnow()
    row = document_ops.register_document(PortfolioStore(db), user_id=p.user_id, payload=payload, now=now)
    return document_out(row, now=now)


@router.put("/{document_id}", response_model=DocumentOut)
def update_document(
    document_id: int,
    payload: DocumentUpdate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    now = datetime.utcnow()
    row = document_ops.update_document(
        PortfolioStore(db), user_id=p.user_id, document_id=document_id, payload=payload, now=now
    )
    return document_out(row, now=now)


@router.post("/{document_id}/download", response_model=DocumentOut)
def record_download(document_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    """
    Counts a download. Serving the bytes is the file store's job.
    """
    now = datetime.utcnow()
    row = document_ops.record_document_download(PortfolioStore(db), user_id=p.user_id, document_id=document_id, now=now)
    return document_out(row, now=now)


@router.post("/{document_id}/versions", response_model=DocumentOut)
def add_version(
    document_id: int,
    payload: DocumentVersionIn,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    now = datetime.utcnow()
    row = document_ops.add_document_version(
        PortfolioStore(db), user_id=p.user_id, document_id=document_id, payload=payload, now=now
    )
    return document_out(row, now=now)


@router.post("/{document_id}/share", response_model=DocumentOut)
def share_document(
    document_id: int,
    payload: DocumentShareIn,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    now = datetime.utcnow()
    row = document_ops.share_document(
        PortfolioStore(db), user_id=p.user_id, document_id=document_id, payload=payload, now=now
    )
    return document_out(row, now=now)


@router.delete("/{document_id}", status_code=204)
def delete_document(document_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    document_ops.delete_document(PortfolioStore(db), user_id=p.user_id, document_id=document_id, now=datetime.utcnow())
