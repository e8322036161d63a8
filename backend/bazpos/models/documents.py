from __future__ import annotations

from ..extensions import db


class StoredDocument(db.Model):
    """
    One keyed JSON document inside a named collection.

    WHY: Every entity family (products, sales, shipments, defects, shifts,
    config, ...) is addressed by collection name + identifier, the way the
    store was originally laid out. The JSON body is the data contract shared
    with the UI and the rendering side.

    CONCURRENCY: version_id is SQLAlchemy's optimistic lock. Two transactions
    that read the same document and both write it cannot both commit: the
    second UPDATE matches zero rows and raises StaleDataError, which the
    service layer retries (see services/concurrency.py).
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.Index("ix_documents_collection_updated", "collection", "updated_at"),
    )

    collection = db.Column(db.String(64), primary_key=True)
    doc_id = db.Column(db.String(128), primary_key=True)

    data = db.Column(db.JSON, nullable=False, default=dict)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<StoredDocument {self.collection}/{self.doc_id} v{self.version_id}>"
