from __future__ import annotations

from ..extensions import db
from efectivio.time_utils import to_utc_z


class StoredFile(db.Model):
    """
    Metadata row for an object held in external object storage.

    The object itself lives at (bucket, path); this row is what the API lists
    and what ownership checks run against.
    """
    __tablename__ = "files"
    __table_args__ = (
        db.Index("ix_files_category", "category"),
        db.Index("ix_files_client", "client_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    path = db.Column(db.String(1024), nullable=False, unique=True)
    bucket = db.Column(db.String(64), nullable=False)
    size = db.Column(db.Integer, nullable=False, default=0)
    mime_type = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(64), nullable=False, default="other")

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "bucket": self.bucket,
            "size": self.size,
            "mime_type": self.mime_type,
            "category": self.category,
            "client_id": self.client_id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
