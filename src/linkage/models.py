from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict

from .extensions import db


class Mechanism(db.Model):  # type: ignore
    """A stored mechanism document in its canonical JSON form."""

    __tablename__ = "mechanisms"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    json_blob = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def document(self) -> Dict[str, Any]:
        return json.loads(self.json_blob)

    def summary(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}
