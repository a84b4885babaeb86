from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import CheckConstraint

from .. import db

LIST_STATUSES = ("pending", "in_progress", "completed")
URGENCY_LEVELS = ("priority", "end_of_day", "within_48h")


class PrepList(db.Model):  # type: ignore[misc]
    __tablename__ = "prep_lists"
    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    venue_id = db.Column(db.Integer, db.ForeignKey("venues.id"))
    name = db.Column(db.String(120), nullable=False, default="Prep")
    prep_date = db.Column(db.Date, nullable=False, index=True)
    status = db.Column(db.String(12), nullable=False, default="pending")
    notes = db.Column(db.Text)
    created_by = db.Column(db.Integer, db.ForeignKey("members.id"))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    items = db.relationship(
        "PrepItem",
        backref="prep_list",
        cascade="all, delete-orphan",
        order_by="PrepItem.id",
    )

    __table_args__ = (
        CheckConstraint(
            "status in ('pending','in_progress','completed')", name="ck_prep_list_status"
        ),
    )

    def refresh_status(self) -> None:
        # Status acompanha os itens: todos feitos => completed
        if not self.items:
            self.status = "pending"
        elif all(i.completed for i in self.items):
            self.status = "completed"
        elif any(i.completed for i in self.items):
            self.status = "in_progress"
        else:
            self.status = "pending"

    def to_dict(self, with_items: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "org_id": self.org_id,
            "venue_id": self.venue_id,
            "name": self.name,
            "prep_date": self.prep_date.isoformat(),
            "status": self.status,
            "notes": self.notes,
        }
        if with_items:
            data["items"] = [i.to_dict() for i in self.items]
        return data


class PrepItem(db.Model):  # type: ignore[misc]
    __tablename__ = "prep_items"
    id = db.Column(db.Integer, primary_key=True)
    prep_list_id = db.Column(
        db.Integer, db.ForeignKey("prep_lists.id", ondelete="CASCADE"), nullable=False, index=True
    )
    task = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.String(50))
    station = db.Column(db.String(50))
    urgency = db.Column(db.String(12), nullable=False, default="within_48h")
    completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "prep_list_id": self.prep_list_id,
            "task": self.task,
            "quantity": self.quantity,
            "station": self.station,
            "urgency": self.urgency,
            "completed": self.completed,
        }
