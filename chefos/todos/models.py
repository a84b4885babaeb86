from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import CheckConstraint

from .. import db

PRIORITIES = ("low", "medium", "high")
RECURRENCE_TYPES = ("daily", "weekly", "monthly")


class TodoItem(db.Model):  # type: ignore[misc]
    __tablename__ = "todo_items"
    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    priority = db.Column(db.String(10), nullable=False, default="medium")
    category = db.Column(db.String(50), nullable=False, default="general")
    status = db.Column(db.String(10), nullable=False, default="pending")
    due_date = db.Column(db.Date, index=True)
    recurring_rule_id = db.Column(db.Integer, db.ForeignKey("recurring_rules.id"))
    created_by = db.Column(db.Integer, db.ForeignKey("members.id"))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    completed_at = db.Column(db.DateTime)

    __table_args__ = (
        CheckConstraint("status in ('pending','done')", name="ck_todo_status"),
        CheckConstraint("priority in ('low','medium','high')", name="ck_todo_priority"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "category": self.category,
            "status": self.status,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "recurring_rule_id": self.recurring_rule_id,
            "created_by": self.created_by,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class RecurringRule(db.Model):  # type: ignore[misc]
    __tablename__ = "recurring_rules"
    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    priority = db.Column(db.String(10), nullable=False, default="medium")
    category = db.Column(db.String(50), nullable=False, default="general")
    recurrence_type = db.Column(db.String(10), nullable=False, default="daily")
    # Dias da semana "0,3,5" (0 = domingo ... 6 = sábado)
    days_of_week = db.Column(db.String(20))
    day_of_month = db.Column(db.Integer)
    delegate_to = db.Column(db.Integer, db.ForeignKey("members.id"))
    created_by = db.Column(db.Integer, db.ForeignKey("members.id"))
    active = db.Column(db.Boolean, nullable=False, default=True)
    last_generated_on = db.Column(db.Date)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(
            "recurrence_type in ('daily','weekly','monthly')", name="ck_rule_recurrence_type"
        ),
    )

    def weekdays(self) -> list[int]:
        raw = self.days_of_week or ""
        return sorted({int(x) for x in raw.split(",") if x.strip().isdigit()})

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "category": self.category,
            "recurrence_type": self.recurrence_type,
            "days_of_week": self.weekdays(),
            "day_of_month": self.day_of_month,
            "delegate_to": self.delegate_to,
            "active": self.active,
            "last_generated_on": (
                self.last_generated_on.isoformat() if self.last_generated_on else None
            ),
        }


class TaskDelegation(db.Model):  # type: ignore[misc]
    __tablename__ = "task_delegations"
    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    todo_id = db.Column(db.Integer, db.ForeignKey("todo_items.id"), nullable=False)
    delegated_by = db.Column(db.Integer, db.ForeignKey("members.id"))
    delegated_to = db.Column(db.Integer, db.ForeignKey("members.id"), nullable=False, index=True)
    status = db.Column(db.String(10), nullable=False, default="pending")
    due_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    todo = db.relationship("TodoItem", backref=db.backref("delegations", lazy="dynamic"))

    __table_args__ = (
        CheckConstraint(
            "status in ('pending','accepted','done')", name="ck_delegation_status"
        ),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "todo_id": self.todo_id,
            "title": self.todo.title if self.todo else None,
            "delegated_by": self.delegated_by,
            "delegated_to": self.delegated_to,
            "status": self.status,
            "due_date": self.due_date.isoformat() if self.due_date else None,
        }
