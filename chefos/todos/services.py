"""Serviços de tarefas (todos), regras recorrentes e delegações.

Mantém regras de negócio fora das rotas; o gerador diário de tarefas
recorrentes é chamado tanto pelo comando CLI quanto pela rota de cron.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from .. import db
from ..auth.models import Member
from .models import PRIORITIES, RecurringRule, TaskDelegation, TodoItem
from .recurrence import build_recurrence, recurrence_from_rule

logger = logging.getLogger("chefos.todos.recurring")


# ===================== Todos =====================
def _member_in_org(member_id: int | None, org_id: int) -> None:
    if member_id is None:
        return
    member = db.session.get(Member, member_id)
    if member is None or member.org_id != org_id:
        raise ValueError(f"member {member_id} does not belong to org {org_id}")


def create_todo(org_id: int, data: dict[str, Any], created_by: int | None = None) -> TodoItem:
    title = str(data.get("title") or "").strip()
    if not title:
        raise ValueError("title is required")
    priority = data.get("priority") or "medium"
    if priority not in PRIORITIES:
        raise ValueError(f"invalid priority: {priority}")
    todo = TodoItem()
    todo.org_id = org_id
    todo.title = title
    todo.description = data.get("description") or None
    todo.priority = priority
    todo.category = data.get("category") or "general"
    todo.due_date = data.get("due_date")
    todo.created_by = created_by
    db.session.add(todo)
    db.session.commit()
    return todo


def update_todo(todo: TodoItem, data: dict[str, Any]) -> TodoItem:
    if "title" in data:
        title = str(data.get("title") or "").strip()
        if not title:
            raise ValueError("title cannot be empty")
        todo.title = title
    if "description" in data:
        todo.description = data.get("description") or None
    if "priority" in data:
        if data["priority"] not in PRIORITIES:
            raise ValueError(f"invalid priority: {data['priority']}")
        todo.priority = data["priority"]
    if "category" in data:
        todo.category = data.get("category") or "general"
    if "due_date" in data:
        todo.due_date = data.get("due_date")
    db.session.commit()
    return todo


def complete_todo(todo: TodoItem, done: bool = True) -> TodoItem:
    todo.status = "done" if done else "pending"
    todo.completed_at = datetime.utcnow() if done else None
    # delegações acompanham a tarefa
    for delegation in todo.delegations.all():  # type: ignore[attr-defined]
        if done:
            delegation.status = "done"
        elif delegation.status == "done":
            delegation.status = "pending"
    db.session.commit()
    return todo


def delete_todo(todo: TodoItem) -> None:
    TaskDelegation.query.filter_by(todo_id=todo.id).delete()
    db.session.delete(todo)
    db.session.commit()


def list_todos(org_id: int, due_date: date | None = None, status: str | None = None):
    q = TodoItem.query.filter_by(org_id=org_id)
    if due_date is not None:
        q = q.filter(TodoItem.due_date == due_date)
    if status:
        q = q.filter(TodoItem.status == status)
    return q.order_by(TodoItem.due_date.is_(None), TodoItem.due_date, TodoItem.id).all()


# ===================== Regras recorrentes =====================
def _apply_rule_fields(rule: RecurringRule, data: dict[str, Any]) -> None:
    if "title" in data:
        title = str(data.get("title") or "").strip()
        if not title:
            raise ValueError("title is required")
        rule.title = title
    if "description" in data:
        rule.description = data.get("description") or None
    if "priority" in data:
        if data["priority"] not in PRIORITIES:
            raise ValueError(f"invalid priority: {data['priority']}")
        rule.priority = data["priority"]
    if "category" in data:
        rule.category = data.get("category") or "general"
    if "recurrence_type" in data:
        rule.recurrence_type = data["recurrence_type"]
    if "days_of_week" in data:
        days = sorted({int(d) for d in (data.get("days_of_week") or [])})
        rule.days_of_week = ",".join(str(d) for d in days) or None
    if "day_of_month" in data:
        rule.day_of_month = data.get("day_of_month")
    if "delegate_to" in data:
        _member_in_org(data.get("delegate_to"), rule.org_id)
        rule.delegate_to = data.get("delegate_to")
    if "active" in data:
        rule.active = bool(data["active"])
    # valida o descritor final (ex.: weekly sem dias)
    build_recurrence(rule.recurrence_type, rule.weekdays(), rule.day_of_month)


def create_rule(org_id: int, data: dict[str, Any], created_by: int | None = None) -> RecurringRule:
    rule = RecurringRule()
    rule.org_id = org_id
    rule.created_by = created_by
    rule.recurrence_type = "daily"
    rule.priority = "medium"
    rule.category = "general"
    rule.active = True
    if "title" not in data:
        raise ValueError("title is required")
    _apply_rule_fields(rule, data)
    db.session.add(rule)
    db.session.commit()
    return rule


def update_rule(rule: RecurringRule, data: dict[str, Any]) -> RecurringRule:
    try:
        _apply_rule_fields(rule, data)
    except ValueError:
        db.session.rollback()
        raise
    db.session.commit()
    return rule


def deactivate_rule(rule: RecurringRule) -> RecurringRule:
    rule.active = False
    db.session.commit()
    return rule


def list_rules(org_id: int, include_inactive: bool = False):
    q = RecurringRule.query.filter_by(org_id=org_id)
    if not include_inactive:
        q = q.filter(RecurringRule.active.is_(True))
    return q.order_by(RecurringRule.title).all()


# ===================== Delegações =====================
def delegate_todo(todo: TodoItem, delegated_to: int, delegated_by: int | None = None) -> TaskDelegation:
    _member_in_org(delegated_to, todo.org_id)
    delegation = TaskDelegation()
    delegation.org_id = todo.org_id
    delegation.todo_id = todo.id
    delegation.delegated_by = delegated_by
    delegation.delegated_to = delegated_to
    delegation.due_date = todo.due_date
    db.session.add(delegation)
    db.session.commit()
    return delegation


def set_delegation_status(delegation: TaskDelegation, status: str) -> TaskDelegation:
    if status not in ("pending", "accepted", "done"):
        raise ValueError(f"invalid delegation status: {status}")
    delegation.status = status
    if status == "done" and delegation.todo is not None:
        delegation.todo.status = "done"
        delegation.todo.completed_at = datetime.utcnow()
    db.session.commit()
    return delegation


def list_delegations(org_id: int, member_id: int | None = None, due_date: date | None = None):
    q = TaskDelegation.query.filter_by(org_id=org_id)
    if member_id is not None:
        q = q.filter(TaskDelegation.delegated_to == member_id)
    if due_date is not None:
        q = q.filter(TaskDelegation.due_date == due_date)
    return q.order_by(TaskDelegation.due_date, TaskDelegation.id).all()


# ===================== Gerador diário =====================
def _todo_exists(org_id: int, title: str, due: date) -> bool:
    return (
        TodoItem.query.filter_by(org_id=org_id, title=title, due_date=due).first() is not None
    )


def generate_recurring_todos(today: date | None = None) -> dict[str, Any]:
    """Expand every active rule that fires on `today` into a todo row.

    Duplicate suppression is a read-then-write check on (org, title,
    due_date); each rule is committed on its own so one bad rule does not
    abort the run.
    """
    today = today or date.today()
    summary: dict[str, Any] = {
        "date": today.isoformat(),
        "rules": 0,
        "created": 0,
        "skipped": 0,
        "delegations": 0,
        "errors": 0,
    }
    rules = RecurringRule.query.filter(RecurringRule.active.is_(True)).order_by(RecurringRule.id).all()
    summary["rules"] = len(rules)
    for rule in rules:
        try:
            if not recurrence_from_rule(rule).occurs_on(today):
                continue
            if _todo_exists(rule.org_id, rule.title, today):
                summary["skipped"] += 1
                continue
            todo = TodoItem()
            todo.org_id = rule.org_id
            todo.title = rule.title
            todo.description = rule.description
            todo.priority = rule.priority or "medium"
            todo.category = rule.category or "general"
            todo.due_date = today
            todo.recurring_rule_id = rule.id
            todo.created_by = rule.created_by
            db.session.add(todo)
            db.session.flush()
            if rule.delegate_to:
                delegation = TaskDelegation()
                delegation.org_id = rule.org_id
                delegation.todo_id = todo.id
                delegation.delegated_by = rule.created_by
                delegation.delegated_to = rule.delegate_to
                delegation.due_date = today
                db.session.add(delegation)
                summary["delegations"] += 1
            rule.last_generated_on = today
            db.session.commit()
            summary["created"] += 1
        except Exception as exc:
            db.session.rollback()
            summary["errors"] += 1
            logger.error("Recurring rule %s failed: %s", rule.id, exc)
    logger.info(
        "Recurring todos %s: %s rules, %s created, %s skipped, %s delegations, %s errors",
        summary["date"],
        summary["rules"],
        summary["created"],
        summary["skipped"],
        summary["delegations"],
        summary["errors"],
    )
    return summary
