from flask import Blueprint, g, jsonify, request

from ..auth.auth import cron_required, require_roles
from ..gating.gating import feature_required
from ..utils_api import (
    error_response,
    form_errors,
    form_from_json,
    json_body,
    parse_date_arg,
    present_data,
    resolve_org_id,
    scope_org_id,
)
from ..utils_db import get_scoped_or_404
from . import services
from .forms import DelegationForm, RecurringRuleForm, TodoForm
from .models import RecurringRule, TaskDelegation, TodoItem

todos_bp = Blueprint("todos", __name__)


def _member_id():
    member = getattr(g, "member", None)
    return member.id if member is not None else None


# ===================== Todos =====================
@todos_bp.route("", methods=["GET"])
@require_roles()
@feature_required("todo")
def list_todos():
    org_id = resolve_org_id()
    due = parse_date_arg(request.args.get("date"))
    status = request.args.get("status") or None
    return jsonify([t.to_dict() for t in services.list_todos(org_id, due, status)])


@todos_bp.route("", methods=["POST"])
@require_roles()
@feature_required("todo")
def create_todo():
    payload = json_body()
    org_id = resolve_org_id()
    form = form_from_json(TodoForm, payload)
    if not form.validate():
        return error_response(form_errors(form))
    try:
        todo = services.create_todo(org_id, form.data, created_by=_member_id())
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "todo": todo.to_dict()}), 201


@todos_bp.route("/<int:todo_id>", methods=["GET"])
@require_roles()
@feature_required("todo")
def get_todo(todo_id: int):
    todo = get_scoped_or_404(TodoItem, todo_id, scope_org_id())
    data = todo.to_dict()
    data["delegations"] = [d.to_dict() for d in todo.delegations.all()]
    return jsonify(data)


@todos_bp.route("/<int:todo_id>", methods=["PATCH"])
@require_roles()
@feature_required("todo")
def update_todo(todo_id: int):
    todo = get_scoped_or_404(TodoItem, todo_id, scope_org_id())
    payload = json_body()
    # completa campos obrigatórios ausentes para validar só o que veio
    form = form_from_json(TodoForm, {"title": todo.title, **payload})
    if not form.validate():
        return error_response(form_errors(form))
    try:
        services.update_todo(todo, present_data(form, payload))
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "todo": todo.to_dict()})


@todos_bp.route("/<int:todo_id>/complete", methods=["POST"])
@require_roles()
@feature_required("todo")
def complete_todo(todo_id: int):
    todo = get_scoped_or_404(TodoItem, todo_id, scope_org_id())
    payload = json_body()
    services.complete_todo(todo, bool(payload.get("done", True)))
    return jsonify({"status": "success", "todo": todo.to_dict()})


@todos_bp.route("/<int:todo_id>", methods=["DELETE"])
@require_roles()
@feature_required("todo")
def delete_todo(todo_id: int):
    todo = get_scoped_or_404(TodoItem, todo_id, scope_org_id())
    services.delete_todo(todo)
    return jsonify({"status": "success"})


# ===================== Regras recorrentes =====================
@todos_bp.route("/rules", methods=["GET"])
@require_roles()
@feature_required("todo")
def list_rules():
    org_id = resolve_org_id()
    include_inactive = request.args.get("all") in ("1", "true", "yes")
    return jsonify([r.to_dict() for r in services.list_rules(org_id, include_inactive)])


@todos_bp.route("/rules", methods=["POST"])
@require_roles("kitchen_leads")
@feature_required("todo")
def create_rule():
    payload = json_body()
    org_id = resolve_org_id()
    form = form_from_json(RecurringRuleForm, payload)
    if not form.validate():
        return error_response(form_errors(form))
    data = present_data(form, payload)
    data.setdefault("recurrence_type", form.recurrence_type.data)
    try:
        rule = services.create_rule(org_id, data, created_by=_member_id())
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "rule": rule.to_dict()}), 201


@todos_bp.route("/rules/<int:rule_id>", methods=["PATCH"])
@require_roles("kitchen_leads")
@feature_required("todo")
def update_rule(rule_id: int):
    rule = get_scoped_or_404(RecurringRule, rule_id, scope_org_id())
    payload = json_body()
    base = {"title": rule.title, "recurrence_type": rule.recurrence_type}
    form = form_from_json(RecurringRuleForm, {**base, **payload})
    if not form.validate():
        return error_response(form_errors(form))
    try:
        services.update_rule(rule, present_data(form, payload))
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "rule": rule.to_dict()})


@todos_bp.route("/rules/<int:rule_id>", methods=["DELETE"])
@require_roles("kitchen_leads")
@feature_required("todo")
def deactivate_rule(rule_id: int):
    rule = get_scoped_or_404(RecurringRule, rule_id, scope_org_id())
    services.deactivate_rule(rule)
    return jsonify({"status": "success", "rule": rule.to_dict()})


# ===================== Delegações =====================
@todos_bp.route("/<int:todo_id>/delegate", methods=["POST"])
@require_roles("kitchen_leads")
@feature_required("todo")
def delegate(todo_id: int):
    todo = get_scoped_or_404(TodoItem, todo_id, scope_org_id())
    form = form_from_json(DelegationForm)
    if not form.validate():
        return error_response(form_errors(form))
    try:
        delegation = services.delegate_todo(todo, form.delegated_to.data, delegated_by=_member_id())
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "delegation": delegation.to_dict()}), 201


@todos_bp.route("/delegations", methods=["GET"])
@require_roles()
@feature_required("todo")
def list_delegations():
    org_id = resolve_org_id()
    member_id = request.args.get("member_id", type=int)
    if member_id is None and request.args.get("mine"):
        member_id = _member_id()
    due = parse_date_arg(request.args.get("date"))
    return jsonify([d.to_dict() for d in services.list_delegations(org_id, member_id, due)])


@todos_bp.route("/delegations/<int:delegation_id>", methods=["POST"])
@require_roles()
@feature_required("todo")
def update_delegation(delegation_id: int):
    delegation = get_scoped_or_404(TaskDelegation, delegation_id, scope_org_id())
    payload = json_body()
    try:
        services.set_delegation_status(delegation, str(payload.get("status") or ""))
    except ValueError as exc:
        return error_response(str(exc))
    return jsonify({"status": "success", "delegation": delegation.to_dict()})


# ===================== Cron =====================
@todos_bp.route("/cron/generate-recurring", methods=["POST"])
@cron_required
def cron_generate_recurring():
    payload = json_body()
    today = parse_date_arg(payload.get("date") or request.args.get("date"))
    summary = services.generate_recurring_todos(today)
    return jsonify({"status": "success", **summary})
