from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, HTTPException, Query, Body, Request
from sqlalchemy.orm import Session
from sqlalchemy import func, desc
from vorniq.db.session import get_db
from vorniq.core.auth import ADMIN_ROLE, require_admin, hash_password
from vorniq.core.helpers import (
    require_fields, parse_enum, parse_int, iso, search_filter, commit_or_400, get_or_404,
)
from vorniq.models.models import Role, Permission, RolePermission, User, AuditLog, AuditSeverity
from vorniq.services.audit import record_audit

router = APIRouter(prefix="/api/roles", tags=["roles"])

DATE_RANGES = {
    "today": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}


def _serialize_role(r, user_count=None, permission_count=None):
    return {
        "id": r.id,
        "name": r.name,
        "description": r.description,
        "is_active": bool(r.is_active),
        "user_count": user_count if user_count is not None else len(r.users),
        "permission_count": permission_count if permission_count is not None else len(r.permissions),
        "created_at": iso(r.created_at),
        "updated_at": iso(r.updated_at),
    }


def _serialize_permission(p, roles_count=None):
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "module": p.module,
        "action": p.action,
        "resource": p.resource,
        "roles_count": roles_count if roles_count is not None else len(p.roles),
        "created_at": iso(p.created_at),
    }


def _serialize_user(u):
    return {
        "id": u.id,
        "username": u.username,
        "email": u.email,
        "first_name": u.first_name,
        "last_name": u.last_name,
        "full_name": u.full_name,
        "role_id": u.role_id,
        "role_name": u.role.name if u.role else None,
        "is_active": bool(u.is_active),
        "last_login": iso(u.last_login),
        "created_at": iso(u.created_at),
    }


def _serialize_audit(a, u=None):
    return {
        "id": a.id,
        "timestamp": iso(a.created_at),
        "user_id": a.user_id,
        "user": (u.email if u else None) or a.user_email or "system",
        "action": a.action,
        "resource": a.resource,
        "resource_id": a.resource_id,
        "details": a.details,
        "ip_address": a.ip_address,
        "user_agent": a.user_agent,
        "severity": a.severity.value if a.severity else None,
        "category": a.category,
    }


def _count_map(db: Session, column, group_column):
    return dict(db.query(group_column, func.count(column)).group_by(group_column).all())


@router.get("")
def list_roles(
    search: str = Query(None),
    is_active: bool = Query(None),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    q = db.query(Role)
    if search:
        q = q.filter(search_filter(search, Role.name, Role.description))
    if is_active is not None:
        q = q.filter(Role.is_active == is_active)
    roles = q.order_by(Role.name).all()

    user_counts = _count_map(db, User.id, User.role_id)
    perm_counts = _count_map(db, RolePermission.id, RolePermission.role_id)
    return [_serialize_role(r, user_counts.get(r.id, 0), perm_counts.get(r.id, 0)) for r in roles]


@router.post("")
def create_role(request: Request, data: dict = Body(...), user: User = Depends(require_admin), db: Session = Depends(get_db)):
    require_fields(data, "name")
    if db.query(Role).filter(func.lower(Role.name) == data["name"].lower()).first():
        raise HTTPException(status_code=400, detail="Role name already exists")

    role = Role(name=data["name"], description=data.get("description"), is_active=data.get("is_active", True))
    if data.get("permission_ids"):
        role.permissions = _load_permissions(db, data["permission_ids"])
    db.add(role)
    db.flush()
    record_audit(db, user, "create", "roles", resource_id=role.id, details={"name": role.name},
                 severity=AuditSeverity.MEDIUM, category="access_control", request=request)
    commit_or_400(db, "create role")
    db.refresh(role)
    return _serialize_role(role)


@router.get("/permissions")
def list_permissions(
    search: str = Query(None),
    module: str = Query(None),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    q = db.query(Permission)
    if search:
        q = q.filter(search_filter(search, Permission.name, Permission.description, Permission.resource))
    if module:
        q = q.filter(Permission.module == module)
    permissions = q.order_by(Permission.module, Permission.resource, Permission.action).all()
    counts = _count_map(db, RolePermission.id, RolePermission.permission_id)
    return [_serialize_permission(p, counts.get(p.id, 0)) for p in permissions]


@router.post("/permissions")
def create_permission(request: Request, data: dict = Body(...), user: User = Depends(require_admin), db: Session = Depends(get_db)):
    require_fields(data, "module", "resource", "action")
    name = data.get("name") or f"{data['module']}.{data['resource']}.{data['action']}"
    if db.query(Permission).filter(Permission.name == name).first():
        raise HTTPException(status_code=400, detail="Permission already exists")
    permission = Permission(
        name=name,
        description=data.get("description"),
        module=data["module"],
        resource=data["resource"],
        action=data["action"],
    )
    db.add(permission)
    db.flush()
    record_audit(db, user, "create", "permissions", resource_id=permission.id, details={"name": name},
                 severity=AuditSeverity.MEDIUM, category="access_control", request=request)
    commit_or_400(db, "create permission")
    db.refresh(permission)
    return _serialize_permission(permission, 0)


@router.put("/permissions/{permission_id}")
def update_permission(permission_id: int, request: Request, data: dict = Body(...), user: User = Depends(require_admin), db: Session = Depends(get_db)):
    permission = get_or_404(db, Permission, permission_id, "Permission")
    for f in ["name", "description", "module", "resource", "action"]:
        if f in data:
            if f != "description":
                require_fields(data, f)
            setattr(permission, f, data[f])
    record_audit(db, user, "update", "permissions", resource_id=permission_id, details=data,
                 severity=AuditSeverity.MEDIUM, category="access_control", request=request)
    commit_or_400(db, f"update permission {permission_id}")
    db.refresh(permission)
    return _serialize_permission(permission)


@router.delete("/permissions/{permission_id}")
def delete_permission(permission_id: int, request: Request, user: User = Depends(require_admin), db: Session = Depends(get_db)):
    permission = get_or_404(db, Permission, permission_id, "Permission")
    db.query(RolePermission).filter(RolePermission.permission_id == permission_id).delete()
    db.delete(permission)
    record_audit(db, user, "delete", "permissions", resource_id=permission_id, details={"name": permission.name},
                 severity=AuditSeverity.HIGH, category="access_control", request=request)
    commit_or_400(db, f"delete permission {permission_id}")
    return {"ok": True, "deleted": permission_id}


@router.get("/users")
def list_users(
    search: str = Query(None),
    role_id: int = Query(None),
    is_active: bool = Query(None),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    q = db.query(User)
    if search:
        q = q.filter(search_filter(search, User.username, User.email, User.first_name, User.last_name))
    if role_id:
        q = q.filter(User.role_id == role_id)
    if is_active is not None:
        q = q.filter(User.is_active == is_active)
    users = q.order_by(desc(User.created_at), desc(User.id)).all()
    return [_serialize_user(u) for u in users]


@router.post("/users")
def create_user(request: Request, data: dict = Body(...), user: User = Depends(require_admin), db: Session = Depends(get_db)):
    require_fields(data, "username", "email", "password")
    if len(data["password"]) < 6:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters")
    existing = db.query(User).filter((User.email == data["email"]) | (User.username == data["username"])).first()
    if existing:
        raise HTTPException(status_code=400, detail="Username or email already registered")
    role_id = parse_int(data.get("role_id"), "role_id")
    if role_id:
        get_or_404(db, Role, role_id, "Role")

    new_user = User(
        username=data["username"],
        email=data["email"],
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
        hashed_password=hash_password(data["password"]),
        role_id=role_id,
        is_active=data.get("is_active", True),
    )
    db.add(new_user)
    db.flush()
    record_audit(db, user, "create", "users", resource_id=new_user.id, details={"email": new_user.email},
                 severity=AuditSeverity.MEDIUM, category="user_management", request=request)
    commit_or_400(db, "create user")
    db.refresh(new_user)
    return _serialize_user(new_user)


@router.put("/users/{user_id}")
def update_user(user_id: int, request: Request, data: dict = Body(...), user: User = Depends(require_admin), db: Session = Depends(get_db)):
    target = get_or_404(db, User, user_id, "User")
    for f in ["username", "email"]:
        if f in data:
            require_fields(data, f)
            clash = db.query(User).filter(getattr(User, f) == data[f], User.id != user_id).first()
            if clash:
                raise HTTPException(status_code=400, detail=f"{f.capitalize()} already in use")
            setattr(target, f, data[f])
    for f in ["first_name", "last_name"]:
        if f in data:
            setattr(target, f, data[f])
    if "role_id" in data:
        role_id = parse_int(data["role_id"], "role_id")
        if user_id == user.id and role_id != user.role_id:
            raise HTTPException(status_code=400, detail="You cannot change your own role")
        if role_id:
            get_or_404(db, Role, role_id, "Role")
        target.role_id = role_id
    if "is_active" in data:
        if user_id == user.id and not data["is_active"]:
            raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
        target.is_active = bool(data["is_active"])
    if data.get("password"):
        target.hashed_password = hash_password(data["password"])

    details = {k: v for k, v in data.items() if k != "password"}
    record_audit(db, user, "update", "users", resource_id=user_id, details=details,
                 severity=AuditSeverity.MEDIUM, category="user_management", request=request)
    commit_or_400(db, f"update user {user_id}")
    db.refresh(target)
    return _serialize_user(target)


@router.delete("/users/{user_id}")
def delete_user(user_id: int, request: Request, user: User = Depends(require_admin), db: Session = Depends(get_db)):
    target = get_or_404(db, User, user_id, "User")
    if target.id == user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    record_audit(db, user, "delete", "users", resource_id=user_id, details={"email": target.email},
                 severity=AuditSeverity.HIGH, category="user_management", request=request)
    db.delete(target)
    commit_or_400(db, f"delete user {user_id}")
    return {"ok": True, "deleted": user_id}


@router.get("/audit-logs/stats")
def get_audit_stats(user: User = Depends(require_admin), db: Session = Depends(get_db)):
    by_severity = {s.value: 0 for s in AuditSeverity}
    for severity, count in db.query(AuditLog.severity, func.count(AuditLog.id)).group_by(AuditLog.severity).all():
        by_severity[severity.value] = count
    since = datetime.utcnow() - DATE_RANGES["today"]
    today_count = db.query(func.count(AuditLog.id)).filter(AuditLog.created_at >= since).scalar() or 0
    return {
        "total": sum(by_severity.values()),
        "today": today_count,
        "by_severity": by_severity,
    }


@router.get("/audit-logs")
def list_audit_logs(
    search: str = Query(None),
    category: str = Query(None),
    severity: str = Query(None),
    date_range: str = Query(None),
    limit: int = Query(100, ge=1, le=500),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    q = db.query(AuditLog, User).outerjoin(User, AuditLog.user_id == User.id)
    if search:
        q = q.filter(search_filter(search, AuditLog.action, AuditLog.resource, AuditLog.details, AuditLog.user_email))
    if category:
        q = q.filter(AuditLog.category == category)
    if severity:
        q = q.filter(AuditLog.severity == parse_enum(AuditSeverity, severity, "severity"))
    if date_range and date_range != "all":
        if date_range not in DATE_RANGES:
            raise HTTPException(status_code=400, detail="Invalid date_range. Allowed: today, week, month, all")
        q = q.filter(AuditLog.created_at >= datetime.utcnow() - DATE_RANGES[date_range])
    entries = q.order_by(desc(AuditLog.created_at), desc(AuditLog.id)).limit(limit).all()
    return [_serialize_audit(a, u) for a, u in entries]


def _load_permissions(db: Session, permission_ids):
    ids = [parse_int(pid, "permission_ids") for pid in permission_ids]
    permissions = db.query(Permission).filter(Permission.id.in_(ids)).all()
    if len(permissions) != len(set(ids)):
        raise HTTPException(status_code=400, detail="Unknown permission id")
    return permissions


@router.get("/{role_id}")
def get_role(role_id: int, user: User = Depends(require_admin), db: Session = Depends(get_db)):
    role = get_or_404(db, Role, role_id, "Role")
    result = _serialize_role(role)
    result["permissions"] = [_serialize_permission(p) for p in role.permissions]
    return result


@router.put("/{role_id}")
def update_role(role_id: int, request: Request, data: dict = Body(...), user: User = Depends(require_admin), db: Session = Depends(get_db)):
    role = get_or_404(db, Role, role_id, "Role")
    if "name" in data:
        require_fields(data, "name")
        if role.name == ADMIN_ROLE and data["name"] != ADMIN_ROLE:
            raise HTTPException(status_code=400, detail="The Admin role cannot be renamed")
        clash = db.query(Role).filter(func.lower(Role.name) == data["name"].lower(), Role.id != role_id).first()
        if clash:
            raise HTTPException(status_code=400, detail="Role name already exists")
        role.name = data["name"]
    if "description" in data:
        role.description = data["description"]
    if "is_active" in data:
        if role.id == user.role_id and not data["is_active"]:
            raise HTTPException(status_code=400, detail="You cannot deactivate your own role")
        role.is_active = bool(data["is_active"])
    record_audit(db, user, "update", "roles", resource_id=role_id, details=data,
                 severity=AuditSeverity.MEDIUM, category="access_control", request=request)
    commit_or_400(db, f"update role {role_id}")
    db.refresh(role)
    return _serialize_role(role)


@router.post("/{role_id}/toggle")
def toggle_role(role_id: int, request: Request, user: User = Depends(require_admin), db: Session = Depends(get_db)):
    role = get_or_404(db, Role, role_id, "Role")
    if role.id == user.role_id and role.is_active:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own role")
    role.is_active = not role.is_active
    record_audit(db, user, "activate" if role.is_active else "deactivate", "roles", resource_id=role_id,
                 severity=AuditSeverity.MEDIUM, category="access_control", request=request)
    commit_or_400(db, f"toggle role {role_id}")
    db.refresh(role)
    return _serialize_role(role)


@router.get("/{role_id}/permissions")
def get_role_permissions(role_id: int, user: User = Depends(require_admin), db: Session = Depends(get_db)):
    role = get_or_404(db, Role, role_id, "Role")
    return [_serialize_permission(p) for p in role.permissions]


@router.put("/{role_id}/permissions")
def set_role_permissions(role_id: int, request: Request, data: dict = Body(...), user: User = Depends(require_admin), db: Session = Depends(get_db)):
    role = get_or_404(db, Role, role_id, "Role")
    if "permission_ids" not in data or not isinstance(data["permission_ids"], list):
        raise HTTPException(status_code=400, detail="permission_ids must be a list")
    role.permissions = _load_permissions(db, data["permission_ids"])
    record_audit(db, user, "assign_permissions", "roles", resource_id=role_id,
                 details={"permission_ids": data["permission_ids"]},
                 severity=AuditSeverity.HIGH, category="access_control", request=request)
    commit_or_400(db, f"set permissions for role {role_id}")
    db.refresh(role)
    return [_serialize_permission(p) for p in role.permissions]


@router.delete("/{role_id}")
def delete_role(role_id: int, request: Request, user: User = Depends(require_admin), db: Session = Depends(get_db)):
    role = get_or_404(db, Role, role_id, "Role")
    assigned = db.query(func.count(User.id)).filter(User.role_id == role_id).scalar() or 0
    if assigned:
        raise HTTPException(status_code=400, detail="Cannot delete role with assigned users")
    role.permissions = []
    record_audit(db, user, "delete", "roles", resource_id=role_id, details={"name": role.name},
                 severity=AuditSeverity.HIGH, category="access_control", request=request)
    db.delete(role)
    commit_or_400(db, f"delete role {role_id}")
    return {"ok": True, "deleted": role_id}
