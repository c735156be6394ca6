import logging
from sqlalchemy.orm import Session
from vorniq.core.auth import ADMIN_ROLE
from vorniq.models.models import Role, Permission

logger = logging.getLogger(__name__)

MODULE_RESOURCES = {
    "crm": ["customers", "leads", "follow_ups", "communications"],
    "hrm": ["employees", "attendance", "leave_requests", "payroll", "recruitment", "performance"],
    "sim": ["products", "suppliers", "quotations", "invoices", "purchase_orders", "stock"],
    "accounting": ["transactions", "bank_accounts", "reconciliation", "payment_reminders", "tax"],
    "dashboard": ["overview"],
    "roles": ["roles", "permissions", "users", "audit_logs"],
}

ACTIONS = ["view", "create", "edit", "delete"]

DEFAULT_ROLES = {
    ADMIN_ROLE: ("Full access to every module", None),
    "Sales Manager": ("Customers, leads and sales", ["crm", "sim", "dashboard"]),
    "HR Manager": ("Employees, attendance and payroll", ["hrm", "dashboard"]),
    "Accountant": ("Books, bank reconciliation and tax", ["accounting", "dashboard"]),
    "Viewer": ("Read-only dashboards", ["dashboard"]),
}


def default_permissions():
    for module, resources in MODULE_RESOURCES.items():
        for resource in resources:
            for action in ACTIONS:
                yield {
                    "name": f"{module}.{resource}.{action}",
                    "description": f"{action.capitalize()} {resource.replace('_', ' ')}",
                    "module": module,
                    "resource": resource,
                    "action": action,
                }


READ_ONLY_ROLES = {"Viewer"}


def _grants(role_name, modules, perm) -> bool:
    if modules is None:
        return True
    if perm.module not in modules:
        return False
    return role_name not in READ_ONLY_ROLES or perm.action == "view"


def ensure_default_access(db: Session):
    """Create missing default permissions and roles. Safe to run repeatedly."""
    existing = {p.name: p for p in db.query(Permission).all()}
    created = 0
    for fields in default_permissions():
        if fields["name"] not in existing:
            perm = Permission(**fields)
            db.add(perm)
            existing[fields["name"]] = perm
            created += 1
    db.flush()

    for name, (description, modules) in DEFAULT_ROLES.items():
        if db.query(Role).filter(Role.name == name).first():
            continue
        role = Role(name=name, description=description, is_active=True)
        role.permissions = [p for p in existing.values() if _grants(name, modules, p)]
        db.add(role)
        logger.info("Seeded role %s with %d permissions", name, len(role.permissions))
    db.flush()
    if created:
        logger.info("Seeded %d permissions", created)
