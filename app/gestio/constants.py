"""
Role, action and resource vocabularies shared by the permission check,
the seed script and the audit log.
"""

ROLE_SUPER_ADMIN = "SUPER_ADMIN"
ROLE_COMPANY_ADMIN = "COMPANY_ADMIN"
ROLE_MANAGER = "MANAGER"
ROLE_EMPLOYEE = "EMPLOYEE"
ROLE_USER = "USER"

ROLES = (ROLE_SUPER_ADMIN, ROLE_COMPANY_ADMIN, ROLE_MANAGER, ROLE_EMPLOYEE, ROLE_USER)
ADMIN_ROLES = (ROLE_SUPER_ADMIN, ROLE_COMPANY_ADMIN)

ROLE_NAMES = {
    ROLE_SUPER_ADMIN: "Super administrator",
    ROLE_COMPANY_ADMIN: "Company administrator",
    ROLE_MANAGER: "Manager",
    ROLE_EMPLOYEE: "Employee",
    ROLE_USER: "User",
}

CREATE = "CREATE"
READ = "READ"
UPDATE = "UPDATE"
DELETE = "DELETE"
ACTIONS = (CREATE, READ, UPDATE, DELETE)

# Audit-only actions
ACCESS_DENIED = "ACCESS_DENIED"

RESOURCES = (
    "USER",
    "COMPANY",
    "CLIENT",
    "PROJECT",
    "TASK",
    "PAYMENT",
    "INVOICE",
    "PRODUCT",
    "PRODUCT_CATEGORY",
    "WAREHOUSE",
    "STOCK_MOVEMENT",
    "PURCHASE_ORDER",
    "PAYROLL",
    "JOB_POSTING",
    "APPLICATION",
    "CANDIDATE",
    "INTERVIEW",
    "ABSENCE",
    "CONTACT",
    "MAILING_LIST",
    "ACTIVITY",
    "CUSTOM_FIELD",
    "FINANCIAL_STATEMENT",
    "APPROVAL_REQUEST",
    "CONVERSATION",
    "MESSAGE",
    "CONTRACT",
    "AUDIT_LOG",
    "LEAD",
    "OPPORTUNITY",
    "OTHER",
)

# Resources that belong to the day-to-day business of a tenant.
BUSINESS_RESOURCES = (
    "CLIENT",
    "PROJECT",
    "TASK",
    "PAYMENT",
    "INVOICE",
    "PRODUCT",
    "PRODUCT_CATEGORY",
    "WAREHOUSE",
    "STOCK_MOVEMENT",
    "PURCHASE_ORDER",
    "JOB_POSTING",
    "APPLICATION",
    "CANDIDATE",
    "INTERVIEW",
    "CONTACT",
    "MAILING_LIST",
    "ACTIVITY",
    "CUSTOM_FIELD",
    "APPROVAL_REQUEST",
    "CONVERSATION",
    "MESSAGE",
    "CONTRACT",
    "LEAD",
    "OPPORTUNITY",
)


def permission_key(action: str, resource: str) -> str:
    return f"{resource.lower()}.{action.lower()}"


def _grants() -> dict[str, set[tuple[str, str]]]:
    company_admin = {(a, r) for r in RESOURCES if r != "COMPANY" for a in ACTIONS}
    company_admin.add((READ, "COMPANY"))

    manager = {(a, r) for r in BUSINESS_RESOURCES for a in ACTIONS}
    manager.update({(a, "ABSENCE") for a in ACTIONS})
    manager.add((READ, "USER"))
    manager.add((READ, "COMPANY"))

    employee = {(READ, r) for r in BUSINESS_RESOURCES}
    for r in ("CONVERSATION", "MESSAGE", "APPROVAL_REQUEST"):
        employee.update({(CREATE, r), (READ, r), (UPDATE, r)})
    # Withdrawing a pending request and leaving a conversation are deletes.
    employee.update({(DELETE, "APPROVAL_REQUEST"), (DELETE, "CONVERSATION")})
    # Own absences; interviewers record feedback on their interviews.
    employee.update({(a, "ABSENCE") for a in ACTIONS})
    employee.add((UPDATE, "INTERVIEW"))
    employee.add((READ, "PAYROLL"))
    employee.add((READ, "USER"))

    user = set()
    for r in ("APPLICATION", "CONVERSATION", "MESSAGE"):
        user.update({(CREATE, r), (READ, r), (UPDATE, r)})
    user.add((READ, "JOB_POSTING"))
    user.add((DELETE, "CONVERSATION"))

    return {
        ROLE_COMPANY_ADMIN: company_admin,
        ROLE_MANAGER: manager,
        ROLE_EMPLOYEE: employee,
        ROLE_USER: user,
    }


# SUPER_ADMIN bypasses the permission table entirely.
DEFAULT_ROLE_GRANTS: dict[str, set[tuple[str, str]]] = _grants()
