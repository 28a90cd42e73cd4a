ROLES = ("admin", "supervisor", "staff")

ROLE_PERMISSIONS: dict[str, dict[str, bool]] = {
    "admin": {
        "create_users": True,
        "edit_users": True,
        "delete_users": True,
        "create": True,
        "edit": True,
        "delete": True,
        "approve_edit_requests": True,
        "view_all_edit_requests": True,
        "view_reports": True,
        "generate_reports": True,
        "access_settings": True,
    },
    "supervisor": {
        "create_users": False,
        "edit_users": False,
        "delete_users": False,
        "create": True,
        "edit": True,
        "delete": False,
        "approve_edit_requests": True,
        "view_all_edit_requests": True,
        "view_reports": True,
        "generate_reports": False,
        "access_settings": False,
    },
    "staff": {
        "create_users": False,
        "edit_users": False,
        "delete_users": False,
        "create": True,
        # staff edits go through an edit request
        "edit": False,
        "delete": False,
        "approve_edit_requests": False,
        "view_all_edit_requests": False,
        "view_reports": False,
        "generate_reports": False,
        "access_settings": False,
    },
}

_NO_PERMISSIONS = {key: False for key in ROLE_PERMISSIONS["admin"]}


def _normalize_role(role: str | None) -> str:
    return (role or "").strip().lower()


def get_permissions(role: str | None) -> dict[str, bool]:
    return dict(ROLE_PERMISSIONS.get(_normalize_role(role), _NO_PERMISSIONS))


def has_permission(role: str | None, permission: str) -> bool:
    return bool(get_permissions(role).get(permission, False))


def can_edit_directly(role: str | None) -> bool:
    return _normalize_role(role) in {"admin", "supervisor"}


def can_delete_directly(role: str | None) -> bool:
    return _normalize_role(role) == "admin"
