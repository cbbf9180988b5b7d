"""
Permissions and Roles Configuration
This config defines the permission catalog, the role -> permission seed table and the
per-scope role hierarchy used by the authorization engine.
Used by the seed script and by the in-memory store to populate roles and permissions.
"""

from enum import Enum
from types import MappingProxyType


class Permission(str, Enum):
    # Admin
    ADMIN_USER_MANAGEMENT = "ADMIN_USER_MANAGEMENT"
    PROJECT_QUOTA_MANAGEMENT = "PROJECT_QUOTA_MANAGEMENT"
    ROLE_MANAGEMENT = "ROLE_MANAGEMENT"

    # Project
    PROJECT_CREATE = "PROJECT_CREATE"
    PROJECT_UPDATE = "PROJECT_UPDATE"
    PROJECT_DELETE = "PROJECT_DELETE"
    PROJECT_READ = "PROJECT_READ"
    PROJECT_RESOURCE_CREATE = "PROJECT_RESOURCE_CREATE"
    PROJECT_RESOURCE_UPDATE = "PROJECT_RESOURCE_UPDATE"
    PROJECT_RESOURCE_DELETE = "PROJECT_RESOURCE_DELETE"
    PROJECT_RESOURCE_READ = "PROJECT_RESOURCE_READ"
    PROJECT_ACCESS_CONTROL = "PROJECT_ACCESS_CONTROL"
    PROJECT_VERSION_CONTROL = "PROJECT_VERSION_CONTROL"
    PROJECT_PROVIDER_READ = "PROJECT_PROVIDER_READ"

    # Provider
    PROVIDER_EDIT = "PROVIDER_EDIT"
    PROVIDER_READ = "PROVIDER_READ"
    PROVIDER_ACCESS_CONTROL = "PROVIDER_ACCESS_CONTROL"

    # Template
    TEMPLATE_READ = "TEMPLATE_READ"
    TEMPLATE_CREATE = "TEMPLATE_CREATE"
    TEMPLATE_UPDATE = "TEMPLATE_UPDATE"
    TEMPLATE_DELETE = "TEMPLATE_DELETE"


class RoleName(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    USER = "USER"
    PROJECT_OWNER = "PROJECT_OWNER"
    PROJECT_CONTRIBUTOR = "PROJECT_CONTRIBUTOR"
    PROJECT_VIEWER = "PROJECT_VIEWER"
    PROVIDER_OWNER = "PROVIDER_OWNER"
    PROVIDER_EDITOR = "PROVIDER_EDITOR"
    PROVIDER_VIEWER = "PROVIDER_VIEWER"


class RoleScope(str, Enum):
    PLATFORM = "platform"
    PROJECT = "project"
    PROVIDER = "provider"


# resource, action and description of each permission
PERMISSIONS = {
    Permission.ADMIN_USER_MANAGEMENT: ("users", "manage", "Manage platform users and their roles"),
    Permission.PROJECT_QUOTA_MANAGEMENT: ("projects", "manage_quota", "Manage project quotas"),
    Permission.ROLE_MANAGEMENT: ("roles", "manage", "Create roles and redefine their permissions"),
    Permission.PROJECT_CREATE: ("projects", "create", "Create new projects"),
    Permission.PROJECT_UPDATE: ("projects", "update", "Update existing projects"),
    Permission.PROJECT_DELETE: ("projects", "delete", "Delete projects"),
    Permission.PROJECT_READ: ("projects", "read", "Read projects"),
    Permission.PROJECT_RESOURCE_CREATE: ("project_resources", "create", "Create project resources"),
    Permission.PROJECT_RESOURCE_UPDATE: ("project_resources", "update", "Update project resources"),
    Permission.PROJECT_RESOURCE_DELETE: ("project_resources", "delete", "Delete project resources"),
    Permission.PROJECT_RESOURCE_READ: ("project_resources", "read", "Read project resources"),
    Permission.PROJECT_ACCESS_CONTROL: ("projects", "access_control", "Manage user access to a project"),
    Permission.PROJECT_VERSION_CONTROL: ("projects", "version_control", "Manage project version control"),
    Permission.PROJECT_PROVIDER_READ: ("projects", "read_providers", "Read project providers"),
    Permission.PROVIDER_EDIT: ("providers", "update", "Edit provider details"),
    Permission.PROVIDER_READ: ("providers", "read", "Read providers"),
    Permission.PROVIDER_ACCESS_CONTROL: ("providers", "access_control", "Manage user access to a provider"),
    Permission.TEMPLATE_READ: ("templates", "read", "Read templates"),
    Permission.TEMPLATE_CREATE: ("templates", "create", "Create templates"),
    Permission.TEMPLATE_UPDATE: ("templates", "update", "Update templates"),
    Permission.TEMPLATE_DELETE: ("templates", "delete", "Delete templates"),
}

_PROJECT_OWNER_PERMISSIONS = [
    Permission.PROJECT_UPDATE,
    Permission.PROJECT_DELETE,
    Permission.PROJECT_READ,
    Permission.TEMPLATE_READ,
    Permission.PROJECT_RESOURCE_CREATE,
    Permission.PROJECT_RESOURCE_UPDATE,
    Permission.PROJECT_RESOURCE_DELETE,
    Permission.PROJECT_RESOURCE_READ,
    Permission.PROJECT_ACCESS_CONTROL,
    Permission.PROJECT_VERSION_CONTROL,
    Permission.PROJECT_PROVIDER_READ,
]

_ADMIN_PERMISSIONS = _PROJECT_OWNER_PERMISSIONS + [
    Permission.ADMIN_USER_MANAGEMENT,
    Permission.PROJECT_QUOTA_MANAGEMENT,
    Permission.PROJECT_CREATE,
    Permission.TEMPLATE_CREATE,
    Permission.TEMPLATE_UPDATE,
    Permission.TEMPLATE_DELETE,
]

# Seed role -> permission table
ROLE_PERMISSIONS = {
    RoleName.SUPER_ADMIN: _ADMIN_PERMISSIONS + [
        Permission.ROLE_MANAGEMENT,
        Permission.PROVIDER_EDIT,
        Permission.PROVIDER_READ,
        Permission.PROVIDER_ACCESS_CONTROL,
    ],
    RoleName.ADMIN: list(_ADMIN_PERMISSIONS),
    RoleName.USER: [
        Permission.TEMPLATE_READ,
        Permission.PROJECT_CREATE,
        Permission.PROJECT_READ,
    ],
    RoleName.PROJECT_OWNER: list(_PROJECT_OWNER_PERMISSIONS),
    RoleName.PROJECT_CONTRIBUTOR: [
        Permission.PROJECT_UPDATE,
        Permission.PROJECT_READ,
        Permission.TEMPLATE_READ,
        Permission.PROJECT_RESOURCE_CREATE,
        Permission.PROJECT_RESOURCE_UPDATE,
        Permission.PROJECT_RESOURCE_DELETE,
        Permission.PROJECT_RESOURCE_READ,
        Permission.PROJECT_PROVIDER_READ,
    ],
    RoleName.PROJECT_VIEWER: [
        Permission.PROJECT_READ,
        Permission.TEMPLATE_READ,
        Permission.PROJECT_RESOURCE_READ,
    ],
    RoleName.PROVIDER_OWNER: [
        Permission.PROVIDER_READ,
        Permission.PROVIDER_EDIT,
        Permission.TEMPLATE_READ,
        Permission.PROVIDER_ACCESS_CONTROL,
    ],
    RoleName.PROVIDER_EDITOR: [
        Permission.TEMPLATE_READ,
        Permission.PROVIDER_EDIT,
        Permission.PROVIDER_READ,
    ],
    RoleName.PROVIDER_VIEWER: [
        Permission.TEMPLATE_READ,
        Permission.PROVIDER_READ,
    ],
}

ROLE_DESCRIPTIONS = {
    RoleName.SUPER_ADMIN: "Full platform access, including role management",
    RoleName.ADMIN: "Platform administrator",
    RoleName.USER: "Default platform role",
    RoleName.PROJECT_OWNER: "Creator of a project; full control over it",
    RoleName.PROJECT_CONTRIBUTOR: "Can change a project and its resources",
    RoleName.PROJECT_VIEWER: "Read-only access to a project",
    RoleName.PROVIDER_OWNER: "Creator of a provider; full control over it",
    RoleName.PROVIDER_EDITOR: "Can edit a provider",
    RoleName.PROVIDER_VIEWER: "Read-only access to a provider",
}

# Lower number = more privileged. Tables are independent per scope.
ROLE_HIERARCHY = MappingProxyType({
    RoleScope.PLATFORM: MappingProxyType({
        RoleName.SUPER_ADMIN.value: 1,
        RoleName.ADMIN.value: 2,
        RoleName.USER.value: 3,
    }),
    RoleScope.PROJECT: MappingProxyType({
        RoleName.PROJECT_OWNER.value: 1,
        RoleName.PROJECT_CONTRIBUTOR.value: 2,
        RoleName.PROJECT_VIEWER.value: 3,
    }),
    RoleScope.PROVIDER: MappingProxyType({
        RoleName.PROVIDER_OWNER.value: 1,
        RoleName.PROVIDER_EDITOR.value: 2,
        RoleName.PROVIDER_VIEWER.value: 3,
    }),
})

# Roles a role-change endpoint may hand out, per scope
ASSIGNABLE_ROLES = MappingProxyType({
    RoleScope.PLATFORM: (RoleName.ADMIN.value, RoleName.USER.value),
    RoleScope.PROJECT: (RoleName.PROJECT_CONTRIBUTOR.value, RoleName.PROJECT_VIEWER.value),
    RoleScope.PROVIDER: (RoleName.PROVIDER_EDITOR.value, RoleName.PROVIDER_VIEWER.value),
})

OWNER_ROLES = MappingProxyType({
    RoleScope.PROJECT: RoleName.PROJECT_OWNER.value,
    RoleScope.PROVIDER: RoleName.PROVIDER_OWNER.value,
})

# Platform roles that act as the owner of every project and provider
PLATFORM_ADMIN_ROLES = frozenset({RoleName.SUPER_ADMIN.value, RoleName.ADMIN.value})

DEFAULT_PLATFORM_ROLE = RoleName.USER.value


def as_name(value) -> str:
    """Plain string name of a Permission/RoleName member (or of a name that already is one)"""
    return value.value if isinstance(value, Enum) else value


def _check_hierarchy():
    for scope, levels in ROLE_HIERARCHY.items():
        if len(set(levels.values())) != len(levels):
            raise ValueError(f"Duplicate hierarchy level in {scope.value} scope")
        for role in ASSIGNABLE_ROLES[scope]:
            if role not in levels:
                raise ValueError(f"Assignable role {role} has no {scope.value} hierarchy level")
        owner = OWNER_ROLES.get(scope)
        if owner is not None and owner not in levels:
            raise ValueError(f"Owner role {owner} has no {scope.value} hierarchy level")
    if RoleName.SUPER_ADMIN.value in ASSIGNABLE_ROLES[RoleScope.PLATFORM]:
        raise ValueError("SUPER_ADMIN must never be assignable")


_check_hierarchy()


# Generate permission matrix
def get_permission_matrix():
    """
    Returns a dictionary with all permissions and the seeded roles
    Format: {
        "permissions": [
            {"name": "PROJECT_READ", "resource": "projects", "action": "read", "description": "..."},
            ...
        ],
        "roles": [
            {
                "name": "PROJECT_VIEWER",
                "description": "...",
                "permissions": ["PROJECT_READ", ...]
            },
            ...
        ]
    }
    """
    permissions = []
    roles = []

    for permission, (resource, action, description) in PERMISSIONS.items():
        permissions.append({
            "name": permission.value,
            "resource": resource,
            "action": action,
            "description": description
        })

    for role, role_permissions in ROLE_PERMISSIONS.items():
        roles.append({
            "name": role.value,
            "description": ROLE_DESCRIPTIONS[role],
            "permissions": sorted({p.value for p in role_permissions})
        })

    return {
        "permissions": permissions,
        "roles": roles
    }


# Export the matrix for use in seed scripts
PERMISSION_MATRIX = get_permission_matrix()
