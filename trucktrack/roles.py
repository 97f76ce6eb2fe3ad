# trucktrack/roles.py
from enum import Enum


class Role(str, Enum):
    MASTER_ADMIN = 'master_admin'
    ADMIN = 'admin'
    USER = 'user'

    @classmethod
    def parse(cls, value):
        try:
            return cls(value)
        except ValueError:
            return None


# Sections each role may open. The client hides navigation with the same table.
CAPABILITIES = {
    Role.MASTER_ADMIN: frozenset({
        'dashboard', 'trips', 'expenses', 'drivers', 'vehicles', 'customers',
        'tracking', 'reports', 'adminManagement', 'proof',
    }),
    Role.ADMIN: frozenset({
        'dashboard', 'trips', 'expenses', 'drivers', 'vehicles', 'customers',
        'tracking', 'reports', 'proof',
    }),
    Role.USER: frozenset({'trips', 'tracking', 'customers', 'proof'}),
}

# Roles that may create, update and delete records in a section
WRITE_ROLES = frozenset({Role.MASTER_ADMIN, Role.ADMIN})

# Roles whose registration must present a shared secret
KEYED_ROLES = {
    Role.ADMIN: 'ADMIN_ROLE_KEY',
    Role.MASTER_ADMIN: 'MASTER_ADMIN_ROLE_KEY',
}


def can_access(role, section):
    role = Role.parse(role) if not isinstance(role, Role) else role
    return role is not None and section in CAPABILITIES[role]


def can_write(role):
    role = Role.parse(role) if not isinstance(role, Role) else role
    return role in WRITE_ROLES
