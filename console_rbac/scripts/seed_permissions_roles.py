"""
Seed Permissions and Roles Script
Syncs the permission matrix from permissions_config into the access store.
Safe to re-run: permissions and roles are upserted by name and each role's permission set
is replaced with the configured one.

    python -m console_rbac.scripts.seed_permissions_roles [--super-admin EMAIL]

SUPER_ADMIN can never be assigned through the API, so the first one is granted here.
"""

import argparse
import logging
import sys
from typing import Optional

from console_rbac.config.permissions_config import PERMISSION_MATRIX, RoleName
from console_rbac.database import get_access_store
from console_rbac.database.store import AccessStore, AccessStoreError, RoleWrite, RowKind

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def seed_catalog(store: AccessStore) -> dict:
    """Upsert permissions, roles and role permissions from config"""
    logger.info("Seeding permissions and roles...")
    counts = store.sync_catalog(PERMISSION_MATRIX)
    logger.info(f"Seeded {counts['permissions']} permissions and {counts['roles']} roles")
    return counts


def grant_super_admin(store: AccessStore, email: str) -> bool:
    """Give an existing user the SUPER_ADMIN platform role"""
    user = store.get_user_by_email(email)
    if user is None:
        logger.error(f"User {email} not found; sign the user up first")
        return False
    role = store.get_role_by_name(RoleName.SUPER_ADMIN.value)
    if role is None:
        logger.error("SUPER_ADMIN role missing; seed the catalog first")
        return False
    if user.role_id == role.id:
        logger.info(f"{email} already is SUPER_ADMIN")
        return True
    store.apply_role_writes([RoleWrite(
        row_kind=RowKind.USER,
        row_id=user.id,
        expected_role_id=user.role_id,
        new_role_id=role.id,
    )])
    logger.info(f"Granted SUPER_ADMIN to {email} (was {user.role_name})")
    return True


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed RBAC permissions and roles")
    parser.add_argument("--super-admin", metavar="EMAIL", help="grant SUPER_ADMIN to this existing user")
    args = parser.parse_args(argv)

    try:
        store = get_access_store()
        seed_catalog(store)
        if args.super_admin and not grant_super_admin(store, args.super_admin):
            return 1
    except AccessStoreError as e:
        logger.error(f"Error during seeding: {e}")
        return 1

    logger.info("Seeding completed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
