"""Print a bcrypt hash for the admin dashboard password.

Usage:
    python scripts/hash_admin_password.py <password>

Put the output in ADMIN_PASSWORD_HASH (with ADMIN_USERNAME) in the environment or .env.
"""

from __future__ import annotations

import sys

from app.infra.auth import hash_password


def main(argv: list[str]) -> int:
    if len(argv) != 2 or not argv[1]:
        print("Usage: python scripts/hash_admin_password.py <password>")
        return 1
    print(hash_password(argv[1]))
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
