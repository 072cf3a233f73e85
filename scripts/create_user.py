import argparse
import getpass
import sys

from dotenv import load_dotenv

from pharmacare.application.services.provisioning import provision_account
from pharmacare.core.config import Settings
from pharmacare.core.logging import configure_logging
from pharmacare.domain.exceptions import AccountError
from pharmacare.domain.models import ROLE_ADMIN, ROLES
from pharmacare.infrastructure.repositories.user_repository import UserRepository
from pharmacare.services.password_hasher import PasswordHasher


def main() -> int:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Create a verified PharmaCare account.")
    parser.add_argument("email")
    parser.add_argument("--role", choices=ROLES, default=ROLE_ADMIN)
    parser.add_argument("--first-name", default="PharmaCare")
    parser.add_argument("--last-name", default="Administrator")
    args = parser.parse_args()

    configure_logging()
    settings = Settings()

    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Confirm password: "):
        print("Passwords do not match.", file=sys.stderr)
        return 1

    hasher = PasswordHasher()
    users = UserRepository(settings.database_path, hasher)
    try:
        user = provision_account(
            users,
            hasher,
            args.email,
            password,
            role=args.role,
            first_name=args.first_name,
            last_name=args.last_name,
        )
    except AccountError as exc:
        print(exc.message, file=sys.stderr)
        return 1

    print(f"Account ready: id={user.id} email={user.email} role={user.role}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
