"""Create (or promote) a SUPER_ADMIN account.
Usage: python scripts/create_admin.py EMAIL PASSWORD [--name NAME]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `shopadmin` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from shopadmin import models, repositories
from shopadmin.database import create_db_and_tables, engine
from shopadmin.services import MIN_PASSWORD_LENGTH, AuthService


def main(email: str, password: str, name: str = 'Admin User'):
    if len(password) < MIN_PASSWORD_LENGTH:
        print(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
        return 1
    create_db_and_tables()
    with Session(engine) as session:
        repo = repositories.UserRepository(session)
        user = repo.get_by_email(email)
        if user:
            user.role = models.UserRole.SUPER_ADMIN
            user.status = models.UserStatus.ACTIVE
            user.password_hash = AuthService.hash_password(password)
            repo.save(user)
            print(f'Updated existing user {email} to SUPER_ADMIN')
            return 0
        repo.save(models.User(
            name=name,
            email=email,
            password_hash=AuthService.hash_password(password),
            role=models.UserRole.SUPER_ADMIN,
        ))
        print(f'Created SUPER_ADMIN {email}')
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('email')
    parser.add_argument('password')
    parser.add_argument('--name', default='Admin User')
    args = parser.parse_args()
    sys.exit(main(args.email, args.password, args.name))
