"""
Create a user and print a bearer token for the API. Run from project root:
  python -m app.scripts.create_user USERNAME [--email EMAIL] [--github-token TOKEN]
Example:
  python -m app.scripts.create_user alice --email alice@example.com --github-token ghp_xxx
"""
import argparse
import sys

from app.core.database import SessionLocal
from app.core.security import create_access_token
from app.models.user import User

TOKEN_LIFETIME_MINUTES = 60 * 24 * 30


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a Codeward user and issue an API token.")
    parser.add_argument("username", help="Username (1-255 chars)")
    parser.add_argument("--email", default=None, help="Address for critical vulnerability alerts")
    parser.add_argument("--name", default=None, help="Display name used in alert emails")
    parser.add_argument("--github-token", default=None, help="GitHub token used to read repositories")
    args = parser.parse_args()

    username = args.username.strip()
    if not username or len(username) > 255:
        print("Invalid username length.", file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.username == username).first()
        if existing:
            print(f"User '{username}' already exists.", file=sys.stderr)
            return 1
        user = User(
            username=username,
            email=args.email,
            name=args.name,
            github_token=args.github_token,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        print(f"Created user '{username}' (id={user.id}).")
        print(create_access_token(user.id, expires_minutes=TOKEN_LIFETIME_MINUTES))
        return 0
    except Exception as e:
        db.rollback()
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
