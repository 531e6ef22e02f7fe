"""CLI commands for Talkpulse."""

import argparse
import getpass
import logging
import sys

import bcrypt
from sqlalchemy.orm import Session

from app.database import SessionLocal
from app.models.registered_item import RegisteredItem
from app.models.user import User
from app.services import code_image_service
from app.services.item_service import feedback_url_for
from app.services.storage_service import get_storage

logger = logging.getLogger(__name__)


def create_user(email: str, password: str | None = None) -> None:
    """Create an owner account."""
    db: Session = SessionLocal()

    try:
        existing = db.query(User).filter(User.email == email.lower()).first()
        if existing:
            print(f"Error: User with email '{email}' already exists.")
            sys.exit(1)

        if not password:
            password = getpass.getpass("Password: ")
            password_confirm = getpass.getpass("Confirm password: ")
            if password != password_confirm:
                print("Error: Passwords do not match.")
                sys.exit(1)

        if len(password) < 8:
            print("Error: Password must be at least 8 characters.")
            sys.exit(1)

        password_hash = bcrypt.hashpw(
            password.encode("utf-8"), bcrypt.gensalt()
        ).decode("utf-8")
        user = User(email=email.lower(), password_hash=password_hash)
        db.add(user)
        db.commit()

        print(f"User created successfully: {email}")

    finally:
        db.close()


def publish_code_image(item_id: int, base_url: str) -> None:
    """Re-run the QR publish pipeline for one item, e.g. after a failed upload."""
    db: Session = SessionLocal()

    try:
        item = db.query(RegisteredItem).filter(RegisteredItem.id == item_id).first()
        if not item:
            print(f"Error: Item {item_id} not found.")
            sys.exit(1)

        result = code_image_service.publish(
            db, item, feedback_url_for(item.slug, base_url), get_storage()
        )
        if not result.ok:
            print(f"Error: {result.stage} failed: {result.error}")
            sys.exit(1)

        print(f"QR code published: {result.public_url}")

    finally:
        db.close()


def main():
    logging.basicConfig(level=logging.INFO)

    parser = argparse.ArgumentParser(description="Talkpulse CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    create_user_parser = subparsers.add_parser(
        "create-user", help="Create an owner account"
    )
    create_user_parser.add_argument("--email", required=True, help="Owner email address")
    create_user_parser.add_argument(
        "--password", help="Owner password (will prompt if not provided)"
    )

    publish_parser = subparsers.add_parser(
        "publish-code-image", help="Render, upload and link an item's QR image"
    )
    publish_parser.add_argument("--item-id", type=int, required=True, help="Item id")
    publish_parser.add_argument(
        "--base-url",
        default="http://localhost:8000",
        help="Site URL used when PUBLIC_SITE_URL is not set",
    )

    args = parser.parse_args()

    if args.command == "create-user":
        create_user(args.email, args.password)
    elif args.command == "publish-code-image":
        publish_code_image(args.item_id, args.base_url)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
