from getpass import getpass
from typing import Optional

from pymongo.database import Database

from .auth.security import get_password_hash
from .database import ensure_indexes, get_db, utcnow


def create_admin(
    db: Database, username: str, email: str, password: str, full_name: Optional[str] = None
) -> bool:
    """Insert an admin account; False when the username or email is taken."""
    existing = db["users"].find_one({"$or": [{"username": username}, {"email": email}]})
    if existing:
        return False
    doc = {
        "username": username,
        "email": email,
        "full_name": full_name,
        "role": "admin",
        "hashed_password": get_password_hash(password),
        "is_active": True,
        "created_at": utcnow(),
    }
    db["users"].insert_one(doc)
    return True


def main():
    db = get_db()
    ensure_indexes(db)

    print("Create admin user")
    username = input("Admin username: ").strip()
    email = input("Admin email: ").strip()
    full_name = input("Admin full name (optional): ").strip() or None
    password = getpass("Admin password: ")
    if not username or not email or not password:
        print("Username, email and password are required.")
        return

    if not create_admin(db, username, email, password, full_name):
        print("User with this username or email already exists.")
        return
    print("Admin user created successfully.")


if __name__ == "__main__":
    main()
