"""Seed data for initial setup"""
from sqlalchemy.orm import Session
from sqlalchemy import select

from src.vendor_tool.database import SessionLocal
from src.vendor_tool.models.user import User, PermissionLevel
from src.vendor_tool.models.role import Role
from src.vendor_tool.models.vendor import Vendor

DEFAULT_ROLES = [
    ("Developer", "Software engineer"),
    ("QA Engineer", "Test and quality assurance"),
    ("Project Manager", None),
    ("Business Analyst", None),
]


def create_admin_user(db: Session) -> User:
    existing = db.execute(
        select(User).where(User.email == "admin@vendortool.co.uk")
    ).scalar_one_or_none()

    if existing:
        print("Admin user already exists")
        return existing

    admin = User(
        email="admin@vendortool.co.uk",
        name="System Admin",
        permission_level=PermissionLevel.ADMIN,
        is_active=True
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    print(f"Created admin user: {admin.email} (ID: {admin.id})")
    return admin


def create_default_roles(db: Session) -> list[Role]:
    created = []
    for name, description in DEFAULT_ROLES:
        existing = db.execute(
            select(Role).where(Role.name == name)
        ).scalar_one_or_none()

        if existing:
            created.append(existing)
            continue

        role = Role(name=name, description=description)
        db.add(role)
        db.commit()
        db.refresh(role)
        print(f"Created role: {name} (ID: {role.id})")
        created.append(role)

    return created


def create_vendor(db: Session, name: str) -> Vendor:
    existing = db.execute(
        select(Vendor).where(Vendor.name == name)
    ).scalar_one_or_none()

    if existing:
        print(f"Vendor already exists: {name}")
        return existing

    vendor = Vendor(name=name)
    db.add(vendor)
    db.commit()
    db.refresh(vendor)
    print(f"Created vendor: {name} (ID: {vendor.id})")
    return vendor


def run_seed():
    db = SessionLocal()
    try:
        create_admin_user(db)
        create_default_roles(db)
        create_vendor(db, "Northwind Consulting")
        print("Seed completed successfully")
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
