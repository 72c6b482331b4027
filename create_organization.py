import os

from invoicing import create_app
from invoicing.extensions import db
from invoicing.models import Organization, User

ORGANIZATION_NAME = os.environ.get("SEED_ORGANIZATION_NAME", "Demo Studio")
EMAIL = os.environ.get("SEED_USER_EMAIL", "owner@example.com")

app = create_app()

with app.app_context():
    existing = User.query.filter_by(email=EMAIL).first()
    if existing:
        print("ℹ️ User already exists:", EMAIL, "id =", existing.id)
        raise SystemExit(0)

    print("🏢 Creating organization...")
    organization = Organization(name=ORGANIZATION_NAME, email=EMAIL)
    db.session.add(organization)
    db.session.flush()

    print("👤 Creating owner user...")
    owner = User(
        organization_id=organization.id,
        first_name="Owner",
        last_name=ORGANIZATION_NAME,
        email=EMAIL,
    )
    db.session.add(owner)
    db.session.commit()

    print("✅ Organization created:", organization.id)
    print("✅ User created (send as X-User-Id):", owner.id)
