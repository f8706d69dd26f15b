#!/usr/bin/env python3
"""
Script to create or update the clinic's default service catalog
"""

from app.database import Base, SessionLocal, engine
from app.domain.catalog.repository import ServiceRepository
from app.models import Service

DEFAULT_SERVICES = [
    {"code": "WRINKLE_BOTOX", "name": "Wrinkle / Botox", "duration_minutes": 30, "category": "FACIAL", "daily_limit_minutes": 180},
    {"code": "VOLUME_LIFTING", "name": "Volume / Lifting", "duration_minutes": 40, "category": "FACIAL", "daily_limit_minutes": 240},
    {"code": "SKIN_CARE", "name": "Skin care", "duration_minutes": 50, "category": "SKIN", "daily_limit_minutes": None},
    {"code": "REMOVAL_PROCEDURE", "name": "Removal procedure", "duration_minutes": 30, "category": "REMOVAL", "daily_limit_minutes": None},
    {"code": "BODY_CARE", "name": "Body care", "duration_minutes": 60, "category": "BODY", "daily_limit_minutes": 240},
    {"code": "OTHER_CONSULTATION", "name": "Consultation", "duration_minutes": 20, "category": "CONSULTATION", "daily_limit_minutes": None},
]


def seed_services():
    Base.metadata.create_all(bind=engine, checkfirst=True)
    db = SessionLocal()
    repo = ServiceRepository()

    try:
        print("🔍 Seeding default services...\n")

        for order, data in enumerate(DEFAULT_SERVICES, start=1):
            limit_minutes = data["daily_limit_minutes"]
            fields = {k: v for k, v in data.items() if k != "daily_limit_minutes"}

            try:
                service = repo.get_by_code(db, data["code"])
                if service:
                    # Code is the stable key; only descriptive fields are refreshed
                    repo.update_service(db, service, name=fields["name"], category=fields["category"])
                    print(f"   ↻ Updated '{data['code']}'")
                else:
                    service = repo.create_service(
                        db, buffer_minutes=10, is_active=True, display_order=order, **fields
                    )
                    print(f"   ✅ Created '{data['code']}' ({service.duration_minutes} min)")

                if limit_minutes:
                    repo.upsert_limit(db, service.id, limit_minutes)
                    print(f"      📊 Daily limit: {limit_minutes} min")
            except Exception as e:
                print(f"   ⚠️  Error for '{data['code']}': {e}")
                db.rollback()

        total = db.query(Service).count()
        print(f"\n✅ Done. Services in catalog: {total}")
    finally:
        db.close()


if __name__ == "__main__":
    seed_services()
