import os

from sqlalchemy import select

from spotnere.infrastructure.config import load_settings
from spotnere.infrastructure.db.models import Base, Vendor
from spotnere.infrastructure.db.session import (
    build_session_factory,
    create_db_engine,
    session_scope,
)


def seed_vendors(db) -> None:
    vendor_defs = [
        {
            "place_id": "place_hotel_star",
            "name": "Hotel Star",
            "push_token": os.getenv("DEMO_VENDOR_PUSH_TOKEN"),
        },
        {
            "place_id": "place_lakeside_cafe",
            "name": "Lakeside Cafe",
            "push_token": None,
        },
    ]

    for item in vendor_defs:
        existing = db.execute(
            select(Vendor).where(Vendor.place_id == item["place_id"])
        ).scalar_one_or_none()
        if existing:
            existing.name = item["name"]
            existing.push_token = item["push_token"]
            continue

        db.add(
            Vendor(
                place_id=item["place_id"],
                name=item["name"],
                push_token=item["push_token"],
            )
        )


def main() -> None:
    settings = load_settings()
    engine = create_db_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)

    with session_scope(build_session_factory(engine)) as db:
        seed_vendors(db)
    print("Seed complete: Hotel Star and Lakeside Cafe vendors added.")


if __name__ == "__main__":
    main()
