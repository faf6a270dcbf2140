"""Seed data shared by the test modules."""

import uuid

from experienceme.db import (
    BusinessRecord,
    CategoryRecord,
    ExperienceRecord,
    ImageRecord,
    InMemoryDataClient,
)
from experienceme.filters import TYPE_TO_CATEGORY_ID

OUTDOORS_ID = TYPE_TO_CATEGORY_ID["outdoors"]
FOOD_ID = TYPE_TO_CATEGORY_ID["food"]


def seed_categories(db: InMemoryDataClient) -> None:
    db.add_category(CategoryRecord(category_id=OUTDOORS_ID, category_name="Outdoors"))
    db.add_category(CategoryRecord(category_id=FOOD_ID, category_name="Food & drink"))


def seed_business(db: InMemoryDataClient, user_id: str = "owner-1", **overrides) -> BusinessRecord:
    fields = dict(
        business_id=uuid.uuid4().hex,
        user_id=user_id,
        business_name="Wild Atlantic Tours",
        website_url="https://wild.example.com",
        status="approved",
    )
    fields.update(overrides)
    return db.create_business(BusinessRecord(**fields))


def seed_experience(
    db: InMemoryDataClient,
    business: BusinessRecord,
    *,
    category_id=None,
    images=(),
    created_at=None,
    **overrides,
) -> ExperienceRecord:
    fields = dict(
        experience_id=uuid.uuid4().hex,
        business_id=business.business_id,
        title="Kayaking on the Liffey",
        short_description="Paddle through the city",
        event_description="A guided kayak tour through Dublin city centre.",
        county="Dublin",
        min_price=75.0,
        max_price=90.0,
        status="approved",
        is_published=True,
    )
    fields.update(overrides)
    if created_at is not None:
        fields["created_at"] = created_at
    exp = ExperienceRecord(**fields)
    db.create_experience(exp)
    if category_id:
        db.link_category(exp.experience_id, category_id)
    for order, (url, primary) in enumerate(images):
        db.add_image(
            ImageRecord(
                image_id=uuid.uuid4().hex,
                experience_id=exp.experience_id,
                image_url=url,
                is_primary=primary,
                display_order=order,
            )
        )
    return exp
