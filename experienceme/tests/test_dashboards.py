import threading
import unittest
from unittest.mock import MagicMock

from experienceme.dashboards import (
    ExperienceDraft,
    ImageUpload,
    ProfileForm,
    SubmitGuard,
    admin_experiences,
    admin_stats,
    delete_experience,
    list_business_experiences,
    normalize_website,
    set_experience_status,
    submit_experience,
    to_admin_view,
    update_business_profile,
    validate_image_upload,
)
from experienceme.db import InMemoryDataClient, UserProfile
from experienceme.errors import ConflictError, NotFoundError, ValidationError
from experienceme.storage import InMemoryStorageClient
from experienceme.tests.helpers import (
    OUTDOORS_ID,
    seed_business,
    seed_categories,
    seed_experience,
)


def _draft(**overrides):
    fields = dict(
        title="Cliff walk",
        short_description="Walk the cliffs",
        event_description="A three hour guided walk.",
        category_id=OUTDOORS_ID,
        county="Clare",
        status="pending",
        min_price=40.0,
        max_price=60.0,
    )
    fields.update(overrides)
    return ExperienceDraft(**fields)


def _jpeg(name="photo.jpg", size=10):
    return ImageUpload(filename=name, content_type="image/jpeg", data=b"x" * size)


class ImageUploadTests(unittest.TestCase):
    def test_accepts_supported_types(self):
        self.assertEqual(validate_image_upload(_jpeg("cliff.JPEG")), "jpeg")
        png = ImageUpload(filename="noext", content_type="image/png", data=b"x")
        self.assertEqual(validate_image_upload(png), "png")

    def test_rejects_other_types_and_oversize(self):
        gif = ImageUpload(filename="a.gif", content_type="image/gif", data=b"x")
        with self.assertRaises(ValidationError):
            validate_image_upload(gif)
        with self.assertRaises(ValidationError):
            validate_image_upload(_jpeg(size=11), max_bytes=10)


class DraftValidationTests(unittest.TestCase):
    def test_required_fields(self):
        with self.assertRaisesRegex(ValidationError, "required fields"):
            _draft(title="  ").validate()
        with self.assertRaisesRegex(ValidationError, "category and county"):
            _draft(county="").validate()

    def test_only_draft_or_pending(self):
        with self.assertRaises(ValidationError):
            _draft(status="approved").validate()

    def test_price_and_duration_checks(self):
        with self.assertRaises(ValidationError):
            _draft(min_price=-1).validate()
        with self.assertRaises(ValidationError):
            _draft(min_price=80, max_price=50).validate()
        with self.assertRaises(ValidationError):
            _draft(duration_minutes=0).validate()


class SubmitExperienceTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDataClient()
        seed_categories(self.db)
        self.storage = InMemoryStorageClient()
        self.guard = SubmitGuard()
        self.business = seed_business(self.db)

    def test_create_uploads_images_in_order(self):
        saved = submit_experience(
            self.db,
            self.storage,
            self.guard,
            self.business,
            _draft(),
            [_jpeg("a.jpg"), _jpeg("b.png")],
        )
        self.assertEqual(saved.status, "pending")
        self.assertTrue(saved.is_published)
        self.assertEqual(saved.category_id, OUTDOORS_ID)
        self.assertEqual(len(saved.images), 2)
        self.assertTrue(saved.images[0].is_primary)
        self.assertFalse(saved.images[1].is_primary)
        self.assertTrue(saved.images[0].image_url.endswith(".jpg"))
        self.assertEqual(len(self.storage.stored_objects), 2)
        for path in self.storage.stored_objects:
            self.assertTrue(path.startswith(f"{self.business.business_id}/"))

    def test_image_count_limits(self):
        with self.assertRaisesRegex(ValidationError, "at least one image"):
            submit_experience(self.db, self.storage, self.guard, self.business, _draft())
        with self.assertRaisesRegex(ValidationError, "Maximum 5 images"):
            submit_experience(
                self.db,
                self.storage,
                self.guard,
                self.business,
                _draft(),
                [_jpeg(f"{i}.jpg") for i in range(6)],
            )
        self.assertEqual(self.storage.stored_objects, {})

    def test_update_replaces_category_and_images(self):
        exp = seed_experience(
            self.db,
            self.business,
            category_id=OUTDOORS_ID,
            images=[("https://img/old1.jpg", True), ("https://img/old2.jpg", False)],
        )
        saved = submit_experience(
            self.db,
            self.storage,
            self.guard,
            self.business,
            _draft(title="Renamed", category_id="food-cat"),
            [_jpeg("new.jpg")],
            experience_id=exp.experience_id,
            keep_image_urls=["https://img/old2.jpg"],
        )
        self.assertEqual(saved.title, "Renamed")
        self.assertEqual(saved.category_id, "food-cat")
        self.assertEqual(
            [self.db.experience_categories.count((exp.experience_id, c)) for c in (OUTDOORS_ID, "food-cat")],
            [0, 1],
        )
        urls = [img.image_url for img in saved.images]
        self.assertEqual(urls[0], "https://img/old2.jpg")
        self.assertEqual(len(urls), 2)
        self.assertNotIn("https://img/old1.jpg", urls)

    def test_update_requires_ownership(self):
        other = seed_business(self.db, user_id="owner-2")
        exp = seed_experience(self.db, other)
        with self.assertRaises(NotFoundError):
            submit_experience(
                self.db,
                self.storage,
                self.guard,
                self.business,
                _draft(),
                [_jpeg()],
                experience_id=exp.experience_id,
            )
        self.assertEqual(self.storage.stored_objects, {})

    def test_concurrent_submission_is_rejected(self):
        db = MagicMock()
        entered = threading.Event()
        release = threading.Event()

        def slow_create(record):
            entered.set()
            release.wait(5)
            return record

        db.create_experience.side_effect = slow_create
        first = threading.Thread(
            target=submit_experience,
            args=(db, self.storage, self.guard, self.business, _draft(), [_jpeg()]),
        )
        first.start()
        try:
            self.assertTrue(entered.wait(5))
            self.assertTrue(self.guard.is_busy(self.business.business_id))
            with self.assertRaises(ConflictError):
                submit_experience(
                    db, self.storage, self.guard, self.business, _draft(), [_jpeg()]
                )
        finally:
            release.set()
            first.join(5)
        self.assertFalse(self.guard.is_busy(self.business.business_id))
        self.assertEqual(db.create_experience.call_count, 1)

    def test_guard_is_released_after_failure(self):
        db = MagicMock()
        db.create_experience.side_effect = RuntimeError("boom")
        with self.assertRaises(RuntimeError):
            submit_experience(db, self.storage, self.guard, self.business, _draft(), [_jpeg()])
        self.assertFalse(self.guard.is_busy(self.business.business_id))

    def test_delete_and_status_listing(self):
        pending = seed_experience(self.db, self.business, status="pending")
        approved = seed_experience(self.db, self.business)
        self.assertEqual(
            [e.experience_id for e in list_business_experiences(self.db, self.business, "pending")],
            [pending.experience_id],
        )
        delete_experience(self.db, self.business, pending.experience_id)
        self.assertEqual(
            [e.experience_id for e in list_business_experiences(self.db, self.business)],
            [approved.experience_id],
        )
        with self.assertRaises(ValidationError):
            list_business_experiences(self.db, self.business, "archived")


class ProfileTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDataClient()
        self.storage = InMemoryStorageClient()
        self.business = seed_business(self.db, website_url=None)

    def test_normalize_website(self):
        self.assertEqual(normalize_website("example.ie"), "https://example.ie")
        self.assertEqual(normalize_website("http://a.ie"), "http://a.ie")
        self.assertIsNone(normalize_website("  "))

    def test_update_with_logo(self):
        logo = ImageUpload(filename="logo.png", content_type="image/png", data=b"png")
        updated = update_business_profile(
            self.db,
            self.storage,
            self.business,
            ProfileForm(website_url="tours.ie", location_text=" Doolin "),
            logo,
        )
        self.assertEqual(updated.website_url, "https://tours.ie")
        self.assertEqual(updated.location_text, "Doolin")
        [path] = self.storage.stored_objects
        self.assertTrue(path.startswith(f"business-logos/{self.business.business_id}/logo_"))
        self.assertTrue(updated.business_image_url.endswith(path))

    def test_logo_type_is_checked(self):
        logo = ImageUpload(filename="logo.gif", content_type="image/gif", data=b"gif")
        with self.assertRaisesRegex(ValidationError, "Logo must be"):
            update_business_profile(self.db, self.storage, self.business, ProfileForm(), logo)


class AdminTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDataClient()
        seed_categories(self.db)
        self.business = seed_business(self.db)
        self.db.create_user_profile(UserProfile(user_id="u1", email="u@x.ie"))

    def test_stats(self):
        seed_experience(self.db, self.business, status="pending")
        seed_experience(self.db, self.business)
        stats = admin_stats(self.db)
        self.assertEqual(stats.total_experiences, 2)
        self.assertEqual(stats.total_businesses, 1)
        self.assertEqual(stats.total_users, 1)
        self.assertEqual(stats.pending, 1)

    def test_reject_requires_reason(self):
        exp = seed_experience(self.db, self.business, status="pending")
        with self.assertRaises(ValidationError):
            set_experience_status(self.db, exp.experience_id, "rejected", reason=" ")
        updated = set_experience_status(
            self.db, exp.experience_id, "rejected", reason="Photos are blurry"
        )
        self.assertEqual(updated.status, "rejected")
        self.assertEqual(updated.title, exp.title)

    def test_approve_missing_experience(self):
        with self.assertRaises(NotFoundError):
            set_experience_status(self.db, "missing", "approved")

    def test_admin_view_fallbacks(self):
        exp = seed_experience(self.db, self.business, status="pending", county=None)
        view = to_admin_view(self.db.get_experience(exp.experience_id, public_only=False))
        self.assertEqual(view.status_label, "Pending")
        self.assertEqual(view.meta, "Wild Atlantic Tours • Location TBD • Uncategorised")
        self.assertIn("No+Image", view.image_url)
        self.assertEqual(
            [v.experience_id for v in admin_experiences(self.db, "pending")],
            [exp.experience_id],
        )


if __name__ == "__main__":
    unittest.main()
