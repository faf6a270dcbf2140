import unittest

from experienceme.db import InMemoryDataClient
from experienceme.errors import ConflictError, ValidationError
from experienceme.tests.helpers import OUTDOORS_ID, seed_categories
from experienceme.waitlist import (
    DUPLICATE_MESSAGE,
    WaitlistForm,
    join_waitlist,
    validate_waitlist_entry,
    waitlist_overview,
)


def _form(**overrides):
    fields = dict(
        contact_name="Ciara",
        contact_email="Ciara@Tours.ie ",
        business_name="Burren Walks",
        website="burrenwalks.ie",
        county="Clare",
        category_id=OUTDOORS_ID,
        challenges_getting_bookings="Off-season demand",
    )
    fields.update(overrides)
    return WaitlistForm(**fields)


class WaitlistTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDataClient()
        seed_categories(self.db)

    def test_validation(self):
        entry = validate_waitlist_entry(_form())
        self.assertEqual(entry.contact_email, "ciara@tours.ie")
        self.assertEqual(entry.status, "new")
        with self.assertRaisesRegex(ValidationError, "required fields"):
            validate_waitlist_entry(_form(website="   "))
        with self.assertRaisesRegex(ValidationError, "valid email"):
            validate_waitlist_entry(_form(contact_email="ciara"))

    def test_duplicate_email_is_a_conflict(self):
        join_waitlist(self.db, _form())
        with self.assertRaises(ConflictError) as ctx:
            join_waitlist(self.db, _form(contact_email="ciara@tours.ie", contact_name="C"))
        self.assertEqual(str(ctx.exception), DUPLICATE_MESSAGE)
        self.assertEqual(self.db.count_waitlist(), 1)

    def test_overview(self):
        join_waitlist(self.db, _form())
        join_waitlist(self.db, _form(contact_email="second@tours.ie"))
        overview = waitlist_overview(self.db, limit=1)
        self.assertEqual(overview.total, 2)
        self.assertEqual(len(overview.latest), 1)
        self.assertEqual(overview.latest[0].category_name, "Outdoors")


if __name__ == "__main__":
    unittest.main()
