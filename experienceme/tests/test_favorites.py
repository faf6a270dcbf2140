import unittest
from unittest.mock import MagicMock

from experienceme.db import DuplicateEntryError, InMemoryDataClient
from experienceme.favorites import is_favorited, list_favorites, toggle_favorite
from experienceme.tests.helpers import seed_business, seed_experience


class FavoriteToggleTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDataClient()
        business = seed_business(self.db)
        self.exp = seed_experience(self.db, business)

    def _rows(self):
        return [
            key for key in self.db.favorites if key == ("u1", self.exp.experience_id)
        ]

    def test_toggle_twice_returns_to_original_state(self):
        first = toggle_favorite(self.db, "u1", self.exp.experience_id)
        self.assertTrue(first.is_favorited)
        self.assertEqual(len(self._rows()), 1)

        second = toggle_favorite(self.db, "u1", self.exp.experience_id)
        self.assertFalse(second.is_favorited)
        self.assertEqual(len(self._rows()), 0)
        self.assertFalse(is_favorited(self.db, "u1", self.exp.experience_id))

    def test_state_comes_from_a_fresh_read(self):
        db = MagicMock()
        db.get_favorite.return_value = None
        db.list_favorite_experience_ids.return_value = []
        state = toggle_favorite(db, "u1", "e1")
        db.add_favorite.assert_called_once_with("u1", "e1")
        # The store says nothing was persisted, so neither do we.
        self.assertFalse(state.is_favorited)

    def test_concurrent_insert_is_tolerated(self):
        db = MagicMock()
        db.get_favorite.return_value = None
        db.add_favorite.side_effect = DuplicateEntryError("dup")
        db.list_favorite_experience_ids.return_value = ["e1"]
        state = toggle_favorite(db, "u1", "e1")
        self.assertTrue(state.is_favorited)

    def test_list_hides_experiences_no_longer_public(self):
        business = seed_business(self.db, user_id="owner-2")
        hidden = seed_experience(self.db, business, status="rejected")
        toggle_favorite(self.db, "u1", self.exp.experience_id)
        self.db.add_favorite("u1", hidden.experience_id)

        listed = list_favorites(self.db, "u1")
        self.assertEqual([e.experience_id for e in listed], [self.exp.experience_id])

    def test_list_empty(self):
        self.assertEqual(list_favorites(self.db, "nobody"), [])


if __name__ == "__main__":
    unittest.main()
