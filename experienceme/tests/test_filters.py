import unittest
from unittest.mock import MagicMock

from experienceme.db import InMemoryDataClient
from experienceme.filters import (
    BudgetBucket,
    FilterSelections,
    category_id_for_label,
    compose_query,
    experiences_url_for,
    find_matching_experiences,
)
from experienceme.tests.helpers import (
    FOOD_ID,
    OUTDOORS_ID,
    seed_business,
    seed_categories,
    seed_experience,
)


class BudgetBucketTests(unittest.TestCase):
    def test_boundaries(self):
        self.assertTrue(BudgetBucket.UNDER_50.contains(49.99))
        self.assertFalse(BudgetBucket.UNDER_50.contains(50))
        self.assertTrue(BudgetBucket.FROM_50_TO_100.contains(50))
        self.assertTrue(BudgetBucket.FROM_50_TO_100.contains(100))
        self.assertFalse(BudgetBucket.FROM_100_TO_200.contains(100))
        self.assertTrue(BudgetBucket.FROM_100_TO_200.contains(200))
        self.assertFalse(BudgetBucket.OVER_200.contains(200))
        self.assertTrue(BudgetBucket.OVER_200.contains(200.01))

    def test_buckets_partition_the_price_line(self):
        for price in [0, 10, 49.5, 50, 75, 100, 100.5, 150, 200, 201, 5000]:
            matching = [b for b in BudgetBucket if b.contains(price)]
            self.assertEqual(len(matching), 1, f"price {price} matched {matching}")

    def test_missing_price_never_matches(self):
        for bucket in BudgetBucket:
            self.assertFalse(bucket.contains(None))

    def test_parse(self):
        self.assertIs(BudgetBucket.parse("50_100"), BudgetBucket.FROM_50_TO_100)
        self.assertIsNone(BudgetBucket.parse(""))
        self.assertIsNone(BudgetBucket.parse("cheap"))


class SelectionTests(unittest.TestCase):
    def test_category_label_lookup(self):
        self.assertEqual(category_id_for_label("Outdoors"), OUTDOORS_ID)
        self.assertEqual(category_id_for_label("food"), FOOD_ID)
        self.assertIsNone(category_id_for_label("Skydiving"))
        self.assertIsNone(category_id_for_label(None))

    def test_from_params(self):
        selections = FilterSelections.from_params(
            {"type": "Outdoors", "county": " Dublin ", "budget": "50_100", "q": ""}
        )
        self.assertEqual(selections.category_id, OUTDOORS_ID)
        self.assertEqual(selections.county, "Dublin")
        self.assertIs(selections.budget, BudgetBucket.FROM_50_TO_100)
        self.assertIsNone(selections.search_text)

    def test_explicit_category_id_wins(self):
        selections = FilterSelections.from_params(
            {"type": "Outdoors", "category_id": FOOD_ID}
        )
        self.assertEqual(selections.category_id, FOOD_ID)

    def test_absent_selections_mean_no_constraint(self):
        query = compose_query(FilterSelections())
        self.assertIsNone(query.experience_ids)
        self.assertIsNone(query.county)
        self.assertIsNone(query.price)
        self.assertIsNone(query.search_text)
        self.assertTrue(query.public_only)

    def test_experiences_url_carries_finder_source(self):
        url = experiences_url_for(
            FilterSelections(
                category_id=OUTDOORS_ID,
                county="Dublin",
                budget=BudgetBucket.UNDER_50,
            )
        )
        self.assertTrue(url.startswith("/experiences?"))
        self.assertIn("county=Dublin", url)
        self.assertIn("budget=under_50", url)
        self.assertIn(f"category_id={OUTDOORS_ID}", url)
        self.assertIn("src=finder", url)


class FindMatchingExperiencesTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDataClient()
        seed_categories(self.db)
        self.business = seed_business(self.db)

    def test_empty_category_short_circuits_main_query(self):
        db = MagicMock()
        db.experience_ids_for_category.return_value = []
        result = find_matching_experiences(db, FilterSelections(category_id=FOOD_ID))
        self.assertEqual(result, [])
        db.find_experiences.assert_not_called()

    def test_no_category_skips_link_lookup(self):
        db = MagicMock()
        db.find_experiences.return_value = []
        find_matching_experiences(db, FilterSelections(county="Cork"), limit=3)
        db.experience_ids_for_category.assert_not_called()
        query = db.find_experiences.call_args.args[0]
        self.assertEqual(query.county, "Cork")
        self.assertEqual(db.find_experiences.call_args.kwargs["limit"], 3)

    def test_all_constraints_are_anded(self):
        match = seed_experience(
            self.db, self.business, category_id=OUTDOORS_ID, min_price=60
        )
        seed_experience(self.db, self.business, category_id=OUTDOORS_ID, county="Cork")
        seed_experience(self.db, self.business, category_id=OUTDOORS_ID, min_price=120)
        seed_experience(self.db, self.business, category_id=FOOD_ID, min_price=60)
        seed_experience(
            self.db, self.business, category_id=OUTDOORS_ID, min_price=None
        )

        results = find_matching_experiences(
            self.db,
            FilterSelections(
                category_id=OUTDOORS_ID,
                county="Dublin",
                budget=BudgetBucket.FROM_50_TO_100,
            ),
        )
        self.assertEqual([e.experience_id for e in results], [match.experience_id])

    def test_only_approved_and_published_are_returned(self):
        visible = seed_experience(self.db, self.business, status="Approved")
        seed_experience(self.db, self.business, status="pending")
        seed_experience(self.db, self.business, is_published=False)

        results = find_matching_experiences(self.db, FilterSelections())
        self.assertEqual([e.experience_id for e in results], [visible.experience_id])

    def test_free_text_matches_title_or_description(self):
        by_title = seed_experience(self.db, self.business, title="Sea KAYAK trip")
        by_desc = seed_experience(
            self.db,
            self.business,
            title="Harbour tour",
            event_description="Includes a short kayak lesson",
        )
        seed_experience(
            self.db, self.business, title="Cookery class", event_description="Pasta"
        )

        results = find_matching_experiences(
            self.db, FilterSelections(search_text="kayak")
        )
        self.assertEqual(
            {e.experience_id for e in results},
            {by_title.experience_id, by_desc.experience_id},
        )


if __name__ == "__main__":
    unittest.main()
