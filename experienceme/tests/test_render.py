import unittest

from experienceme.db import BusinessRecord, ExperienceRecord, ImageRecord
from experienceme.render import (
    PLACEHOLDER_IMAGE_URL,
    ResultState,
    format_from_price,
    format_price_range,
    primary_image_url,
    render_detail,
    render_results,
    safe_url,
    split_to_items,
    state_message,
    to_card,
    to_detail,
    truncate,
)


def _image(url, primary=False, order=None):
    return ImageRecord(
        image_id=url, experience_id="e1", image_url=url, is_primary=primary, display_order=order
    )


def _experience(**overrides):
    fields = dict(
        experience_id="e1",
        business_id="b1",
        title="Sunset yoga",
        county="Galway",
        status="approved",
        is_published=True,
    )
    fields.update(overrides)
    return ExperienceRecord(**fields)


class PrimaryImageTests(unittest.TestCase):
    def test_primary_flag_wins(self):
        images = [
            _image("https://img/a.jpg", order=0),
            _image("https://img/b.jpg", primary=True, order=1),
        ]
        self.assertEqual(primary_image_url(images), "https://img/b.jpg")

    def test_first_by_display_order_without_primary(self):
        images = [
            _image("https://img/late.jpg", order=None),
            _image("https://img/second.jpg", order=2),
            _image("https://img/first.jpg", order=1),
        ]
        self.assertEqual(primary_image_url(images), "https://img/first.jpg")

    def test_never_blank(self):
        self.assertEqual(primary_image_url([]), PLACEHOLDER_IMAGE_URL)
        self.assertEqual(primary_image_url([_image("", primary=True)]), PLACEHOLDER_IMAGE_URL)
        self.assertEqual(
            primary_image_url([_image("javascript:alert(1)", primary=True)]),
            PLACEHOLDER_IMAGE_URL,
        )


class PriceTests(unittest.TestCase):
    def test_three_way_rule(self):
        self.assertEqual(format_price_range(50, 80), "€50 - €80")
        self.assertEqual(format_price_range(50, None), "From €50")
        self.assertEqual(format_price_range(None, 80), "Price TBD")
        self.assertEqual(format_price_range(None, None), "Price TBD")

    def test_whole_euros(self):
        self.assertEqual(format_price_range(49.6, 120.2), "€50 - €120")
        self.assertEqual(format_from_price(None), "€—")


class TextHelperTests(unittest.TestCase):
    def test_split_newlines_and_bullets(self):
        text = "- Warm up\n• Flow sequence\n\n  Cool down  "
        self.assertEqual(split_to_items(text), ["Warm up", "Flow sequence", "Cool down"])

    def test_split_single_line_on_commas(self):
        self.assertEqual(split_to_items("Mat, towel , tea"), ["Mat", "towel", "tea"])

    def test_split_empty(self):
        self.assertEqual(split_to_items(None), [])
        self.assertEqual(split_to_items("   "), [])

    def test_truncate(self):
        self.assertEqual(truncate("short"), "short")
        long_text = "x" * 200
        self.assertEqual(truncate(long_text), "x" * 110 + "...")

    def test_safe_url(self):
        self.assertEqual(safe_url("https://a.example"), "https://a.example")
        self.assertIsNone(safe_url("javascript:alert(1)"))
        self.assertIsNone(safe_url(""))


class DetailTests(unittest.TestCase):
    def test_fallbacks(self):
        detail = to_detail(_experience(county=None))
        self.assertEqual(detail.description, "No description provided yet.")
        self.assertEqual(detail.meta_text, "Ireland • Duration TBD")
        self.assertEqual(detail.host_name, "Business")
        self.assertEqual(detail.host_location, "Ireland")
        self.assertEqual(detail.host_description, "Business description coming soon.")
        self.assertIsNone(detail.booking_url)
        self.assertIn("via.placeholder.com/1200x800", detail.main_image_url)

    def test_booking_url_falls_back_to_business_site(self):
        business = BusinessRecord(
            business_id="b1",
            user_id="u1",
            business_name="Yoga Co",
            website_url="https://yoga.example",
        )
        detail = to_detail(_experience(business=business, duration_minutes=90))
        self.assertEqual(detail.booking_url, "https://yoga.example")
        self.assertEqual(detail.meta_text, "Galway • 90 mins")
        self.assertEqual(detail.host_location, "Galway, Ireland")

    def test_short_description_used_when_long_missing(self):
        detail = to_detail(_experience(short_description="  Breathe.  "))
        self.assertEqual(detail.description, "Breathe.")

    def test_thumbnails_limited_and_ordered(self):
        images = [_image(f"https://img/{i}.jpg", order=5 - i) for i in range(6)]
        detail = to_detail(_experience(images=images))
        self.assertEqual(
            detail.thumbnails,
            ["https://img/5.jpg", "https://img/4.jpg", "https://img/3.jpg", "https://img/2.jpg"],
        )


class HtmlRenderingTests(unittest.TestCase):
    def test_user_text_is_escaped(self):
        nasty = "<script>alert('x')</script> & \"quotes\""
        html = render_results([_experience(title=nasty, event_description=nasty)])
        self.assertNotIn("<script>", html)
        self.assertIn("&lt;script&gt;", html)
        self.assertIn("&amp;", html)
        self.assertIn("&#34;quotes&#34;", html)
        self.assertIn("&#39;x&#39;", html)

    def test_detail_escapes_list_items(self):
        html = render_detail(_experience(what_you_do="<b>bold</b>\nplain"))
        self.assertIn("<li>&lt;b&gt;bold&lt;/b&gt;</li>", html)
        self.assertIn("<li>plain</li>", html)

    def test_three_states_are_distinct(self):
        loading = render_results(state=ResultState.LOADING)
        empty = render_results([])
        error = render_results(state=ResultState.ERROR)
        self.assertIn(state_message(ResultState.LOADING), loading)
        self.assertIn("No experiences found", empty)
        self.assertIn("Something went wrong loading experiences.", error)
        self.assertEqual(len({loading, empty, error}), 3)
        self.assertIn('data-state="empty"', empty)

    def test_ready_state_lists_cards(self):
        html = render_results([_experience(), _experience(experience_id="e2")])
        self.assertIn("2 experiences found", html)
        self.assertEqual(html.count('class="experience-card"'), 2)

    def test_match_layout(self):
        html = render_results([_experience()], layout="matches", source="finder")
        self.assertIn('class="match-card"', html)
        self.assertIn("src=finder", html)
        empty = render_results([], layout="matches")
        self.assertIn("No matches yet", empty)

    def test_missing_detail_renders_error(self):
        html = render_detail(None)
        self.assertIn("Something went wrong loading this experience.", html)


class CardTests(unittest.TestCase):
    def test_card_defaults(self):
        card = to_card(_experience(title="", county=None))
        self.assertEqual(card.title, "Experience")
        self.assertEqual(card.county, "Ireland")
        self.assertEqual(card.price_text, "Price TBD")
        self.assertEqual(card.image_url, PLACEHOLDER_IMAGE_URL)
        self.assertEqual(card.detail_url, "/experiences/detail?id=e1")


if __name__ == "__main__":
    unittest.main()
