"""
Turns finder and search selections into an experience query.

Category selections go through the experience/category link table first; an
empty link set short-circuits to no results without running the main select.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Mapping, Optional
from urllib.parse import urlencode

from experienceme.db import DataClient, ExperienceQuery, ExperienceRecord, PriceRange

logger = logging.getLogger(__name__)

RECIPIENTS = ["Partner", "Family member", "Friend", "Colleague", "Other"]
OCCASIONS = ["Birthday", "Anniversary", "Thank you", "Valentines", "Just because"]

# Finder type chips: label -> key -> category id on the platform.
TYPE_LABELS = {
    "Food & drink": "food",
    "Outdoors": "outdoors",
    "Wellness": "wellness",
    "Adventure": "adventure",
    "Arts & creativity": "arts",
}
TYPE_TO_CATEGORY_ID = {
    "food": "b97c14aa-cd1e-4f9d-8670-6d7cb0ab5cd4",
    "outdoors": "50f6b39a-2399-43fa-a661-b85930e8f1d3",
    "wellness": "da794edb-3c5b-4f8b-aae6-29b22454fc6e",
    "adventure": "cd35ad00-dad3-4bb6-b0a9-c9709a74df4d",
    "arts": "f9a0e772-bbfd-4292-9ba4-a4f857b18135",
}


class BudgetBucket(StrEnum):
    """Price bands on minimum price. Together they partition [0, inf)."""

    UNDER_50 = "under_50"
    FROM_50_TO_100 = "50_100"
    FROM_100_TO_200 = "100_200"
    OVER_200 = "200_plus"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["BudgetBucket"]:
        """Unknown or empty values mean no budget constraint."""
        if not value:
            return None
        try:
            return cls(value.strip())
        except ValueError:
            return None

    @property
    def price_range(self) -> PriceRange:
        return _BUDGET_RANGES[self]

    def contains(self, price: Optional[float]) -> bool:
        return self.price_range.contains(price)


_BUDGET_RANGES = {
    BudgetBucket.UNDER_50: PriceRange(upper=50, upper_inclusive=False),
    BudgetBucket.FROM_50_TO_100: PriceRange(lower=50, upper=100),
    BudgetBucket.FROM_100_TO_200: PriceRange(
        lower=100, lower_inclusive=False, upper=200
    ),
    BudgetBucket.OVER_200: PriceRange(lower=200, lower_inclusive=False),
}


def category_id_for_label(label: Optional[str]) -> Optional[str]:
    """Map a type label (or its key) to the category id; unknown yields None."""
    if not label:
        return None
    key = TYPE_LABELS.get(label.strip(), label.strip().lower())
    return TYPE_TO_CATEGORY_ID.get(key)


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


@dataclass
class FilterSelections:
    """What the user picked. Absent fields mean no constraint."""

    category_id: Optional[str] = None
    county: Optional[str] = None
    budget: Optional[BudgetBucket] = None
    search_text: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "FilterSelections":
        """
        Read selections from query-string style parameters. An explicit
        `category_id` wins over a finder `type` label.
        """
        category_id = _clean(params.get("category_id")) or category_id_for_label(
            params.get("type")
        )
        return cls(
            category_id=category_id,
            county=_clean(params.get("county")),
            budget=BudgetBucket.parse(params.get("budget")),
            search_text=_clean(params.get("q")),
        )


def compose_query(
    selections: FilterSelections,
    experience_ids: Optional[list[str]] = None,
    *,
    public_only: bool = True,
) -> ExperienceQuery:
    return ExperienceQuery(
        experience_ids=experience_ids,
        county=selections.county,
        price=selections.budget.price_range if selections.budget else None,
        search_text=selections.search_text,
        public_only=public_only,
    )


def find_matching_experiences(
    db: DataClient,
    selections: FilterSelections,
    *,
    limit: Optional[int] = None,
) -> list[ExperienceRecord]:
    """
    Resolve category membership, then run one select with every other
    constraint. Data-access errors propagate to the caller.
    """
    experience_ids = None
    if selections.category_id:
        experience_ids = db.experience_ids_for_category(selections.category_id)
        if not experience_ids:
            logger.debug("No experiences linked to category %s", selections.category_id)
            return []
    query = compose_query(selections, experience_ids)
    return db.find_experiences(query, limit=limit)


def experiences_url_for(selections: FilterSelections, path: str = "/experiences") -> str:
    """Link from the finder to the full results page, tagged as finder traffic."""
    params = {}
    if selections.county:
        params["county"] = selections.county
    if selections.budget:
        params["budget"] = selections.budget.value
    if selections.category_id:
        params["category_id"] = selections.category_id
    if selections.search_text:
        params["q"] = selections.search_text
    params["src"] = "finder"
    return f"{path}?{urlencode(params)}"
