import pytest

from natours.application.errors import ValidationError
from natours.application.services.tour_service import (
    get_distances,
    get_monthly_plan,
    get_tour_stats,
    get_tours_within,
    parse_latlng,
    slugify,
    update_tour,
)
from natours.interfaces.api.v1.schemas.tour import TourUpdate
from tests.helpers.factories import start_date

LOS_ANGELES = "34.111745,-118.113491"


def test_slugify_lowercases_and_hyphenates():
    """
    Validate slug derivation.

    1. Slugify a mixed-case name with spaces and punctuation.
    2. Validate the slug is lower-case and hyphen separated.
    """
    assert slugify("The Forest Hiker!") == "the-forest-hiker"


def test_get_tour_stats_groups_highly_rated_tours_by_difficulty(db_session, seeded_tours):
    """
    Validate tour statistics aggregation.

    1. Seed tours with ratings above and below the threshold.
    2. Compute statistics once.
    3. Validate groups are upper-cased difficulties sorted by average price.
    4. Validate low-rated and secret tours are excluded.
    """
    stats = get_tour_stats(db_session)
    assert [entry["difficulty"] for entry in stats] == ["EASY", "MEDIUM", "DIFFICULT"]
    easy = stats[0]
    assert easy["numTours"] == 1
    assert easy["numRatings"] == 37
    assert easy["avgPrice"] == pytest.approx(397)
    assert easy["minPrice"] == pytest.approx(397)
    assert easy["maxPrice"] == pytest.approx(397)


def test_get_monthly_plan_counts_starts_per_month(db_session, seeded_tours):
    """
    Validate monthly plan aggregation.

    1. Give two tours start dates, two of them in July.
    2. Compute the plan for the year once.
    3. Validate the busiest month comes first with both tour names.
    4. Validate months of other years are ignored.
    """
    seeded_tours["forest"].start_dates = [start_date(2027, 4, 25), start_date(2027, 7, 20), start_date(2027, 10, 5)]
    seeded_tours["sea"].start_dates = [start_date(2027, 6, 19), start_date(2027, 7, 20)]
    seeded_tours["snow"].start_dates = [start_date(2028, 1, 5)]
    db_session.commit()

    plan = get_monthly_plan(db_session, 2027)
    assert plan[0] == {"month": 7, "numTourStarts": 2, "tours": ["The Forest Hiker", "The Sea Explorer"]}
    assert sorted(entry["month"] for entry in plan) == [4, 6, 7, 10]
    assert get_monthly_plan(db_session, 2029) == []


def test_parse_latlng_rejects_malformed_input():
    """
    Validate coordinate parsing.

    1. Parse a well-formed pair.
    2. Validate malformed pairs raise the coordinate message.
    """
    assert parse_latlng("34.1,-118.1") == (34.1, -118.1)
    for raw in ("34.1", "north,south", "95,10"):
        with pytest.raises(ValidationError) as error:
            parse_latlng(raw)
        assert error.value.message == "Please provide latitutr and longitude in the format lat,lng."


def test_get_tours_within_radius(db_session, seeded_tours):
    """
    Validate radius search around a center.

    1. Seed tours starting in Banff, Miami, Aspen and New York.
    2. Search 1000 miles around Los Angeles.
    3. Validate only the Aspen tour is returned.
    4. Validate the same radius in kilometres finds nothing.
    """
    assert [tour.name for tour in get_tours_within(db_session, 1000, LOS_ANGELES, "mi")] == ["The Snow Adventurer"]
    assert get_tours_within(db_session, 1000, LOS_ANGELES, "km") == []


def test_get_distances_sorted_ascending(db_session, seeded_tours):
    """
    Validate distance computation.

    1. Seed tours with start locations.
    2. Compute distances from Los Angeles in miles and kilometres.
    3. Validate ordering and unit conversion.
    """
    miles = get_distances(db_session, LOS_ANGELES, "mi")
    kilometres = get_distances(db_session, LOS_ANGELES, "km")
    assert [entry["name"] for entry in miles] == [
        "The Snow Adventurer",
        "The Forest Hiker",
        "The Sea Explorer",
        "The City Wanderer",
    ]
    assert 600 < miles[0]["distance"] < 800
    assert kilometres[0]["distance"] == pytest.approx(miles[0]["distance"] / 0.621371, rel=1e-6)


def test_update_tour_rejects_discount_above_resulting_price(db_session, seeded_tours):
    """
    Validate discount check on partial updates.

    1. Lower the price of a tour and add a discount above it.
    2. Validate a validation error is raised.
    """
    with pytest.raises(ValidationError):
        update_tour(db_session, seeded_tours["forest"], TourUpdate(price=100, price_discount=150))
