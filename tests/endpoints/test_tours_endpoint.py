from tests.helpers.auth import auth_header, token_for_user
from tests.helpers.factories import create_review, start_date

NEW_TOUR = {
    "name": "The Northern Lights",
    "duration": 3,
    "maxGroupSize": 12,
    "difficulty": "easy",
    "price": 1497,
    "summary": "Enjoy the Northern Lights in one of the best places in the world",
    "imageCover": "tour-9-cover.jpg",
    "startLocation": {"type": "Point", "coordinates": [-147.7164, 64.8378], "description": "Fairbanks, USA"},
}


def test_get_all_tours_returns_envelope(client, seeded_tours):
    """
    Validate tours list envelope.

    1. Seed visible and secret tours.
    2. Call tours list endpoint once.
    3. Validate status, results and data wrapper.
    4. Validate the secret tour is hidden.
    """
    response = client.get("/api/v1/tours")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "success"
    assert payload["results"] == 4
    assert len(payload["data"]["data"]) == 4
    assert "The Hidden Valley Trek" not in {tour["name"] for tour in payload["data"]["data"]}


def test_get_all_tours_projects_fields(client, seeded_tours):
    """
    Validate field projection on tours list.

    1. Call tours list with fields and limit.
    2. Validate only requested fields and id are returned.
    """
    response = client.get("/api/v1/tours?fields=name,price&limit=1&sort=price")
    assert response.json()["data"]["data"] == [{"id": seeded_tours["forest"].id, "name": "The Forest Hiker", "price": 397}]


def test_top_five_cheap_alias(client, seeded_tours):
    """
    Validate top-5-cheap alias.

    1. Call the alias endpoint once.
    2. Validate tours are sorted by rating then price.
    3. Validate the projection fields.
    """
    response = client.get("/api/v1/tours/top-5-cheap")
    assert response.status_code == 200
    tours = response.json()["data"]["data"]
    assert [tour["name"] for tour in tours] == [
        "The Sea Explorer",
        "The Forest Hiker",
        "The Snow Adventurer",
        "The City Wanderer",
    ]
    assert set(tours[0]) == {"id", "name", "price", "ratingsAverage", "summary", "difficulty"}


def test_get_tour_includes_guides_and_reviews(client, db_session, seeded_users, seeded_tours):
    """
    Validate single tour document.

    1. Seed a review for a guided tour.
    2. Call tour detail endpoint once.
    3. Validate guides, reviews and derived duration weeks.
    """
    create_review(db_session, seeded_tours["forest"], seeded_users["user"], rating=5)
    response = client.get(f"/api/v1/tours/{seeded_tours['forest'].id}")
    assert response.status_code == 200
    tour = response.json()["data"]["data"]
    assert [guide["name"] for guide in tour["guides"]] == ["Lead Guide", "Tour Guide"]
    assert tour["reviews"][0]["rating"] == 5
    assert tour["durationWeeks"] == 5 / 7


def test_create_tour_requires_manager_role(client, seeded_users):
    """
    Validate tour creation authorization.

    1. Create a tour without token.
    2. Create a tour as a regular user.
    3. Create a tour as lead guide.
    4. Validate 401, 403 and 201 answers.
    """
    assert client.post("/api/v1/tours", json=NEW_TOUR).status_code == 401

    response = client.post(
        "/api/v1/tours", json=NEW_TOUR, headers=auth_header(token_for_user(seeded_users["user"].id))
    )
    assert response.status_code == 403
    assert response.json()["message"] == "You do not have permission to perform this action"

    response = client.post(
        "/api/v1/tours", json=NEW_TOUR, headers=auth_header(token_for_user(seeded_users["lead_guide"].id))
    )
    assert response.status_code == 201
    created = response.json()["data"]["data"]
    assert created["slug"] == "the-northern-lights"
    assert created["ratingsAverage"] == 4.5


def test_create_tour_rejects_discount_above_price(client, seeded_users):
    """
    Validate discount validation on creation.

    1. Create a tour whose discount exceeds its price.
    2. Validate a 400 answer naming the discount.
    """
    response = client.post(
        "/api/v1/tours",
        json={**NEW_TOUR, "priceDiscount": 2000},
        headers=auth_header(token_for_user(seeded_users["admin"].id)),
    )
    assert response.status_code == 400
    assert "Discount price (2000.0) should be below regular price" in response.json()["message"]


def test_update_and_delete_tour(client, seeded_users, seeded_tours):
    """
    Validate tour update and delete.

    1. Patch a tour price as admin.
    2. Validate the new price is returned.
    3. Delete the tour.
    4. Validate 204 and a following 404.
    """
    headers = auth_header(token_for_user(seeded_users["admin"].id))
    tour_id = seeded_tours["city"].id
    response = client.patch(f"/api/v1/tours/{tour_id}", json={"price": 999}, headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["data"]["price"] == 999

    assert client.delete(f"/api/v1/tours/{tour_id}", headers=headers).status_code == 204
    assert client.get(f"/api/v1/tours/{tour_id}").status_code == 404


def test_tour_stats_endpoint(client, seeded_tours):
    """
    Validate tour stats endpoint.

    1. Call the stats endpoint once.
    2. Validate difficulty groups in average price order.
    """
    response = client.get("/api/v1/tours/tour-stats")
    assert response.status_code == 200
    stats = response.json()["data"]["stats"]
    assert [entry["difficulty"] for entry in stats] == ["EASY", "MEDIUM", "DIFFICULT"]


def test_monthly_plan_restricted_to_staff(client, db_session, seeded_users, seeded_tours):
    """
    Validate monthly plan endpoint.

    1. Give a tour start dates in one year.
    2. Call the plan as a regular user and as a guide.
    3. Validate 403 for the user and the plan for the guide.
    """
    seeded_tours["sea"].start_dates = [start_date(2027, 6, 19), start_date(2027, 8, 18)]
    db_session.commit()

    response = client.get("/api/v1/tours/monthly-plan/2027", headers=auth_header(token_for_user(seeded_users["user"].id)))
    assert response.status_code == 403

    response = client.get(
        "/api/v1/tours/monthly-plan/2027", headers=auth_header(token_for_user(seeded_users["guide"].id))
    )
    assert response.status_code == 200
    assert sorted(entry["month"] for entry in response.json()["data"]["plan"]) == [6, 8]


def test_geo_endpoints(client, seeded_tours):
    """
    Validate geo endpoints.

    1. Search tours within 1000 miles of Los Angeles.
    2. Request distances from Los Angeles.
    3. Send a malformed center.
    4. Validate results and the coordinate error.
    """
    response = client.get("/api/v1/tours/tours-within/1000/center/34.111745,-118.113491/unit/mi")
    assert response.status_code == 200
    assert [tour["name"] for tour in response.json()["data"]["data"]] == ["The Snow Adventurer"]

    response = client.get("/api/v1/tours/distances/34.111745,-118.113491/unit/km")
    assert response.status_code == 200
    assert response.json()["data"]["data"][0]["name"] == "The Snow Adventurer"

    response = client.get("/api/v1/tours/distances/34.111745/unit/mi")
    assert response.status_code == 400
    assert response.json()["message"] == "Please provide latitutr and longitude in the format lat,lng."
