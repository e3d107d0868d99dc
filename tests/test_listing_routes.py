"""
Tests for Listing API Routes

Covers creation, public reads, owner-only updates and deletion, and the
discount price rule.
"""

import pytest

from src.tools.supabase_tool import StoreError


@pytest.fixture
def new_listing():
    return {
        "name": "Oak dining table",
        "description": "Solid oak, seats six",
        "address": "12 Market Street",
        "type": "sale",
        "regular_price": 250,
        "image_urls": ["https://cdn.example.com/table.jpg"],
    }


class TestCreateListing:

    def test_create(self, auth_client, mock_db, new_listing, sample_listing):
        mock_db.create_listing.return_value = sample_listing

        response = auth_client.post("/api/listing/create", json=new_listing)

        assert response.status_code == 201
        assert response.json()["id"] == "listing_1"
        data = mock_db.create_listing.call_args[0][0]
        assert data["type"] == "sale"
        assert mock_db.create_listing.call_args.kwargs["owner_id"] == "user_123"

    def test_requires_session(self, test_client, new_listing):
        response = test_client.post("/api/listing/create", json=new_listing)

        assert response.status_code == 401

    def test_discount_must_be_lower(self, auth_client, mock_db, new_listing):
        new_listing.update(offer=True, discount_price=300)

        response = auth_client.post("/api/listing/create", json=new_listing)

        assert response.status_code == 422
        assert "Discount price must be lower" in response.json()["message"]
        mock_db.create_listing.assert_not_called()

    def test_discount_ignored_without_offer(self, auth_client, mock_db, new_listing, sample_listing):
        mock_db.create_listing.return_value = sample_listing
        new_listing.update(offer=False, discount_price=300)

        assert auth_client.post("/api/listing/create", json=new_listing).status_code == 201

    def test_image_count_bounds(self, auth_client, new_listing):
        new_listing["image_urls"] = []
        assert auth_client.post("/api/listing/create", json=new_listing).status_code == 422

        new_listing["image_urls"] = [f"https://cdn.example.com/{i}.jpg" for i in range(7)]
        assert auth_client.post("/api/listing/create", json=new_listing).status_code == 422

    def test_invalid_type(self, auth_client, new_listing):
        new_listing["type"] = "swap"

        assert auth_client.post("/api/listing/create", json=new_listing).status_code == 422

    def test_store_failure(self, auth_client, mock_db, new_listing):
        mock_db.create_listing.side_effect = StoreError("down")

        response = auth_client.post("/api/listing/create", json=new_listing)

        assert response.status_code == 500


class TestGetListing:

    def test_public_read(self, test_client, mock_db, sample_listing):
        mock_db.get_listing.return_value = sample_listing

        response = test_client.get("/api/listing/get/listing_1")

        assert response.status_code == 200
        assert response.json()["name"] == "Oak dining table"

    def test_not_found(self, test_client):
        response = test_client.get("/api/listing/get/missing")

        assert response.status_code == 404
        assert response.json()["message"] == "Listing not found!"


class TestUpdateListing:

    def test_owner_updates(self, auth_client, mock_db, sample_listing):
        mock_db.get_listing.return_value = sample_listing
        mock_db.update_listing.return_value = {**sample_listing, "stock": 5}

        response = auth_client.post("/api/listing/update/listing_1", json={"stock": 5})

        assert response.status_code == 200
        assert response.json()["stock"] == 5
        mock_db.update_listing.assert_called_once_with("listing_1", {"stock": 5})

    def test_non_owner_rejected(self, auth_client, mock_db, sample_listing):
        mock_db.get_listing.return_value = {**sample_listing, "user_ref": "someone_else"}

        response = auth_client.post("/api/listing/update/listing_1", json={"stock": 5})

        assert response.status_code == 401
        assert response.json()["message"] == "You can only update your own listings!"
        mock_db.update_listing.assert_not_called()

    def test_missing_listing(self, auth_client):
        response = auth_client.post("/api/listing/update/missing", json={"stock": 5})

        assert response.status_code == 404

    def test_discount_checked_against_stored_price(self, auth_client, mock_db, sample_listing):
        mock_db.get_listing.return_value = sample_listing

        response = auth_client.post("/api/listing/update/listing_1",
                                    json={"offer": True, "discount_price": 250})

        assert response.status_code == 400
        mock_db.update_listing.assert_not_called()


class TestDeleteListing:

    def test_owner_deletes(self, auth_client, mock_db, sample_listing):
        mock_db.get_listing.return_value = sample_listing
        mock_db.delete_listing.return_value = True

        response = auth_client.delete("/api/listing/delete/listing_1")

        assert response.status_code == 200
        assert response.json()["message"] == "Listing has been deleted!"

    def test_non_owner_rejected(self, auth_client, mock_db, sample_listing):
        mock_db.get_listing.return_value = {**sample_listing, "user_ref": "someone_else"}

        response = auth_client.delete("/api/listing/delete/listing_1")

        assert response.status_code == 401
        mock_db.delete_listing.assert_not_called()

    def test_missing_listing(self, auth_client):
        assert auth_client.delete("/api/listing/delete/missing").status_code == 404
