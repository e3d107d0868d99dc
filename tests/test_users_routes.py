"""
Tests for User Management API Routes

Covers profile reads, self-service updates and deletion, and the
per-owner listing view. Ownership is enforced against the session user.
"""

from src.tools.supabase_tool import StoreError, DuplicateRecordError


class TestAuthRequired:

    def test_no_session_returns_401(self, test_client):
        response = test_client.get("/api/user/user_123")

        assert response.status_code == 401
        assert response.json() == {"success": False, "statusCode": 401, "message": "Unauthorized"}

    def test_bad_session_returns_403(self, test_client):
        test_client.cookies.set("access_token", "tampered")

        response = test_client.get("/api/user/user_123")

        assert response.status_code == 403
        assert response.json()["message"] == "Forbidden"

    def test_bearer_header_session(self, test_client, session_cookie, mock_db, sample_user):
        mock_db.get_user.return_value = sample_user
        token = session_cookie["access_token"]

        response = test_client.get("/api/user/user_123", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200


class TestGetUser:

    def test_get_user(self, auth_client, mock_db, sample_user):
        mock_db.get_user.return_value = sample_user

        response = auth_client.get("/api/user/user_123")

        assert response.status_code == 200
        assert response.json()["username"] == "seller"
        mock_db.get_user.assert_called_once_with("user_123")

    def test_other_users_profile_is_visible(self, auth_client, mock_db):
        mock_db.get_user.return_value = {'id': 'other', 'username': 'other'}

        assert auth_client.get("/api/user/other").status_code == 200

    def test_user_not_found(self, auth_client, mock_db):
        response = auth_client.get("/api/user/missing")

        assert response.status_code == 404
        assert response.json()["message"] == "User not found!"


class TestUpdateUser:

    def test_update_own_account(self, auth_client, mock_db, sample_user):
        mock_db.update_user.return_value = {**sample_user, 'username': 'renamed'}

        response = auth_client.post("/api/user/update/user_123", json={"username": "renamed"})

        assert response.status_code == 200
        assert response.json()["username"] == "renamed"
        mock_db.update_user.assert_called_once_with("user_123", {"username": "renamed"})

    def test_update_other_account_rejected(self, auth_client, mock_db):
        response = auth_client.post("/api/user/update/other", json={"username": "x"})

        assert response.status_code == 401
        assert response.json()["message"] == "You can only update your own account!"
        mock_db.update_user.assert_not_called()

    def test_password_is_hashed(self, auth_client, mock_db, sample_user):
        mock_db.update_user.return_value = sample_user

        response = auth_client.post("/api/user/update/user_123", json={"password": "N3w!Password"})

        assert response.status_code == 200
        updates = mock_db.update_user.call_args[0][1]
        assert updates["password"].startswith("$2")

    def test_weak_password_rejected(self, auth_client, mock_db):
        response = auth_client.post("/api/user/update/user_123", json={"password": "weak"})

        assert response.status_code == 400
        mock_db.update_user.assert_not_called()

    def test_email_normalized(self, auth_client, mock_db, sample_user):
        mock_db.update_user.return_value = sample_user

        auth_client.post("/api/user/update/user_123", json={"email": " New@Example.com "})

        assert mock_db.update_user.call_args[0][1]["email"] == "new@example.com"

    def test_invalid_email_rejected(self, auth_client, mock_db):
        response = auth_client.post("/api/user/update/user_123", json={"email": "nope"})

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid email format"

    def test_duplicate_returns_409(self, auth_client, mock_db):
        mock_db.update_user.side_effect = DuplicateRecordError("dup", "23505")

        response = auth_client.post("/api/user/update/user_123", json={"username": "taken"})

        assert response.status_code == 409

    def test_missing_user_returns_404(self, auth_client, mock_db):
        mock_db.update_user.return_value = None

        response = auth_client.post("/api/user/update/user_123", json={"username": "x"})

        assert response.status_code == 404


class TestDeleteUser:

    def test_delete_own_account_clears_cookie(self, auth_client, mock_db):
        mock_db.delete_user.return_value = True

        response = auth_client.delete("/api/user/delete/user_123")

        assert response.status_code == 200
        assert response.json()["message"] == "User has been deleted!"
        assert "access_token=" in response.headers["set-cookie"]
        mock_db.delete_user.assert_called_once_with("user_123")

    def test_delete_other_account_rejected(self, auth_client, mock_db):
        response = auth_client.delete("/api/user/delete/other")

        assert response.status_code == 401
        mock_db.delete_user.assert_not_called()

    def test_delete_store_failure(self, auth_client, mock_db):
        mock_db.delete_user.side_effect = StoreError("down")

        response = auth_client.delete("/api/user/delete/user_123")

        assert response.status_code == 500


class TestUserListings:

    def test_own_listings(self, auth_client, mock_db, sample_listing):
        mock_db.get_user_listings.return_value = [sample_listing]

        response = auth_client.get("/api/user/listings/user_123")

        assert response.status_code == 200
        assert response.json()[0]["id"] == "listing_1"

    def test_other_users_listings_rejected(self, auth_client, mock_db):
        response = auth_client.get("/api/user/listings/other")

        assert response.status_code == 401
        assert response.json()["message"] == "You can only view your own listings!"
