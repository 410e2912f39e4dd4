import pytest

from clinic.models import Doctor, Patient, User

from .conftest import auth_headers, create_admin

# Test data
test_user_data = {
    "email": "test@smartcare.org",
    "password": "TestPassword123",
    "role": "patient",
    "first_name": "Test",
    "last_name": "User"
}

test_login_data = {
    "email": "test@smartcare.org",
    "password": "TestPassword123"
}

test_doctor_data = {
    "email": "dr.grey@smartcare.org",
    "password": "TestPassword123",
    "role": "doctor",
    "first_name": "Meredith",
    "last_name": "Grey",
    "specialization": "General Surgery",
    "license_number": "GS-4411"
}


def login(client, data=test_login_data):
    response = client.post("/api/v1/auth/login", json=data)
    assert response.status_code == 200, response.text
    return response.json()


class TestAuthentication:

    def test_register_patient_creates_profile(self, client, db_session):
        """Registering a patient also creates the patient profile."""
        response = client.post("/api/v1/auth/register", json=test_user_data)
        assert response.status_code == 200

        data = response.json()
        assert data["email"] == test_user_data["email"]
        assert data["role"] == "patient"
        assert "password" not in data
        assert "password_hash" not in data

        patient = db_session.query(Patient).filter(Patient.user_id == data["id"]).one()
        assert patient.first_name == "Test"

    def test_register_doctor_creates_profile(self, client, db_session):
        response = client.post("/api/v1/auth/register", json=test_doctor_data)
        assert response.status_code == 200

        doctor = db_session.query(Doctor).filter(Doctor.user_id == response.json()["id"]).one()
        assert doctor.specialization == "General Surgery"
        assert doctor.license_number == "GS-4411"

    def test_register_doctor_requires_license(self, client, db_session):
        data = dict(test_doctor_data)
        del data["license_number"]

        response = client.post("/api/v1/auth/register", json=data)
        assert response.status_code == 422

    def test_register_admin_rejected(self, client, db_session):
        data = dict(test_user_data, role="admin")

        response = client.post("/api/v1/auth/register", json=data)
        assert response.status_code == 422

    def test_register_duplicate_email(self, client, db_session):
        """Test registration with duplicate email."""
        client.post("/api/v1/auth/register", json=test_user_data)

        response = client.post("/api/v1/auth/register", json=test_user_data)
        assert response.status_code == 400
        assert "already registered" in response.json()["detail"]

    def test_register_invalid_password(self, client, db_session):
        """Test registration with invalid password."""
        invalid_data = test_user_data.copy()
        invalid_data["password"] = "weak"

        response = client.post("/api/v1/auth/register", json=invalid_data)
        assert response.status_code == 422

    def test_register_rate_limited(self, client, db_session):
        for i in range(10):
            data = dict(test_user_data, email=f"user{i}@smartcare.org")
            assert client.post("/api/v1/auth/register", json=data).status_code == 200

        data = dict(test_user_data, email="one.too.many@smartcare.org")
        response = client.post("/api/v1/auth/register", json=data)
        assert response.status_code == 429

    def test_login_success(self, client, db_session):
        """Test successful login."""
        client.post("/api/v1/auth/register", json=test_user_data)

        data = login(client)
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == test_user_data["email"]

    def test_login_invalid_credentials(self, client, db_session):
        """Test login with invalid credentials."""
        response = client.post("/api/v1/auth/login", json={
            "email": "nonexistent@smartcare.org",
            "password": "wrongpassword"
        })
        assert response.status_code == 401

    def test_login_wrong_password(self, client, db_session):
        """Test login with wrong password."""
        client.post("/api/v1/auth/register", json=test_user_data)

        wrong_login = dict(test_login_data, password="wrongpassword")
        response = client.post("/api/v1/auth/login", json=wrong_login)
        assert response.status_code == 401

    def test_account_locks_after_repeated_failures(self, client, db_session):
        client.post("/api/v1/auth/register", json=test_user_data)
        wrong_login = dict(test_login_data, password="wrongpassword")

        for _ in range(5):
            assert client.post("/api/v1/auth/login", json=wrong_login).status_code == 401

        response = client.post("/api/v1/auth/login", json=test_login_data)
        assert response.status_code == 423

    def test_get_current_user(self, client, db_session):
        """Test getting current user info."""
        client.post("/api/v1/auth/register", json=test_user_data)
        token = login(client)["access_token"]

        response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["email"] == test_user_data["email"]

    def test_get_current_user_invalid_token(self, client, db_session):
        """Test get current user with invalid token."""
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer invalid_token"})
        assert response.status_code == 401

    def test_refresh_token_cannot_authenticate_requests(self, client, db_session):
        client.post("/api/v1/auth/register", json=test_user_data)
        refresh_token = login(client)["refresh_token"]

        response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {refresh_token}"})
        assert response.status_code == 401

    def test_refresh_token(self, client, db_session):
        """Test token refresh."""
        client.post("/api/v1/auth/register", json=test_user_data)
        refresh_token = login(client)["refresh_token"]

        response = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert response.status_code == 200

        data = response.json()
        assert "access_token" in data
        assert data["refresh_token"] != refresh_token

    def test_refresh_token_is_single_use(self, client, db_session):
        client.post("/api/v1/auth/register", json=test_user_data)
        refresh_token = login(client)["refresh_token"]

        client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        response = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert response.status_code == 401

    def test_refresh_invalid_token(self, client, db_session):
        """Test refresh with invalid token."""
        response = client.post("/api/v1/auth/refresh", json={"refresh_token": "invalid_token"})
        assert response.status_code == 401

    def test_logout(self, client, db_session):
        """Logout revokes the refresh token."""
        client.post("/api/v1/auth/register", json=test_user_data)
        refresh_token = login(client)["refresh_token"]

        response = client.post("/api/v1/auth/logout", json={"refresh_token": refresh_token})
        assert response.status_code == 200
        assert response.json()["message"] == "Successfully logged out"

        response = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert response.status_code == 401

    def test_change_password(self, client, db_session):
        """Test password change."""
        client.post("/api/v1/auth/register", json=test_user_data)
        headers = {"Authorization": f"Bearer {login(client)['access_token']}"}

        response = client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "TestPassword123", "new_password": "NewPassword123"},
            headers=headers
        )
        assert response.status_code == 200

        login(client, {"email": test_user_data["email"], "password": "NewPassword123"})

    def test_change_password_wrong_current(self, client, db_session):
        """Test password change with wrong current password."""
        client.post("/api/v1/auth/register", json=test_user_data)
        headers = {"Authorization": f"Bearer {login(client)['access_token']}"}

        response = client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "WrongPassword1", "new_password": "NewPassword123"},
            headers=headers
        )
        assert response.status_code == 400

    def test_password_reset_flow(self, client, db_session):
        client.post("/api/v1/auth/register", json=test_user_data)

        response = client.post("/api/v1/auth/forgot-password", json={"email": test_user_data["email"]})
        assert response.status_code == 200

        user = db_session.query(User).filter(User.email == test_user_data["email"]).one()
        db_session.refresh(user)
        response = client.post("/api/v1/auth/reset-password", json={
            "token": user.password_reset_token,
            "new_password": "ResetPassword123"
        })
        assert response.status_code == 200

        login(client, {"email": test_user_data["email"], "password": "ResetPassword123"})

    def test_verify_token(self, client, db_session):
        """Test token verification."""
        client.post("/api/v1/auth/register", json=test_user_data)
        headers = {"Authorization": f"Bearer {login(client)['access_token']}"}

        response = client.post("/api/v1/auth/verify-token", headers=headers)
        assert response.status_code == 200

        data = response.json()
        assert data["valid"] is True
        assert data["role"] == "patient"
        assert isinstance(data["user_id"], int)


class TestUserAdministration:

    @pytest.fixture
    def admin_headers(self, client, db_session):
        create_admin(db_session)
        return auth_headers(client, "admin@smartcare.org")

    def test_admin_lists_users(self, client, db_session, admin_headers):
        client.post("/api/v1/auth/register", json=test_user_data)

        response = client.get("/api/v1/auth/users", headers=admin_headers)
        assert response.status_code == 200
        assert {u["email"] for u in response.json()} == {"admin@smartcare.org", test_user_data["email"]}

    def test_non_admin_cannot_list_users(self, client, db_session):
        client.post("/api/v1/auth/register", json=test_user_data)
        headers = {"Authorization": f"Bearer {login(client)['access_token']}"}

        response = client.get("/api/v1/auth/users", headers=headers)
        assert response.status_code == 403

    def test_deactivated_user_cannot_log_in(self, client, db_session, admin_headers):
        user_id = client.post("/api/v1/auth/register", json=test_user_data).json()["id"]

        response = client.patch(
            f"/api/v1/auth/users/{user_id}/status", params={"is_active": False}, headers=admin_headers
        )
        assert response.status_code == 200

        response = client.post("/api/v1/auth/login", json=test_login_data)
        assert response.status_code == 401

    def test_deactivate_unknown_user(self, client, db_session, admin_headers):
        response = client.patch(
            "/api/v1/auth/users/9999/status", params={"is_active": False}, headers=admin_headers
        )
        assert response.status_code == 404

    def test_filter_users_by_role(self, client, db_session, admin_headers):
        client.post("/api/v1/auth/register", json=test_user_data)
        client.post("/api/v1/auth/register", json=test_doctor_data)

        response = client.get("/api/v1/auth/users/role/doctor", headers=admin_headers)
        assert response.status_code == 200
        assert [u["email"] for u in response.json()] == [test_doctor_data["email"]]

        response = client.get("/api/v1/auth/users", params={"role": "patient"}, headers=admin_headers)
        assert [u["email"] for u in response.json()] == [test_user_data["email"]]

    def test_filter_by_unknown_role(self, client, db_session, admin_headers):
        response = client.get("/api/v1/auth/users/role/nurse", headers=admin_headers)
        assert response.status_code == 422

    def test_search_users_by_profile_name_and_email(self, client, db_session, admin_headers):
        client.post("/api/v1/auth/register", json=test_user_data)
        client.post("/api/v1/auth/register", json=test_doctor_data)

        response = client.get("/api/v1/auth/users/search", params={"query": "grey"}, headers=admin_headers)
        assert response.status_code == 200
        assert [u["email"] for u in response.json()] == [test_doctor_data["email"]]

        response = client.get("/api/v1/auth/users/search", params={"query": "SMARTCARE"}, headers=admin_headers)
        assert len(response.json()) == 3

        response = client.get(
            "/api/v1/auth/users/search",
            params={"query": "smartcare", "role": "patient"},
            headers=admin_headers
        )
        assert [u["email"] for u in response.json()] == [test_user_data["email"]]

    def test_non_admin_cannot_search_users(self, client, db_session):
        client.post("/api/v1/auth/register", json=test_user_data)
        headers = {"Authorization": f"Bearer {login(client)['access_token']}"}

        response = client.get("/api/v1/auth/users/search", params={"query": "test"}, headers=headers)
        assert response.status_code == 403
