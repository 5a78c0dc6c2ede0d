from __future__ import annotations


def test_app_smoke_routes(client):
    r = client.get("/")
    assert r.status_code == 200
    assert "running" in r.text

    r = client.get("/api/v1")
    assert r.status_code == 200
    assert r.json()["database"] == "JSON File DB"

    r = client.get("/api/v1/nope")
    assert r.status_code == 404
    assert r.json() == {"success": False, "message": "Route not found"}


def test_register_login_me(client, register):
    headers, user = register()
    assert user["email"] == "ada@example.com"
    assert user["bio"] == ""
    assert user["profilePic"] == "/uploads/default-profile.png"
    assert "password" not in user

    r = client.post("/api/v1/users/login", json={"email": "ada@example.com", "password": "secret1"})
    assert r.status_code == 200
    assert r.json()["token"]

    r = client.get("/api/v1/users/me", headers=headers)
    assert r.status_code == 200
    me = r.json()["user"]
    assert me["id"] == user["id"]
    assert me["createdAt"] == user["createdAt"]


def test_register_duplicate_and_invalid(client, register):
    register()
    r = client.post(
        "/api/v1/users/register",
        json={"name": "Again", "email": "ADA@example.com", "password": "secret1"},
    )
    assert r.status_code == 400
    assert r.json()["message"] == "User already exists"

    r = client.post("/api/v1/users/register", json={"name": "Short", "email": "b@x.com", "password": "123"})
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_login_failures(client, register):
    register()
    r = client.post("/api/v1/users/login", json={"email": "ada@example.com"})
    assert r.status_code == 400

    r = client.post("/api/v1/users/login", json={"email": "ada@example.com", "password": "nope"})
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid credentials"


def test_protected_routes_require_valid_token(client):
    assert client.get("/api/v1/users/me").status_code == 401
    r = client.get("/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["message"] == "Not authorized to access this route"


def test_token_for_deleted_user_is_404(client, register):
    headers, user = register()
    assert client.app.state.store.remove("users", user["id"]) is True

    r = client.get("/api/v1/users/me", headers=headers)
    assert r.status_code == 404
    assert r.json()["message"] == "User not found"


def test_update_details_and_password(client, register):
    headers, user = register()

    r = client.put("/api/v1/users/update", json={"bio": "hi"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["user"]["bio"] == "hi"
    assert r.json()["user"]["name"] == "Ada"

    r = client.put(
        "/api/v1/users/update-password",
        json={"currentPassword": "wrong1", "newPassword": "secret2"},
        headers=headers,
    )
    assert r.status_code == 401

    r = client.put(
        "/api/v1/users/update-password",
        json={"currentPassword": "secret1", "newPassword": "secret2"},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["token"]

    r = client.post("/api/v1/users/login", json={"email": "ada@example.com", "password": "secret2"})
    assert r.status_code == 200


def test_profile_pic_upload_replaces_previous(client, register, settings):
    headers, user = register()

    r = client.put(
        "/api/v1/users/update-profile-pic",
        files={"profilePic": ("me.png", b"\x89PNG one", "image/png")},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    first = r.json()["user"]["profilePic"]
    assert first.startswith(f"/uploads/{user['id']}/profiles/profile_")
    assert first.endswith(".png")
    first_path = settings.uploads_dir / first[len("/uploads/"):]
    assert first_path.read_bytes() == b"\x89PNG one"

    # served as a static file
    assert client.get(first).content == b"\x89PNG one"

    r = client.put(
        "/api/v1/users/update-profile-pic",
        files={"profilePic": ("me2.png", b"\x89PNG two", "image/png")},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["user"]["profilePic"] != first
    assert not first_path.exists()


def test_profile_pic_upload_validation(client, register):
    headers, _ = register()

    r = client.put(
        "/api/v1/users/update-profile-pic",
        files={"profilePic": ("doc.txt", b"hello", "text/plain")},
        headers=headers,
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Only image files are allowed"

    # settings fixture caps profile pictures at 512 bytes
    r = client.put(
        "/api/v1/users/update-profile-pic",
        files={"profilePic": ("big.png", b"x" * 600, "image/png")},
        headers=headers,
    )
    assert r.status_code == 413
