from fastapi.testclient import TestClient

from conftest import profile


def test_root_and_health(app):
    client = TestClient(app)
    assert client.get("/").json() == {"message": "Dating API running"}
    health = client.get("/test").json()
    assert health["backend"] == "✅ Running"
    assert health["database"] == "⚠️  In-memory storage"


def test_register_hides_password_and_opens_session(alice):
    assert "password" not in alice.user
    assert alice.user["email"] == "alice@amour.io"
    me = alice.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["id"] == alice.user["id"]


def test_register_duplicate_email(app, alice):
    resp = TestClient(app).post("/api/auth/register", json=profile("alice@amour.io", "female"))
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Email already registered"}


def test_register_validation(app):
    client = TestClient(app)
    assert client.post("/api/auth/register", json=profile("kid@amour.io", age=16)).status_code == 422
    assert client.post("/api/auth/register", json=profile("short@amour.io", password="123")).status_code == 422
    assert client.post("/api/auth/register", json=profile("not-an-email")).status_code == 422


def test_login_logout(app, alice):
    client = TestClient(app)
    assert client.post("/api/auth/login", json={"email": "alice@amour.io"}).status_code == 400
    bad = client.post("/api/auth/login", json={"email": "alice@amour.io", "password": "wrong-pass"})
    assert bad.status_code == 401
    assert client.post("/api/auth/login", json={"email": "nobody@amour.io", "password": "secret123"}).status_code == 401

    ok = client.post("/api/auth/login", json={"email": "alice@amour.io", "password": "secret123"})
    assert ok.status_code == 200
    assert ok.json()["id"] == alice.user["id"]
    assert client.get("/api/auth/me").status_code == 200

    assert client.post("/api/auth/logout").json() == {"message": "Logged out"}
    assert client.get("/api/auth/me").status_code == 401


def test_bearer_token_is_accepted(app, storage, alice):
    token = next(iter(storage.sessions))
    client = TestClient(app)
    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["id"] == alice.user["id"]


def test_requires_session(app):
    client = TestClient(app)
    for method, path in [
        ("get", "/api/users"),
        ("get", "/api/matches"),
        ("get", "/api/conversations"),
        ("get", "/api/messages/someone"),
    ]:
        resp = getattr(client, method)(path)
        assert resp.status_code == 401
        assert resp.json() == {"detail": "Unauthorized"}
    assert client.post("/api/likes", json={"likedId": "x"}).status_code == 401
    assert client.post("/api/messages", json={"receiverId": "x", "text": "hi"}).status_code == 401


def test_browse_shows_opposite_gender_only(make_client, alice, bob):
    carol = make_client("carol@amour.io", gender="female")
    dave = make_client("dave@amour.io", gender="male")

    seen_by_bob = {u["id"] for u in bob.get("/api/users").json()}
    assert seen_by_bob == {alice.user["id"], carol.user["id"]}

    seen_by_alice = alice.get("/api/users").json()
    assert {u["id"] for u in seen_by_alice} == {bob.user["id"], dave.user["id"]}
    assert all("password" not in u for u in seen_by_alice)


def test_like_and_match_flow(alice, bob):
    first = alice.post("/api/likes", json={"likedId": bob.user["id"]})
    assert first.status_code == 200
    body = first.json()
    assert body["isMatch"] is False
    assert body["like"]["likerId"] == alice.user["id"]
    assert body["like"]["likedId"] == bob.user["id"]
    assert "createdAt" in body["like"]

    assert alice.get("/api/matches").json() == []

    second = bob.post("/api/likes", json={"likedId": alice.user["id"]})
    assert second.json()["isMatch"] is True

    assert [u["id"] for u in alice.get("/api/matches").json()] == [bob.user["id"]]
    assert [u["id"] for u in bob.get("/api/matches").json()] == [alice.user["id"]]


def test_duplicate_and_self_like(alice, bob):
    assert alice.post("/api/likes", json={"likedId": bob.user["id"]}).status_code == 200
    dup = alice.post("/api/likes", json={"likedId": bob.user["id"]})
    assert dup.status_code == 400
    assert dup.json() == {"detail": "Already liked this user"}

    assert alice.post("/api/likes", json={"likedId": alice.user["id"]}).status_code == 400
    assert alice.post("/api/likes", json={"likedId": "nobody"}).status_code == 404


def test_messaging_flow(alice, bob):
    hi = alice.post("/api/messages", json={"receiverId": bob.user["id"], "type": "text", "text": "hi"})
    assert hi.status_code == 200
    assert hi.json()["senderId"] == alice.user["id"]
    assert "seq" not in hi.json()

    smile = bob.post("/api/messages", json={"receiverId": alice.user["id"], "type": "emoji", "text": "😀"})
    assert smile.status_code == 200

    from_alice = alice.get(f"/api/messages/{bob.user['id']}").json()
    from_bob = bob.get(f"/api/messages/{alice.user['id']}").json()
    assert [m["text"] for m in from_alice] == ["hi", "😀"]
    assert from_alice == from_bob

    partners = alice.get("/api/conversations").json()
    assert [u["id"] for u in partners] == [bob.user["id"]]
    assert "password" not in partners[0]


def test_message_validation(alice, bob):
    to = bob.user["id"]
    cases = [
        ({"receiverId": to, "type": "image"}, "Image URL is required for image messages"),
        ({"receiverId": to, "type": "text", "text": ""}, "Text is required for text/emoji messages"),
        ({"receiverId": to, "type": "sticker", "text": "x"}, "Invalid message type"),
        ({"receiverId": alice.user["id"], "type": "text", "text": "me"}, "Cannot send a message to yourself"),
    ]
    for payload, detail in cases:
        resp = alice.post("/api/messages", json=payload)
        assert resp.status_code == 400
        assert resp.json() == {"detail": detail}


def test_image_upload_and_message(alice, bob):
    upload = alice.post("/api/uploads", files={"image": ("pic.png", b"\x89PNG fake", "image/png")})
    assert upload.status_code == 200
    url = upload.json()["imageUrl"]
    assert url.startswith("/uploads/") and url.endswith(".png")
    assert alice.get(url).content == b"\x89PNG fake"

    msg = alice.post("/api/messages", json={"receiverId": bob.user["id"], "type": "image", "imageUrl": url})
    assert msg.status_code == 200
    assert msg.json()["imageUrl"] == url
    assert msg.json()["text"] == ""


def test_upload_rejects_non_images(alice):
    resp = alice.post("/api/uploads", files={"image": ("notes.txt", b"hello", "text/plain")})
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Only image files are allowed"}


def test_module_level_app_serves_the_routes():
    import main

    paths = {route.path for route in main.app.routes}
    assert {"/api/likes", "/api/messages", "/api/conversations"} <= paths


def test_upload_never_keeps_a_markup_extension(alice):
    upload = alice.post("/api/uploads", files={"image": ("x.html", b"<script>alert(1)</script>", "image/png")})
    assert upload.status_code == 200
    url = upload.json()["imageUrl"]
    assert url.endswith(".png")

    served = alice.get(url)
    assert served.headers["content-type"].startswith("image/png")


def test_upload_with_unknown_image_type_is_stored_without_extension(alice):
    upload = alice.post("/api/uploads", files={"image": ("x.svg", b"<svg onload='alert(1)'/>", "image/svg+xml")})
    url = upload.json()["imageUrl"]
    assert "." not in url.rsplit("/", 1)[1]
    assert "html" not in alice.get(url).headers["content-type"]
    assert "svg" not in alice.get(url).headers["content-type"]
