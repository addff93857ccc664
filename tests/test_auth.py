from jose import jwt

import models


def test_onboarding_creates_user(client, db, bearer):
    body = {"firstName": "Njeri", "lastName": "W", "email": "njeri@example.com", "phone": "0711", "role": "seller"}
    r = client.post("/onboarding", json=body, headers=bearer("idp_new"))
    assert r.status_code == 200
    assert r.json()["role"] == "seller"
    assert r.json()["hasCompletedOnboarding"] is True

    user = db.query(models.User).filter(models.User.identity_id == "idp_new").one()
    assert user.phone == "0711"

    r = client.get("/role", headers=bearer("idp_new"))
    assert r.json() == {"role": "seller"}


def test_onboarding_updates_existing_user(client, db, bearer):
    client.post("/onboarding", json={"email": "a@example.com"}, headers=bearer("idp_again"))
    client.post("/onboarding", json={"email": "b@example.com", "role": "seller"}, headers=bearer("idp_again"))
    users = db.query(models.User).filter(models.User.identity_id == "idp_again").all()
    assert len(users) == 1
    assert users[0].email == "b@example.com"


def test_admin_role_cannot_be_self_assigned(client, bearer):
    r = client.post("/onboarding", json={"email": "x@example.com", "role": "admin"}, headers=bearer("idp_x"))
    assert r.status_code == 400


def test_onboarding_keeps_admin_role(client, auth, admin):
    r = client.post("/onboarding", json={"email": "ada@example.com", "role": "buyer"}, headers=auth(admin))
    assert r.json()["role"] == "admin"


def test_onboarding_rejects_bad_email(client, bearer):
    r = client.post("/onboarding", json={"email": "not-an-email"}, headers=bearer("idp_bad"))
    assert r.status_code == 400


def test_missing_and_invalid_tokens(client):
    assert client.get("/role").status_code == 401
    forged = jwt.encode({"sub": "idp_1"}, "wrong-secret", algorithm="HS256")
    r = client.get("/role", headers={"Authorization": f"Bearer {forged}"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid token"}


def test_unknown_identity(client, bearer):
    r = client.get("/role", headers=bearer("idp_never_onboarded"))
    assert r.status_code == 404


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
