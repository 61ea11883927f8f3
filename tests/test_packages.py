from conftest import auth_header


def test_public_catalog(client, packages):
    response = client.get("/api/packages")
    assert response.status_code == 200
    names = [p["name"] for p in response.json()["data"]]
    assert len(names) == 5
    assert names[0] == "Basic Listing"


def test_initialize_is_idempotent(client, admin_token):
    first = client.post("/api/packages/initialize", headers=auth_header(admin_token))
    assert first.json()["message"] == "Packages initialized successfully"

    second = client.post("/api/packages/initialize", headers=auth_header(admin_token))
    assert second.json()["message"] == "Packages already initialized"
    assert len(client.get("/api/packages").json()["data"]) == 5


def test_initialize_requires_admin(client, seller_token):
    assert client.post("/api/packages/initialize", headers=auth_header(seller_token)).status_code == 403


def test_admin_package_crud(client, admin_token):
    created = client.post(
        "/api/packages",
        json={"name": "Festival Offer", "price": 149, "duration": 15, "type": "featured", "features": ["15 days"]},
        headers=auth_header(admin_token),
    )
    assert created.status_code == 201
    package_id = created.json()["data"]["id"]

    updated = client.put(
        f"/api/packages/{package_id}",
        json={"price": 129, "active": False},
        headers=auth_header(admin_token),
    )
    assert updated.json()["data"]["price"] == 129
    assert updated.json()["data"]["active"] is False
    assert client.get("/api/packages").json()["data"] == []

    assert client.delete(f"/api/packages/{package_id}", headers=auth_header(admin_token)).status_code == 200
    assert client.get(f"/api/packages/{package_id}").status_code == 404


def test_package_with_open_transaction_is_locked(client, seller_token, admin_token, packages):
    premium = packages["Premium Listing"]
    client.post(
        "/api/payments/transaction",
        json={"packageId": premium, "paymentMethod": "upi"},
        headers=auth_header(seller_token),
    )

    assert client.delete(f"/api/packages/{premium}", headers=auth_header(admin_token)).status_code == 409
    assert client.put(
        f"/api/packages/{premium}", json={"price": 1}, headers=auth_header(admin_token)
    ).status_code == 409

    renamed = client.put(
        f"/api/packages/{premium}", json={"name": "Premium Plus"}, headers=auth_header(admin_token)
    )
    assert renamed.status_code == 200


def test_package_with_only_failed_transactions_can_be_deleted(client, seller_token, admin_token, packages):
    featured = packages["Featured Listing"]
    created = client.post(
        "/api/payments/transaction",
        json={"packageId": featured, "paymentMethod": "upi"},
        headers=auth_header(seller_token),
    ).json()["data"]
    client.put(
        f"/api/admin/transactions/{created['transactionId']}",
        json={"status": "failed"},
        headers=auth_header(admin_token),
    )

    assert client.delete(f"/api/packages/{featured}", headers=auth_header(admin_token)).status_code == 200
    history = client.get("/api/payments/transactions", headers=auth_header(seller_token)).json()["data"]
    assert history["transactions"][0]["packageId"] is None
