from conftest import auth_header, create_listing, register_user


def test_stats(client, seller_token, buyer_token, admin_token):
    create_listing(client, seller_token)

    data = client.get("/api/admin/stats", headers=auth_header(admin_token)).json()["data"]
    assert data["totalUsers"] == 3
    assert data["totalProperties"] == 1
    assert data["pendingProperties"] == 1
    assert data["paidTransactions"] == 0
    assert {row["userType"]: row["count"] for row in data["usersByType"]} == {"seller": 1, "buyer": 1, "admin": 1}


def test_list_users_by_type(client, seller, buyer_token, admin_token):
    response = client.get("/api/admin/users", params={"userType": "buyer"}, headers=auth_header(admin_token))
    users = response.json()["data"]["users"]
    assert [u["email"] for u in users] == ["buyer@example.com"]

    unknown = client.get("/api/admin/users", params={"userType": "wizard"}, headers=auth_header(admin_token))
    assert unknown.status_code == 400


def test_delete_user_removes_listings(client, seller, admin_token, packages, media_root):
    prop = create_listing(client, seller["token"], with_image=True)
    client.post(
        "/api/payments/transaction",
        json={"packageId": packages["Basic Listing"], "propertyId": prop["id"], "paymentMethod": "upi"},
        headers=auth_header(seller["token"]),
    )

    response = client.delete(f"/api/admin/users/{seller['user']['id']}", headers=auth_header(admin_token))
    assert response.status_code == 200

    stats = client.get("/api/admin/stats", headers=auth_header(admin_token)).json()["data"]
    assert stats["totalProperties"] == 0
    assert stats["paidTransactions"] == 0
    assert list((media_root / "properties").iterdir()) == []


def test_admin_cannot_delete_self(client, admin_user, admin_token):
    response = client.delete(f"/api/admin/users/{admin_user.id}", headers=auth_header(admin_token))
    assert response.status_code == 409


def test_admin_status_update_respects_transitions(client, seller_token, admin_token):
    prop = create_listing(client, seller_token)
    path = f"/api/admin/properties/{prop['id']}"

    assert client.put(path, json={"status": "rented"}, headers=auth_header(admin_token)).status_code == 200
    assert client.put(path, json={"status": "sold"}, headers=auth_header(admin_token)).status_code == 409


def test_admin_lists_transactions(client, seller_token, admin_token, packages):
    client.post(
        "/api/payments/transaction",
        json={"packageId": packages["Premium Listing"], "paymentMethod": "bank_transfer"},
        headers=auth_header(seller_token),
    )
    client.post(
        "/api/payments/transaction",
        json={"packageId": packages["Basic Listing"], "paymentMethod": "upi"},
        headers=auth_header(seller_token),
    )

    pending = client.get(
        "/api/admin/transactions", params={"status": "pending"}, headers=auth_header(admin_token)
    ).json()["data"]
    assert [t["paymentMethod"] for t in pending["transactions"]] == ["bank_transfer"]


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_duplicate_phone_is_conflict(client, seller):
    response = client.post("/api/auth/register", json={
        "name": "Copy",
        "email": "copy@example.com",
        "phone": "9876543210",
        "password": "secret123",
    })
    assert response.status_code == 409
    assert register_user(client, email="fresh@example.com", phone="9000022222")["user"]["userType"] == "seller"
