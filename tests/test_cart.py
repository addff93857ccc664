import models


def test_add_to_cart_merges_lines(client, auth, buyer, make_product):
    product = make_product(price=250)
    for qty in (1, 2):
        r = client.post("/cart", json={"productId": product.id, "quantity": qty}, headers=auth(buyer))
        assert r.json() == {"success": True}

    cart = client.get("/cart", headers=auth(buyer)).json()
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 3
    assert cart["total"] == 750


def test_cart_total_uses_current_price(client, db, auth, buyer, make_product, fill_cart):
    shirt = make_product(price=1000)
    belt = make_product(name="Belt", price=500)
    fill_cart(buyer, (shirt, 2), (belt, 1))

    shirt.price = 1200
    db.commit()

    cart = client.get("/cart", headers=auth(buyer)).json()
    assert cart["total"] == 2900
    assert {i["productId"]: i["subtotal"] for i in cart["items"]} == {shirt.id: 2400, belt.id: 500}


def test_empty_cart(client, auth, buyer):
    assert client.get("/cart", headers=auth(buyer)).json() == {"items": [], "total": 0}


def test_cart_user_id_must_match_caller(client, auth, buyer, make_user):
    other = make_user()
    assert client.get("/cart", params={"userId": buyer.id}, headers=auth(buyer)).status_code == 200
    assert client.get("/cart", params={"userId": other.id}, headers=auth(buyer)).status_code == 403


def test_add_unknown_product(client, auth, buyer):
    r = client.post("/cart", json={"productId": 999, "quantity": 1}, headers=auth(buyer))
    assert r.status_code == 404


def test_add_rejects_zero_quantity(client, auth, buyer, make_product):
    product = make_product()
    r = client.post("/cart", json={"productId": product.id, "quantity": 0}, headers=auth(buyer))
    assert r.status_code == 400


def test_update_and_remove_item(client, auth, buyer, make_product, fill_cart):
    product = make_product()
    fill_cart(buyer, (product, 1))
    item_id = client.get("/cart", headers=auth(buyer)).json()["items"][0]["id"]

    r = client.patch("/cart/item", json={"itemId": item_id, "quantity": 4}, headers=auth(buyer))
    assert r.status_code == 200
    assert r.json()["quantity"] == 4

    r = client.patch("/cart/item", json={"itemId": item_id, "quantity": 0}, headers=auth(buyer))
    assert r.status_code == 400

    r = client.request("DELETE", "/cart/item", json={"itemId": item_id}, headers=auth(buyer))
    assert r.json() == {"message": "Item removed"}
    assert client.get("/cart", headers=auth(buyer)).json()["items"] == []


def test_cannot_touch_another_buyers_cart(client, auth, buyer, make_user, make_product, fill_cart):
    product = make_product()
    fill_cart(buyer, (product, 1))
    item_id = client.get("/cart", headers=auth(buyer)).json()["items"][0]["id"]
    intruder = make_user()

    r = client.patch("/cart/item", json={"itemId": item_id, "quantity": 9}, headers=auth(intruder))
    assert r.status_code == 404
    r = client.request("DELETE", "/cart/item", json={"itemId": item_id}, headers=auth(intruder))
    assert r.status_code == 404


def test_cart_is_buyer_only(client, auth, seller):
    assert client.get("/cart", headers=auth(seller)).status_code == 403
    assert client.get("/cart").status_code == 401
