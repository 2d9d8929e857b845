import pytest


@pytest.fixture
def group_id(make_group):
    return make_group()


def test_create_expense(client, auth_headers, group_id, user_id):
    res = client.post("/api/expenses", json={
        "group_id": group_id, "amount": 50.0,
        "description": "Lunch", "participant_ids": [user_id], "category": "food"
    }, headers=auth_headers)
    assert res.status_code == 201
    data = res.json()
    assert data["amount"] == 50.0
    assert data["category"] == "food"
    assert data["payer_id"] == user_id  # defaults to the caller


def test_create_expense_custom_category(client, auth_headers, group_id, user_id):
    res = client.post("/api/expenses", json={
        "group_id": group_id, "amount": 12.0, "description": "Gift",
        "participant_ids": [user_id], "category": "other", "custom_category": "gifts"
    }, headers=auth_headers)
    assert res.json()["custom_category"] == "gifts"


@pytest.mark.parametrize("payload, detail", [
    ({"amount": 0}, "greater than 0"),
    ({"amount": -5}, "greater than 0"),
    ({"participant_ids": []}, "At least one participant"),
    ({"participant_ids": [9999]}, "group members"),
    ({"payer_id": 9999}, "Payer"),
    ({"category": "spaceships"}, "Invalid category"),
])
def test_create_expense_rejects_bad_input(client, auth_headers, group_id, user_id, payload, detail):
    body = {
        "group_id": group_id, "amount": 10.0,
        "description": "Bad", "participant_ids": [user_id], **payload,
    }
    res = client.post("/api/expenses", json=body, headers=auth_headers)
    assert res.status_code == 400
    assert detail in res.json()["detail"]


def test_list_expenses(client, auth_headers, group_id, user_id, add_expense):
    for i in range(3):
        add_expense(group_id, user_id, 10.0 * (i + 1), [user_id], description=f"Expense {i}")
    res = client.get(f"/api/expenses?group_id={group_id}", headers=auth_headers)
    assert res.status_code == 200
    assert len(res.json()) == 3


def test_search_expenses(client, auth_headers, group_id, user_id, add_expense):
    add_expense(group_id, user_id, 20.0, [user_id], description="Coffee")
    add_expense(group_id, user_id, 30.0, [user_id], description="Pizza")
    res = client.get(f"/api/expenses?group_id={group_id}&search=coffee", headers=auth_headers)
    assert len(res.json()) == 1
    assert res.json()[0]["description"] == "Coffee"


def test_filter_by_category(client, auth_headers, group_id, user_id, add_expense):
    add_expense(group_id, user_id, 20.0, [user_id], description="Bus", category="transport")
    add_expense(group_id, user_id, 30.0, [user_id], description="Dinner", category="food")
    res = client.get(f"/api/expenses?group_id={group_id}&category=food", headers=auth_headers)
    assert len(res.json()) == 1


def test_update_expense(client, auth_headers, group_id, user_id, add_expense):
    eid = add_expense(group_id, user_id, 25.0, [user_id], description="Old")["id"]
    res = client.patch(f"/api/expenses/{eid}", json={
        "amount": 30.0, "description": "Updated", "category": "food"
    }, headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["amount"] == 30.0
    assert res.json()["description"] == "Updated"
    assert res.json()["category"] == "food"


def test_update_expense_rejects_zero_amount(client, auth_headers, group_id, user_id, add_expense):
    eid = add_expense(group_id, user_id, 25.0, [user_id])["id"]
    res = client.patch(f"/api/expenses/{eid}", json={"amount": 0}, headers=auth_headers)
    assert res.status_code == 400


def test_delete_expense(client, auth_headers, group_id, user_id, add_expense):
    eid = add_expense(group_id, user_id, 10.0, [user_id], description="Del")["id"]
    res = client.delete(f"/api/expenses/{eid}", headers=auth_headers)
    assert res.status_code == 204
    res = client.get(f"/api/expenses/{eid}", headers=auth_headers)
    assert res.status_code == 404


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_create_expense_rejects_non_finite_amount(client, auth_headers, group_id, user_id, post_raw, literal):
    body = (
        f'{{"group_id": {group_id}, "amount": {literal}, '
        f'"description": "Broken", "participant_ids": [{user_id}]}}'
    )
    res = post_raw("/api/expenses", body)
    assert res.status_code == 422
    res = client.get(f"/api/expenses?group_id={group_id}", headers=auth_headers)
    assert res.json() == []


def test_update_expense_rejects_non_finite_amount(client, auth_headers, group_id, user_id, add_expense):
    eid = add_expense(group_id, user_id, 25.0, [user_id])["id"]
    res = client.patch(
        f"/api/expenses/{eid}",
        content='{"amount": Infinity}',
        headers={**auth_headers, "Content-Type": "application/json"},
    )
    assert res.status_code == 422
    assert client.get(f"/api/expenses/{eid}", headers=auth_headers).json()["amount"] == 25.0
