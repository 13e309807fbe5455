import models


def test_create_equal_expense(client, alice, bob, carol):
    response = client.post("/expenses/create", json={
        "userId": alice.id,
        "amount": 90,
        "category": "food",
        "description": "Dinner",
        "participants": [bob.id, carol.id],
        "splitType": "equal"
    })
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    expense = data["expense"]
    assert expense["totalAmount"] == 90.0
    assert expense["createdBy"] == alice.id
    assert expense["splitType"] == "equal"
    assert [(s["userId"], s["amount"], s["paid"]) for s in expense["splits"]] == [
        (alice.id, 30.0, False), (bob.id, 30.0, False), (carol.id, 30.0, False)
    ]


def test_create_expense_rounds_remainder(client, alice, bob, carol):
    response = client.post("/expenses/create", json={
        "userId": alice.id,
        "amount": 10,
        "category": "food",
        "participants": [bob.id, carol.id]
    })
    assert response.status_code == 200
    amounts = [s["amount"] for s in response.json()["expense"]["splits"]]
    assert amounts == [3.34, 3.33, 3.33]


def test_create_custom_expense(client, alice, bob):
    response = client.post("/expenses/create", json={
        "userId": alice.id,
        "amount": 100,
        "category": "travel",
        "splitType": "custom",
        "customSplits": [
            {"userId": alice.id, "amount": 40},
            {"userId": bob.id, "amount": 60}
        ]
    })
    assert response.status_code == 200
    splits = response.json()["expense"]["splits"]
    assert [s["amount"] for s in splits] == [40.0, 60.0]


def test_custom_split_mismatch_returns_discrepancy(client, db_session, alice, bob):
    response = client.post("/expenses/create", json={
        "userId": alice.id,
        "amount": 100,
        "category": "travel",
        "splitType": "custom",
        "customSplits": [
            {"userId": alice.id, "amount": 40},
            {"userId": bob.id, "amount": 65}
        ]
    })
    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["discrepancy"] == 5.0
    assert "$5.00" in data["error"]
    assert db_session.query(models.Expense).count() == 0


def test_create_expense_validation_errors(client, alice, bob):
    # Zero amount
    response = client.post("/expenses/create", json={
        "userId": alice.id, "amount": 0, "participants": [bob.id]
    })
    assert response.status_code == 400
    assert response.json()["success"] is False

    # No participants
    response = client.post("/expenses/create", json={
        "userId": alice.id, "amount": 10, "participants": []
    })
    assert response.status_code == 400

    # Unknown split type
    response = client.post("/expenses/create", json={
        "userId": alice.id, "amount": 10, "participants": [bob.id], "splitType": "percentage"
    })
    assert response.status_code == 400

    # Missing amount field
    response = client.post("/expenses/create", json={"userId": alice.id, "participants": [bob.id]})
    assert response.status_code == 400
    assert "amount" in response.json()["error"]


def test_create_expense_unknown_participant(client, alice):
    response = client.post("/expenses/create", json={
        "userId": alice.id, "amount": 10, "participants": [9999]
    })
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "User with ID 9999 not found"}


def test_pay_share_twice_is_a_no_op(client, db_session, alice, bob):
    created = client.post("/expenses/create", json={
        "userId": alice.id, "amount": 20, "category": "food", "participants": [bob.id]
    }).json()
    expense_id = created["expense"]["id"]

    first = client.post(f"/expenses/{expense_id}/pay", json={"userId": bob.id})
    second = client.post(f"/expenses/{expense_id}/pay", json={"userId": bob.id})

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json() == second.json()

    splits = second.json()["splits"]
    bob_split = next(s for s in splits if s["userId"] == bob.id)
    assert bob_split["paid"] is True
    assert bob_split["userName"] == "Bob"
    assert bob_split["percentage"] == 50.0

    received = db_session.query(models.Notification).filter(
        models.Notification.type == "payment_received"
    ).count()
    assert received == 1


def test_pay_share_errors(client, alice, bob, carol):
    created = client.post("/expenses/create", json={
        "userId": alice.id, "amount": 20, "participants": [bob.id]
    }).json()
    expense_id = created["expense"]["id"]

    response = client.post(f"/expenses/{expense_id}/pay", json={"userId": carol.id, "splitUserId": bob.id})
    assert response.status_code == 403

    response = client.post(f"/expenses/{expense_id}/pay", json={"userId": carol.id})
    assert response.status_code == 404

    response = client.post("/expenses/9999/pay", json={"userId": bob.id})
    assert response.status_code == 404


def test_get_expense_access(client, alice, bob, carol):
    created = client.post("/expenses/create", json={
        "userId": alice.id, "amount": 20, "participants": [bob.id]
    }).json()
    expense_id = created["expense"]["id"]

    response = client.get(f"/expenses/{expense_id}", params={"userId": bob.id})
    assert response.status_code == 200
    assert response.json()["expense"]["id"] == expense_id

    response = client.get(f"/expenses/{expense_id}", params={"userId": carol.id})
    assert response.status_code == 403


def test_expense_history(client, alice, bob, carol):
    client.post("/expenses/create", json={
        "userId": alice.id, "amount": 30, "category": "Food", "description": "Lunch",
        "participants": [bob.id]
    })
    client.post("/expenses/create", json={
        "userId": carol.id, "amount": 12, "category": "fun", "description": "Movie",
        "participants": [alice.id]
    })
    client.post("/expenses/create", json={
        "userId": bob.id, "amount": 50, "category": "travel", "description": "Not mine",
        "participants": [carol.id]
    })

    response = client.get("/expenses/history", params={"userId": alice.id})
    assert response.status_code == 200
    expenses = response.json()["expenses"]
    assert [e["description"] for e in expenses] == ["Movie", "Lunch"]
    assert expenses[0]["userAmount"] == 6.0
    assert expenses[0]["createdByName"] == "Carol"
    assert expenses[1]["totalAmount"] == 30.0

    response = client.get("/expenses/history", params={"userId": alice.id, "category": "food"})
    assert [e["description"] for e in response.json()["expenses"]] == ["Lunch"]

    response = client.get("/expenses/history", params={"userId": alice.id, "friendId": carol.id})
    assert [e["description"] for e in response.json()["expenses"]] == ["Movie"]

    response = client.get("/expenses/history", params={"userId": alice.id, "limit": 1})
    assert len(response.json()["expenses"]) == 1


def test_expense_history_rejects_bad_limit(client, alice):
    response = client.get("/expenses/history", params={"userId": alice.id, "limit": 500})
    assert response.status_code == 400


def test_create_expense_in_group_checks_membership(client, db_session, alice, bob, carol):
    group = client.post("/groups", json={"userId": alice.id, "name": "Pair", "memberIds": [bob.id]}).json()["group"]

    response = client.post("/expenses/create", json={
        "userId": carol.id, "amount": 50, "participants": [carol.id], "groupId": group["id"]
    })
    assert response.status_code == 403

    response = client.post("/expenses/create", json={
        "userId": alice.id, "amount": 50, "participants": [bob.id], "groupId": 9999
    })
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Group not found"}

    listed = client.get(f"/groups/{group['id']}/expenses", params={"userId": alice.id}).json()
    assert listed["expenses"] == []
    assert db_session.query(models.Expense).count() == 0

    response = client.post("/expenses/create", json={
        "userId": alice.id, "amount": 50, "participants": [bob.id], "groupId": group["id"]
    })
    assert response.status_code == 200
    assert response.json()["expense"]["groupId"] == group["id"]


def _post_raw(client, body):
    return client.post("/expenses/create", content=body, headers={"content-type": "application/json"})


def test_create_expense_rejects_non_finite_and_huge_amounts(client, db_session, alice, bob):
    for raw_amount in ("NaN", "Infinity", "-Infinity", "1e30"):
        response = _post_raw(client, f'{{"userId": {alice.id}, "amount": {raw_amount}, "participants": [{bob.id}]}}')
        assert response.status_code == 400, raw_amount
        assert response.json()["success"] is False

    response = _post_raw(
        client,
        f'{{"userId": {alice.id}, "amount": 10, "splitType": "custom", '
        f'"customSplits": [{{"userId": {bob.id}, "amount": NaN}}]}}'
    )
    assert response.status_code == 400

    assert db_session.query(models.Expense).count() == 0
