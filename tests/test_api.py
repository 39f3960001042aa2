"""End-to-end tests over HTTP and the /ws socket."""

from decimal import Decimal

from conftest import as_user


def _create(client, trio, user=None, **body):
    payload = {
        "amount": "30.00",
        "description": "Dinner",
        "category_id": trio["category"],
        "group_id": trio["group"],
    }
    payload.update(body)
    return client.post("/api/expenses/", json=payload, headers=as_user(user or trio["a"]))


def test_healthcheck(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["docs"] == "/docs"


def test_three_way_dinner_round_trip(client, trio):
    """Create, observe over the socket, settle, observe again, settle twice."""
    with client.websocket_connect("/ws") as ws:
        response = _create(client, trio)
        assert response.status_code == 201
        expense = response.json()
        assert [Decimal(s["amount"]) for s in expense["splits"]] == [Decimal("10.00"), Decimal("10.00")]

        added = ws.receive_json()
        assert added["type"] == "expense_added"
        assert added["expense"]["id"] == expense["id"]

        b_split = next(s for s in expense["splits"] if s["user_id"] == trio["b"])
        settled = client.patch(f"/api/splits/{b_split['id']}/settle", headers=as_user(trio["b"]))
        assert settled.status_code == 200
        assert settled.json()["settled"] is True

        event = ws.receive_json()
        assert event["type"] == "payment_settled"
        assert event["split"]["id"] == b_split["id"]

    again = client.patch(f"/api/splits/{b_split['id']}/settle", headers=as_user(trio["a"]))
    assert again.status_code == 200
    assert again.json()["settled_at"] == settled.json()["settled_at"]

    payer_inbox = client.get("/api/notifications/", headers=as_user(trio["a"])).json()
    assert [n["type"] for n in payer_inbox] == ["payment_settled"]
    debtor_inbox = client.get("/api/notifications/", headers=as_user(trio["c"])).json()
    assert [n["type"] for n in debtor_inbox] == ["expense_added"]


def test_custom_split_mismatch_is_422(client, ledger, trio):
    response = _create(
        client, trio,
        amount="100.00",
        split_type="custom",
        shares=[
            {"user_id": trio["a"], "amount": "33.33"},
            {"user_id": trio["b"], "amount": "33.33"},
            {"user_id": trio["c"], "amount": "33.32"},
        ],
    )

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "split_mismatch"
    assert response.json()["detail"]["kind"] == "validation"
    assert ledger.count_rows() == (0, 0)


def test_invalid_amount_is_422(client, trio):
    response = _create(client, trio, amount="-1.00")

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "invalid_amount"


def test_unknown_category_is_404(client, ids, trio):
    response = _create(client, trio, category_id=ids.to_stable_id("no-such-category"))

    assert response.status_code == 404
    assert response.json()["detail"] == {
        "code": "reference_not_found",
        "kind": "reference",
        "message": response.json()["detail"]["message"],
    }


def test_expense_visibility(client, ledger, trio):
    expense = _create(client, trio).json()
    outsider = ledger.add_user()

    assert client.get(f"/api/expenses/{expense['id']}", headers=as_user(trio["b"])).status_code == 200
    splits = client.get(f"/api/expenses/{expense['id']}/splits", headers=as_user(trio["a"]))
    assert [s["user_id"] for s in splits.json()] == [trio["b"], trio["c"]]
    assert client.get(f"/api/expenses/{expense['id']}", headers=as_user(outsider)).status_code == 403
    assert client.get("/api/expenses/999999", headers=as_user(trio["a"])).status_code == 404


def test_list_my_expenses_and_splits(client, trio):
    expense = _create(client, trio).json()

    mine = client.get("/api/expenses/", headers=as_user(trio["a"])).json()
    owed = client.get("/api/splits/", headers=as_user(trio["c"])).json()

    assert [e["id"] for e in mine] == [expense["id"]]
    assert [s["expense_id"] for s in owed] == [expense["id"]]
    assert owed[0]["paid_by"] == trio["a"]


def test_only_debtor_or_payer_may_settle(client, trio):
    expense = _create(client, trio).json()
    b_split = next(s for s in expense["splits"] if s["user_id"] == trio["b"])

    response = client.patch(f"/api/splits/{b_split['id']}/settle", headers=as_user(trio["c"]))

    assert response.status_code == 403


def test_settle_unknown_split_is_404(client, trio):
    response = client.patch("/api/splits/424242/settle", headers=as_user(trio["a"]))

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "not_found"


def test_mark_notification_read(client, trio):
    _create(client, trio)
    inbox = client.get("/api/notifications/", headers=as_user(trio["b"])).json()
    note_id = inbox[0]["id"]

    forbidden = client.patch(f"/api/notifications/{note_id}/read", headers=as_user(trio["c"]))
    read = client.patch(f"/api/notifications/{note_id}/read", headers=as_user(trio["b"]))

    assert forbidden.status_code == 403
    assert read.status_code == 200
    assert read.json()["read"] is True


def test_sql_backed_round_trip(sql_client, sql_trio):
    """Same flow against the SQL stores wired through get_db."""
    response = _create(sql_client, sql_trio, amount="100.00")
    assert response.status_code == 201
    expense = response.json()
    assert expense["currency_code"] == "EUR"
    assert {s["user_id"]: Decimal(s["amount"]) for s in expense["splits"]} == {
        sql_trio["b"]: Decimal("33.34"),
        sql_trio["c"]: Decimal("33.33"),
    }

    split_id = expense["splits"][0]["id"]
    first = sql_client.patch(f"/api/splits/{split_id}/settle", headers=as_user(sql_trio["b"]))
    second = sql_client.patch(f"/api/splits/{split_id}/settle", headers=as_user(sql_trio["b"]))

    assert first.status_code == second.status_code == 200
    assert second.json()["settled_at"] == first.json()["settled_at"]
    inbox = sql_client.get("/api/notifications/", headers=as_user(sql_trio["a"])).json()
    assert [n["type"] for n in inbox] == ["payment_settled"]


def test_non_member_cannot_add_group_expense(client, ledger, notifications, trio):
    outsider = ledger.add_user()

    response = _create(client, trio, user=outsider, paid_by=trio["a"])

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "forbidden"
    assert response.json()["detail"]["kind"] == "authorization"
    assert ledger.count_rows() == (0, 0)
    assert notifications.list_for_user(trio["b"]) == []


def test_personal_expense_for_another_payer_is_403(client, ledger, trio):
    response = _create(client, trio, group_id=None, paid_by=trio["b"])

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "forbidden"
    assert ledger.count_rows() == (0, 0)


def test_lookups_list_categories_groups_and_members(client, ledger, trio):
    outsider = ledger.add_user()

    categories = client.get("/api/expense-categories/", headers=as_user(trio["a"])).json()
    groups = client.get("/api/groups/", headers=as_user(trio["b"])).json()
    members = client.get(f"/api/groups/{trio['group']}/members", headers=as_user(trio["c"]))
    foreign = client.get(f"/api/groups/{trio['group']}/members", headers=as_user(outsider))

    assert [c["id"] for c in categories] == [trio["category"]]
    assert categories[0]["name"] == "Food & Dining"
    assert [(g["id"], g["name"]) for g in groups] == [(trio["group"], "Trip")]
    assert groups[0]["member_ids"] == [trio["a"], trio["b"], trio["c"]]
    assert members.status_code == 200
    assert members.json() == [trio["a"], trio["b"], trio["c"]]
    assert foreign.status_code == 403
    assert client.get("/api/groups/", headers=as_user(outsider)).json() == []


def test_sql_client_discovers_ids_before_posting(sql_client, sql_users):
    """Fresh process: only user ids are known, group and category ids come from the lookups."""
    a, b, c = sql_users

    categories = sql_client.get("/api/expense-categories/", headers=as_user(a))
    groups = sql_client.get("/api/groups/", headers=as_user(a))
    assert categories.status_code == groups.status_code == 200
    group = groups.json()[0]
    assert group["default_currency_code"] == "EUR"
    assert group["member_ids"] == [a, b, c]

    response = sql_client.post(
        "/api/expenses/",
        json={
            "amount": "30.00",
            "description": "Dinner",
            "category_id": categories.json()[0]["id"],
            "group_id": group["id"],
        },
        headers=as_user(a),
    )

    assert response.status_code == 201
    assert response.json()["currency_code"] == "EUR"
    assert sorted(s["user_id"] for s in response.json()["splits"]) == [b, c]
    members = sql_client.get(f"/api/groups/{group['id']}/members", headers=as_user(b))
    assert members.json() == [a, b, c]
