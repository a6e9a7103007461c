"""Смены и корте через API: открытие, сводка, закрытие, корте позже, права."""
from datetime import date

import pytest
from sqlalchemy import func, select

from salon_pos.core.database import async_session_maker
from salon_pos.models import CashCut, CashShift, ShiftStatus
from salon_pos.services import shift_service
from salon_pos.services.reconciliation import AlreadyClosedError, CloseNow


def open_shift(client, headers, branch_id, initial_cash=2000):
    r = client.post("/shifts", json={"branch_id": branch_id, "initial_cash": initial_cash}, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


def cash_sale(client, headers, branch_id, total=500):
    return client.post(
        "/sales",
        json={"branch_id": branch_id, "payment_method": "cash", "total": total},
        headers=headers,
    )


def record_example_day(client, headers, branch_id):
    """Продажа 800 пополам наличными/картой, расход 150 наличными."""
    r = client.post(
        "/sales",
        json={
            "branch_id": branch_id,
            "payment_method": "mixed",
            "total": 800,
            "payments": [{"method": "cash", "amount": 400}, {"method": "card", "amount": 400}],
        },
        headers=headers,
    )
    assert r.status_code == 200, r.text
    r = client.post(
        "/expenses",
        json={"branch_id": branch_id, "amount": 150, "payment_method": "cash", "description": "Toallas"},
        headers=headers,
    )
    assert r.status_code == 200, r.text


def test_open_close_flow(client, auth_headers, branch_id):
    """Открытие, продажа и расход, сводка, закрытие с корте."""
    shift = open_shift(client, auth_headers, branch_id)
    assert shift["status"] == "open"
    assert shift["date"] == date.today().isoformat()

    r = client.get("/shifts/current", params={"branch_id": branch_id}, headers=auth_headers)
    assert r.json()["shift"]["id"] == shift["id"]

    record_example_day(client, auth_headers, branch_id)
    r = client.get(f"/shifts/{shift['id']}/summary", headers=auth_headers)
    assert r.status_code == 200
    summary = r.json()
    assert summary["expected_by_method"] == {"cash": 2250.0, "card": 400.0, "transfer": 0.0}
    assert summary["used_methods"] == ["cash", "card"]
    assert summary["direct_sales_count"] == 1

    r = client.post(f"/shifts/{shift['id']}/close", json={"cash": 2200, "card": 400}, headers=auth_headers)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["shift"]["status"] == "closed"
    assert data["shift"]["final_cash"] == 2200.0
    cut = data["cash_cut"]
    assert cut["expected_cash"] == 2250.0
    assert cut["difference"] == -50.0
    assert cut["sales_by_method"] == {"cash": 400.0, "card": 400.0, "transfer": 0.0}

    r = client.get("/shifts/current", params={"branch_id": branch_id}, headers=auth_headers)
    assert r.json()["shift"] is None
    r = client.get(f"/cash-cuts/{cut['id']}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["shift_id"] == shift["id"]


def test_second_open_shift_rejected(client, auth_headers, branch_id):
    """Вторая открытая смена в филиале — 400."""
    open_shift(client, auth_headers, branch_id)
    r = client.post("/shifts", json={"branch_id": branch_id, "initial_cash": 10}, headers=auth_headers)
    assert r.status_code == 400


def test_double_close_conflict(client, auth_headers, branch_id):
    """Повторное закрытие — 409, корте один."""
    shift = open_shift(client, auth_headers, branch_id)
    r = client.post(f"/shifts/{shift['id']}/close", json={"cash": 2000}, headers=auth_headers)
    assert r.status_code == 200
    r = client.post(f"/shifts/{shift['id']}/close", json={"cash": 2000}, headers=auth_headers)
    assert r.status_code == 409
    r = client.get("/cash-cuts", params={"branch_id": branch_id}, headers=auth_headers)
    assert len(r.json()) == 1


def test_close_requires_cash(client, auth_headers, branch_id):
    """Закрытие без наличных — 422."""
    shift = open_shift(client, auth_headers, branch_id)
    r = client.post(f"/shifts/{shift['id']}/close", json={"card": 0}, headers=auth_headers)
    assert r.status_code == 422


def test_close_unknown_shift(client, auth_headers):
    """Закрытие несуществующей смены — 404."""
    r = client.post("/shifts/999/close", json={"cash": 1}, headers=auth_headers)
    assert r.status_code == 404


def test_pending_cut_for_shift_closed_without_cut(client, auth_headers, branch_id):
    """Смена, закрытая без корте, попадает в pending; корте делается один раз."""
    shift = open_shift(client, auth_headers, branch_id)
    record_example_day(client, auth_headers, branch_id)

    # Закрытие без корте (например, старые данные): меняем статус напрямую
    async def _close_directly():
        async with async_session_maker() as session:
            row = await session.get(CashShift, shift["id"])
            row.status = ShiftStatus.CLOSED
            row.final_cash = 2250
            await session.commit()

    client.portal.call(_close_directly)

    r = client.get("/cash-cuts/pending", params={"branch_id": branch_id}, headers=auth_headers)
    assert [s["id"] for s in r.json()] == [shift["id"]]

    r = client.post("/cash-cuts", json={"shift_id": shift["id"], "card": 400}, headers=auth_headers)
    assert r.status_code == 200, r.text
    cut = r.json()
    assert cut["final_cash"] == 2250.0
    assert cut["difference"] == 0.0

    r = client.get("/cash-cuts/pending", params={"branch_id": branch_id}, headers=auth_headers)
    assert r.json() == []
    r = client.post("/cash-cuts", json={"shift_id": shift["id"], "cash": 2250}, headers=auth_headers)
    assert r.status_code == 409


def test_cut_for_open_shift_conflict(client, auth_headers, branch_id):
    """Корте для открытой смены — 409."""
    shift = open_shift(client, auth_headers, branch_id)
    r = client.post("/cash-cuts", json={"shift_id": shift["id"], "cash": 1}, headers=auth_headers)
    assert r.status_code == 409


def test_mixed_sale_must_add_up(client, auth_headers, branch_id):
    """Смешанная оплата должна совпасть с итогом и иметь хотя бы одну часть."""
    open_shift(client, auth_headers, branch_id)
    r = client.post(
        "/sales",
        json={
            "branch_id": branch_id,
            "payment_method": "mixed",
            "total": 800,
            "payments": [{"method": "cash", "amount": 400}, {"method": "card", "amount": 300}],
        },
        headers=auth_headers,
    )
    assert r.status_code == 400
    r = client.post(
        "/sales",
        json={"branch_id": branch_id, "payment_method": "mixed", "total": 10, "payments": []},
        headers=auth_headers,
    )
    assert r.status_code == 400


def test_sale_requires_open_shift(client, auth_headers, branch_id):
    """Продажа без открытой смены и после закрытия — 400, корте не расходится со сводкой."""
    r = cash_sale(client, auth_headers, branch_id)
    assert r.status_code == 400

    shift = open_shift(client, auth_headers, branch_id)
    r = client.post(f"/shifts/{shift['id']}/close", json={"cash": 2000}, headers=auth_headers)
    cut = r.json()["cash_cut"]
    r = cash_sale(client, auth_headers, branch_id)
    assert r.status_code == 400

    summary = client.get(f"/shifts/{shift['id']}/summary", headers=auth_headers).json()
    assert summary["expected_by_method"]["cash"] == cut["expected_cash"] == 2000.0
    assert client.get("/sales", params={"branch_id": branch_id}, headers=auth_headers).json() == []


def test_cancelled_purchase_not_counted(client, auth_headers, branch_id):
    """Отменённая закупка не уменьшает ожидаемые наличные."""
    shift = open_shift(client, auth_headers, branch_id, initial_cash=500)
    r = client.post(
        "/purchases",
        json={"branch_id": branch_id, "total": 200, "payment_method": "cash", "supplier_name": "Proveedora"},
        headers=auth_headers,
    )
    purchase_id = r.json()["id"]
    summary = client.get(f"/shifts/{shift['id']}/summary", headers=auth_headers).json()
    assert summary["expected_by_method"]["cash"] == 300.0

    r = client.patch(f"/purchases/{purchase_id}/cancel", headers=auth_headers)
    assert r.json()["status"] == "cancelled"
    summary = client.get(f"/shifts/{shift['id']}/summary", headers=auth_headers).json()
    assert summary["expected_by_method"]["cash"] == 500.0


def test_completed_appointments_counted(client, auth_headers, branch_id):
    """В сводку идут только завершённые записи."""
    shift = open_shift(client, auth_headers, branch_id)
    today = date.today().isoformat()
    ids = []
    for t in ("10:00", "11:00"):
        r = client.post(
            "/appointments",
            json={"branch_id": branch_id, "date": today, "time": t, "client_name": "Lucía"},
            headers=auth_headers,
        )
        ids.append(r.json()["id"])
    client.patch(f"/appointments/{ids[0]}/status", json={"status": "completed"}, headers=auth_headers)
    summary = client.get(f"/shifts/{shift['id']}/summary", headers=auth_headers).json()
    assert summary["completed_appointments_count"] == 1


def test_stylist_can_view_but_not_close(client, auth_headers, branch_id, make_employee):
    """Стилист видит смену, но не закрывает её и не видит корте."""
    shift = open_shift(client, auth_headers, branch_id)
    stylist = make_employee("ROLE_STYLIST", "estilista", branch_id)
    r = client.get("/shifts/current", params={"branch_id": branch_id}, headers=stylist)
    assert r.status_code == 200
    r = client.post(f"/shifts/{shift['id']}/close", json={"cash": 2000}, headers=stylist)
    assert r.status_code == 403
    r = client.get("/cash-cuts", headers=stylist)
    assert r.status_code == 403


def test_receptionist_limited_to_own_branch(client, auth_headers, branch_id, make_employee):
    """Ресепшн работает только со своим филиалом."""
    other = client.post("/branches", json={"name": "Norte"}, headers=auth_headers).json()["id"]
    reception = make_employee("ROLE_RECEPTIONIST", "recepcion", branch_id)
    r = client.post("/shifts", json={"branch_id": other, "initial_cash": 100}, headers=reception)
    assert r.status_code == 403
    r = client.post("/shifts", json={"branch_id": branch_id, "initial_cash": 100}, headers=reception)
    assert r.status_code == 200
    r = client.get("/branches", headers=reception)
    assert [b["id"] for b in r.json()] == [branch_id]


def test_responsible_must_belong_to_branch(client, auth_headers, branch_id):
    """Ответственный из другого филиала — 400."""
    other = client.post("/branches", json={"name": "Norte"}, headers=auth_headers).json()["id"]
    r = client.post(
        "/employees",
        json={"name": "Rosa", "role": "ROLE_RECEPTIONIST", "login": "rosa", "password": "secret123", "branch_id": other},
        headers=auth_headers,
    )
    rosa_id = r.json()["id"]
    r = client.post(
        "/shifts",
        json={"branch_id": branch_id, "user_id": rosa_id, "initial_cash": 100},
        headers=auth_headers,
    )
    assert r.status_code == 400
    r = client.post(
        "/shifts",
        json={"branch_id": other, "user_id": rosa_id, "initial_cash": 100},
        headers=auth_headers,
    )
    assert r.status_code == 200
    assert r.json()["user_id"] == rosa_id


def test_close_loses_race_to_other_session(client, auth_headers, branch_id):
    """Смену закрыли в другой сессии: второе закрытие — AlreadyClosedError, корте один."""
    shift_id = open_shift(client, auth_headers, branch_id)["id"]

    async def _race():
        async with async_session_maker() as first, async_session_maker() as second:
            stale = await shift_service.get_shift(first, shift_id)
            assert stale.status == ShiftStatus.OPEN
            await shift_service.reconcile(second, CloseNow(shift_id), {"cash": "2000"})
            await second.commit()
            with pytest.raises(AlreadyClosedError):
                await shift_service.reconcile(first, CloseNow(shift_id), {"cash": "1999"})
            await first.rollback()
            r = await second.execute(select(func.count(CashCut.id)).where(CashCut.shift_id == shift_id))
            return r.scalar_one()

    assert client.portal.call(_race) == 1
    cuts = client.get("/cash-cuts", params={"branch_id": branch_id}, headers=auth_headers).json()
    assert [c["final_cash"] for c in cuts] == [2000.0]


def test_second_cut_blocked_by_unique_shift(client, auth_headers, branch_id, monkeypatch):
    """Второй корте на смену не проходит уникальный индекс — 409."""
    shift = open_shift(client, auth_headers, branch_id)
    r = client.post(f"/shifts/{shift['id']}/close", json={"cash": 2000}, headers=auth_headers)
    assert r.status_code == 200

    # Вторая вкладка проверила наличие корте до того, как первая его записала
    async def _no_cut_yet(db, shift_id):
        return False

    monkeypatch.setattr(shift_service, "has_cut", _no_cut_yet)
    r = client.post("/cash-cuts", json={"shift_id": shift["id"], "cash": 2000}, headers=auth_headers)
    assert r.status_code == 409
    monkeypatch.undo()
    cuts = client.get("/cash-cuts", params={"branch_id": branch_id}, headers=auth_headers).json()
    assert len(cuts) == 1
