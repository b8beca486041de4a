from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import FeeAuditLog


async def _second_year(client: AsyncClient) -> dict:
    response = await client.post(
        "/api/v1/academic-years",
        json={"year": "2025-2026", "start_date": "2025-04-01", "end_date": "2026-03-31"},
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_create_fee_structure(
    client: AsyncClient, db_session: AsyncSession, seed: SimpleNamespace, structure_payload
) -> None:
    response = await client.post("/api/v1/fee-structures", json=structure_payload())
    assert response.status_code == 201
    data = response.json()

    assert data["name"] == "5th - 2024-2025"
    assert data["academic_year"]["year"] == "2024-2025"
    assert data["school_class"]["class_name"] == "5th"
    assert [i["template_name"] for i in data["fee_items"]] == ["School Fee", "Book Fee"]
    school, book = data["fee_items"]
    assert school["is_compulsory"] is True
    assert book["is_compulsory"] is False
    assert book["is_editable_during_enrollment"] is True
    assert Decimal(data["total_fees"]["compulsory"]) == Decimal("5000")
    assert Decimal(data["total_fees"]["optional"]) == Decimal("1000")
    assert Decimal(data["total_scholarships"]["auto_applied"]) == Decimal("500")
    assert Decimal(data["total_scholarships"]["manual"]) == Decimal("300")

    result = await db_session.execute(
        select(FeeAuditLog).where(FeeAuditLog.reference_id == data["id"])
    )
    audit = result.scalar_one()
    assert audit.action_type == "CREATE"
    assert audit.changed_by == "office@school"


@pytest.mark.asyncio
async def test_duplicate_fee_structure_rejected(client: AsyncClient, structure_payload) -> None:
    assert (await client.post("/api/v1/fee-structures", json=structure_payload())).status_code == 201
    response = await client.post("/api/v1/fee-structures", json=structure_payload())
    assert response.status_code == 409
    assert "already exists" in response.json()["detail"]


@pytest.mark.asyncio
async def test_unknown_template_or_missing_refs(client: AsyncClient, seed: SimpleNamespace, structure_payload) -> None:
    response = await client.post(
        "/api/v1/fee-structures", json=structure_payload(default_amounts={str(uuid4()): "100"})
    )
    assert response.status_code == 404

    response = await client.post("/api/v1/fee-structures", json=structure_payload(class_id=str(uuid4())))
    assert response.status_code == 404
    assert response.json()["detail"] == "Class not found"

    response = await client.post(
        "/api/v1/fee-structures",
        json=structure_payload(default_amounts={seed.school_fee.id: "-1"}),
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_get_defaults_to_current_year(client: AsyncClient, seed: SimpleNamespace, structure_payload) -> None:
    created = (await client.post("/api/v1/fee-structures", json=structure_payload())).json()

    response = await client.get("/api/v1/fee-structures", params={"class_id": seed.school_class.id})
    assert response.status_code == 200
    assert response.json()["id"] == created["id"]

    other = await _second_year(client)
    response = await client.get(
        "/api/v1/fee-structures",
        params={"class_id": seed.school_class.id, "academic_year_id": other["id"]},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_replace_keeps_id_and_unchanged_amounts(
    client: AsyncClient, seed: SimpleNamespace, structure_payload
) -> None:
    created = (await client.post("/api/v1/fee-structures", json=structure_payload())).json()

    response = await client.put(
        "/api/v1/fee-structures",
        json=structure_payload(default_amounts={seed.school_fee.id: "6000"}, scholarship_amounts={}),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == created["id"]
    amounts = {i["template_name"]: Decimal(i["amount"]) for i in data["fee_items"]}
    assert amounts == {"School Fee": Decimal("6000"), "Book Fee": Decimal("1000")}
    assert Decimal(data["total_fees"]["total"]) == Decimal("7000")
    assert Decimal(data["total_scholarships"]["total"]) == Decimal("800")


@pytest.mark.asyncio
async def test_replace_keeps_item_flags_unless_restated(
    client: AsyncClient, seed: SimpleNamespace, structure_payload
) -> None:
    await client.post("/api/v1/fee-structures", json=structure_payload())

    response = await client.put(
        "/api/v1/fee-structures",
        json={
            "academic_year_id": seed.academic_year.id,
            "class_id": seed.school_class.id,
            "default_amounts": {seed.school_fee.id: "6000"},
            "scholarship_items": [{"template_id": seed.sibling.id, "is_auto_applied": True}],
        },
    )
    assert response.status_code == 200
    data = response.json()
    book = next(i for i in data["fee_items"] if i["template_name"] == "Book Fee")
    assert book["is_editable_during_enrollment"] is True
    assert book["is_compulsory"] is False
    flags = {
        i["template_name"]: (i["is_auto_applied"], i["is_editable_during_enrollment"])
        for i in data["scholarship_items"]
    }
    assert flags == {"Merit": (True, False), "Sibling": (True, True)}
    assert Decimal(data["total_scholarships"]["auto_applied"]) == Decimal("800")


@pytest.mark.asyncio
async def test_put_creates_when_absent(client: AsyncClient, structure_payload) -> None:
    response = await client.put("/api/v1/fee-structures", json=structure_payload())
    assert response.status_code == 200
    assert Decimal(response.json()["total_fees"]["total"]) == Decimal("6000")


@pytest.mark.asyncio
async def test_copy_to_next_year(client: AsyncClient, seed: SimpleNamespace, structure_payload) -> None:
    source = (await client.post("/api/v1/fee-structures", json=structure_payload())).json()
    target = await _second_year(client)
    payload = {
        "source_academic_year_id": seed.academic_year.id,
        "source_class_id": seed.school_class.id,
        "target_academic_year_id": target["id"],
        "target_class_id": seed.school_class.id,
    }

    response = await client.post("/api/v1/fee-structures/copy", json=payload)
    assert response.status_code == 201
    data = response.json()
    assert data["id"] != source["id"]
    assert data["name"] == "5th - 2025-2026"
    assert data["academic_year"]["year"] == "2025-2026"
    assert Decimal(data["total_fees"]["total"]) == Decimal(source["total_fees"]["total"])
    assert {i["id"] for i in data["fee_items"]}.isdisjoint({i["id"] for i in source["fee_items"]})

    response = await client.post("/api/v1/fee-structures/copy", json=payload)
    assert response.status_code == 409

    listed = await client.get(f"/api/v1/fee-structures/academic-year/{target['id']}")
    assert [s["id"] for s in listed.json()] == [data["id"]]


@pytest.mark.asyncio
async def test_copy_without_source(client: AsyncClient, seed: SimpleNamespace) -> None:
    target = await _second_year(client)
    response = await client.post(
        "/api/v1/fee-structures/copy",
        json={
            "source_academic_year_id": seed.academic_year.id,
            "source_class_id": seed.school_class.id,
            "target_academic_year_id": target["id"],
            "target_class_id": seed.school_class.id,
        },
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_inactive_template_left_out_of_new_structures(
    client: AsyncClient, seed: SimpleNamespace, structure_payload
) -> None:
    response = await client.delete(f"/api/v1/fee-templates/{seed.book_fee.id}")
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    response = await client.post(
        "/api/v1/fee-structures",
        json=structure_payload(default_amounts={seed.school_fee.id: "5000"}, fee_items=[]),
    )
    assert response.status_code == 201
    assert [i["template_name"] for i in response.json()["fee_items"]] == ["School Fee"]


@pytest.mark.asyncio
async def test_mutation_requires_actor(client: AsyncClient, structure_payload) -> None:
    response = await client.post(
        "/api/v1/fee-structures", json=structure_payload(), headers={"X-Actor": " "}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "X-Actor header is required"
