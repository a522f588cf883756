import asyncio

import pytest
from uuid import uuid4

from app.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from app.models.catalog import Category, Product
from app.models.inventory import InventoryTransaction, TransactionType
from app.models.production import (
    LineStatus,
    ProductionLine,
    ProductionRequest,
    ProductionResource,
)
from app.services import production_service as svc
from conftest import OWNER_ID


@pytest.fixture
async def line(business, raw_material, finished_product):
    """Planned 100, one resource needing 50 units of the raw material."""
    return await svc.create_production_line(
        business_id=business.id,
        finished_product_id=finished_product.id,
        planned_quantity=100,
        name="Tables, week 12",
        manager="Dana",
        resources=[{
            "resource_product_id": raw_material.id,
            "needed_quantity": 50,
            "unit_of_measure": "pcs",
        }],
    )


@pytest.fixture
async def resource(line):
    return await ProductionResource.get(production_line_id=line.id)


@pytest.fixture
async def started_line(line, business):
    return await svc.start_production_line(line.id, business.id)


class TestCreateProductionLine:
    async def test_creates_pending_line_without_touching_stock(self, line, raw_material):
        assert line.status == LineStatus.PENDING
        resources = await ProductionResource.filter(production_line_id=line.id)
        assert len(resources) == 1
        assert resources[0].needed_quantity == 50
        assert resources[0].resource_name == raw_material.name
        assert (await Product.get(id=raw_material.id)).quantity == 200

    async def test_cross_business_resource_creates_nothing(self, business, raw_material, finished_product, other_business):
        _, _, foreign_product = other_business

        with pytest.raises(NotFoundError):
            await svc.create_production_line(
                business.id, finished_product.id, 10, "Line", "Dana",
                resources=[
                    {"resource_product_id": raw_material.id, "needed_quantity": 1, "unit_of_measure": "pcs"},
                    {"resource_product_id": foreign_product.id, "needed_quantity": 1, "unit_of_measure": "pcs"},
                ],
            )

        assert await ProductionLine.all().count() == 0
        assert await ProductionResource.all().count() == 0

    async def test_unknown_finished_product(self, business, raw_material):
        with pytest.raises(NotFoundError):
            await svc.create_production_line(
                business.id, uuid4(), 10, "Line", "Dana",
                resources=[{"resource_product_id": raw_material.id, "needed_quantity": 1, "unit_of_measure": "pcs"}],
            )

    @pytest.mark.parametrize("planned, resources", [
        (0, [{"needed_quantity": 1, "unit_of_measure": "pcs"}]),
        (10, []),
        (10, [{"needed_quantity": 0, "unit_of_measure": "pcs"}]),
        (10, [{"needed_quantity": 5, "unit_of_measure": ""}]),
    ])
    async def test_invalid_input(self, business, raw_material, finished_product, planned, resources):
        for r in resources:
            r["resource_product_id"] = raw_material.id

        with pytest.raises(ValidationError):
            await svc.create_production_line(business.id, finished_product.id, planned, "Line", "Dana", resources)
        assert await ProductionLine.all().count() == 0

    async def test_finished_product_cannot_be_its_own_resource(self, business, finished_product):
        with pytest.raises(ValidationError):
            await svc.create_production_line(
                business.id, finished_product.id, 10, "Line", "Dana",
                resources=[{"resource_product_id": finished_product.id, "needed_quantity": 1, "unit_of_measure": "pcs"}],
            )


class TestLineLifecycle:
    async def test_start(self, started_line):
        assert started_line.status == LineStatus.IN_PROGRESS

    async def test_start_twice_is_invalid_state(self, started_line, business):
        with pytest.raises(InvalidStateError):
            await svc.start_production_line(started_line.id, business.id)

    async def test_start_unknown_line(self, business):
        with pytest.raises(NotFoundError):
            await svc.start_production_line(uuid4(), business.id)

    async def test_start_from_other_business_is_not_found(self, line, other_business):
        other, _, _ = other_business
        with pytest.raises(NotFoundError):
            await svc.start_production_line(line.id, other.id)
        assert (await ProductionLine.get(id=line.id)).status == LineStatus.PENDING

    async def test_complete_pending_line_rejected(self, line, business):
        with pytest.raises(InvalidStateError):
            await svc.complete_production_line(line.id, business.id, 90, OWNER_ID)

        stored = await ProductionLine.get(id=line.id)
        assert stored.final_quantity is None

    async def test_complete_credits_finished_product(self, started_line, business, finished_product):
        result = await svc.complete_production_line(started_line.id, business.id, 90, OWNER_ID)

        assert result.production_line.status == LineStatus.COMPLETED
        assert result.variance == -10
        assert result.variance_percentage == -10.0
        assert result.transaction.transaction_type == TransactionType.CREDIT
        assert result.transaction.amount == 90
        assert result.transaction.reference_id == started_line.id
        assert result.transaction.reason == svc.PRODUCTION_COMPLETED_REASON
        assert (await Product.get(id=finished_product.id)).quantity == 90

        stored = await ProductionLine.get(id=started_line.id)
        assert stored.final_quantity == 90
        assert stored.completed_at is not None

    async def test_complete_twice_rejected(self, started_line, business, finished_product):
        await svc.complete_production_line(started_line.id, business.id, 90, OWNER_ID)

        with pytest.raises(InvalidStateError):
            await svc.complete_production_line(started_line.id, business.id, 50, OWNER_ID)

        assert (await ProductionLine.get(id=started_line.id)).final_quantity == 90
        assert (await Product.get(id=finished_product.id)).quantity == 90

    async def test_complete_with_zero_output_skips_credit(self, started_line, business, finished_product):
        result = await svc.complete_production_line(started_line.id, business.id, 0, OWNER_ID)

        assert result.transaction is None
        assert result.variance == -100
        assert await InventoryTransaction.filter(product_id=finished_product.id).count() == 0

    async def test_failed_credit_rolls_back_completion(self, started_line, business, category):
        # A deleted category makes the ledger refuse the credit
        await Category.filter(id=category.id).update(is_active=False)

        with pytest.raises(InvalidStateError):
            await svc.complete_production_line(started_line.id, business.id, 90, OWNER_ID)

        stored = await ProductionLine.get(id=started_line.id)
        assert stored.status == LineStatus.IN_PROGRESS
        assert stored.final_quantity is None

    async def test_negative_final_quantity(self, started_line, business):
        with pytest.raises(ValidationError):
            await svc.complete_production_line(started_line.id, business.id, -1, OWNER_ID)


class TestUpdateAndDelete:
    async def test_update_descriptive_fields(self, line, business):
        updated = await svc.update_production_line(line.id, business.id, {"name": "Renamed", "description": "Rush"})

        stored = await ProductionLine.get(id=line.id)
        assert updated.name == stored.name == "Renamed"
        assert stored.description == "Rush"
        assert stored.manager == "Dana"

    async def test_update_rejects_status_field(self, line, business):
        with pytest.raises(ValidationError):
            await svc.update_production_line(line.id, business.id, {"status": "COMPLETED"})

    async def test_update_completed_line_rejected(self, started_line, business):
        await svc.complete_production_line(started_line.id, business.id, 100, OWNER_ID)

        with pytest.raises(InvalidStateError):
            await svc.update_production_line(started_line.id, business.id, {"name": "Too late"})

    async def test_delete_pending_line_removes_children(self, line, business, resource):
        await svc.create_request(line.id, business.id, resource.id, 1, 5, OWNER_ID)

        await svc.delete_production_line(line.id, business.id)

        assert not await ProductionLine.exists(id=line.id)
        assert await ProductionResource.filter(production_line_id=line.id).count() == 0
        assert await ProductionRequest.filter(production_line_id=line.id).count() == 0

    async def test_delete_started_line_rejected(self, started_line, business):
        with pytest.raises(InvalidStateError):
            await svc.delete_production_line(started_line.id, business.id)
        assert await ProductionLine.exists(id=started_line.id)


class TestResources:
    async def test_add_and_list(self, line, business, raw_material):
        added = await svc.add_resource(line.id, business.id, raw_material.id, 12, "kg", resource_name="Offcuts")

        resources = await svc.list_resources(line.id, business.id)
        assert [r.id for r in resources][-1] == added.id
        assert added.resource_name == "Offcuts"

    async def test_add_foreign_product_not_found(self, line, business, other_business):
        _, _, foreign_product = other_business
        with pytest.raises(NotFoundError):
            await svc.add_resource(line.id, business.id, foreign_product.id, 1, "pcs")

    async def test_update_resource(self, resource, business):
        updated = await svc.update_resource(resource.id, business.id, {"needed_quantity": 60, "notes": "extra"})

        stored = await ProductionResource.get(id=resource.id)
        assert updated.needed_quantity == stored.needed_quantity == 60
        assert stored.notes == "extra"

    async def test_update_resource_of_other_business(self, resource, other_business):
        other, _, _ = other_business
        with pytest.raises(NotFoundError):
            await svc.update_resource(resource.id, other.id, {"needed_quantity": 60})

    async def test_delete_resource_with_requests_conflicts(self, line, business, resource):
        request = await svc.create_request(line.id, business.id, resource.id, 1, 5, OWNER_ID)
        await svc.cancel_request(request.id, business.id)

        # Cancelled requests still reference the resource
        with pytest.raises(ConflictError):
            await svc.delete_resource(resource.id, business.id)
        assert await ProductionResource.exists(id=resource.id)

    async def test_delete_unused_resource(self, line, business, resource):
        await svc.delete_resource(resource.id, business.id)
        assert not await ProductionResource.exists(id=resource.id)


class TestCompletedLineIsFrozen:
    async def test_completed_line_rejects_new_resources_and_requests(self, started_line, business, resource, raw_material):
        await svc.complete_production_line(started_line.id, business.id, 100, OWNER_ID)
        resources_before = await ProductionResource.all().count()

        with pytest.raises(InvalidStateError):
            await svc.add_resource(started_line.id, business.id, raw_material.id, 5, "pcs")
        with pytest.raises(InvalidStateError):
            await svc.create_request(started_line.id, business.id, resource.id, 1, 5, OWNER_ID)
        with pytest.raises(InvalidStateError):
            await svc.update_resource(resource.id, business.id, {"needed_quantity": 1})
        with pytest.raises(InvalidStateError):
            await svc.delete_resource(resource.id, business.id)

        assert await ProductionResource.all().count() == resources_before
        assert await ProductionRequest.all().count() == 0


class TestListing:
    async def test_list_filters_and_paginates(self, business, raw_material, finished_product, line):
        for i in range(3):
            await svc.create_production_line(
                business.id, finished_product.id, 10 + i, f"Line {i}", "Dana",
                resources=[{"resource_product_id": raw_material.id, "needed_quantity": 1, "unit_of_measure": "pcs"}],
            )
        await svc.start_production_line(line.id, business.id)

        rows, total = await svc.list_production_lines(business.id, status=LineStatus.PENDING)
        assert total == 3

        rows, total = await svc.list_production_lines(
            business.id, page=1, limit=2, sort_by="planned_quantity", sort_order="asc"
        )
        assert total == 4
        assert [r.planned_quantity for r in rows] == [10, 11]

    async def test_list_rejects_unknown_sort_field(self, business):
        with pytest.raises(ValidationError):
            await svc.list_production_lines(business.id, sort_by="password")

    async def test_get_prefetches_children(self, line, business, resource):
        await svc.create_request(line.id, business.id, resource.id, 2, 5, OWNER_ID)

        fetched = await svc.get_production_line(line.id, business.id)

        assert len(list(fetched.resources)) == 1
        assert len(list(fetched.requests)) == 1

    async def test_get_from_other_business(self, line, other_business):
        other, _, _ = other_business
        with pytest.raises(NotFoundError):
            await svc.get_production_line(line.id, other.id)


def test_compute_variance():
    assert svc.compute_variance(100, 90) == (-10, -10.0)
    assert svc.compute_variance(3, 4) == (1, 33.33)
    assert svc.compute_variance(50, 50) == (0, 0.0)


async def test_concurrent_starts_have_one_winner(line, business):
    results = await asyncio.gather(
        svc.start_production_line(line.id, business.id),
        svc.start_production_line(line.id, business.id),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], InvalidStateError)
    assert (await ProductionLine.get(id=line.id)).status == LineStatus.IN_PROGRESS
