import pytest
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from app.core.exceptions import NotFoundError
from app.models.production import ProductionLine, ProductionResource
from app.services import analytics_service
from app.services import production_service as svc
from app.services.catalog_service import create_product
from conftest import OWNER_ID


async def _line(business, raw_material, finished_product, planned, name="Line"):
    return await svc.create_production_line(
        business.id, finished_product.id, planned, name, "Dana",
        resources=[{"resource_product_id": raw_material.id, "needed_quantity": 50, "unit_of_measure": "pcs"}],
    )


async def _completed(business, raw_material, finished_product, planned, final, name="Line"):
    line = await _line(business, raw_material, finished_product, planned, name)
    await svc.start_production_line(line.id, business.id)
    await svc.complete_production_line(line.id, business.id, final, OWNER_ID)
    return line


class TestSummary:
    async def test_counts_and_totals(self, business, raw_material, finished_product):
        await _completed(business, raw_material, finished_product, 100, 90)
        await _completed(business, raw_material, finished_product, 50, 60)
        started = await _line(business, raw_material, finished_product, 20)
        await svc.start_production_line(started.id, business.id)
        await _line(business, raw_material, finished_product, 10)

        summary = await analytics_service.production_summary(business.id)

        assert summary.total_productions == 4
        assert summary.completed == 2
        assert summary.in_progress == 1
        assert summary.pending == 1
        assert summary.cancelled == 0
        assert summary.total_items_planned == 180
        assert summary.total_items_produced == 150
        assert summary.average_variance == 0.0

    async def test_empty_business(self, business):
        summary = await analytics_service.production_summary(business.id)
        assert summary.total_productions == 0
        assert summary.average_variance == 0.0

    async def test_date_window(self, business, raw_material, finished_product):
        await _line(business, raw_material, finished_product, 10)
        tomorrow = datetime.now(timezone.utc) + timedelta(days=1)

        summary = await analytics_service.production_summary(business.id, start_date=tomorrow)
        assert summary.total_productions == 0


class TestEfficiency:
    async def test_metrics_per_completed_line(self, business, raw_material, finished_product):
        line = await _completed(business, raw_material, finished_product, 100, 90, name="Tables")
        await _line(business, raw_material, finished_product, 10)

        metrics = await analytics_service.production_efficiency(business.id)

        assert len(metrics) == 1
        assert metrics[0].id == line.id
        assert metrics[0].efficiency == 90.0
        assert metrics[0].variance == -10
        assert metrics[0].variance_percentage == -10.0
        assert metrics[0].duration_days in (0, 1)

    def test_duration_rounds_up_to_whole_days(self):
        start = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
        assert analytics_service.duration_days(start, start + timedelta(hours=30)) == 2
        assert analytics_service.duration_days(start, start + timedelta(days=3)) == 3
        assert analytics_service.duration_days(start, None) is None

    def test_duration_mixes_naive_and_aware(self):
        start = datetime(2024, 1, 1, 0, 0)
        end = datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc)
        assert analytics_service.duration_days(start, end) == 2


class TestResourceVariance:
    async def test_over_under_exact(self, business, raw_material, finished_product, category):
        glue = await create_product(category.id, business.id, "Glue", OWNER_ID, initial_qty=100)
        screws = await create_product(category.id, business.id, "Screws", OWNER_ID, initial_qty=100)

        line = await svc.create_production_line(
            business.id, finished_product.id, 10, "Tables", "Dana",
            resources=[
                {"resource_product_id": raw_material.id, "needed_quantity": 50, "unit_of_measure": "pcs"},
                {"resource_product_id": glue.id, "needed_quantity": 10, "unit_of_measure": "l"},
                {"resource_product_id": screws.id, "needed_quantity": 40, "unit_of_measure": "pcs"},
            ],
        )
        await svc.start_production_line(line.id, business.id)
        by_product = {
            r.resource_product_id: r
            for r in await ProductionResource.filter(production_line_id=line.id)
        }

        async def consume(product, qty, fulfill=True):
            request = await svc.create_request(line.id, business.id, by_product[product.id].id, 1, qty, OWNER_ID)
            if fulfill:
                await svc.fulfill_request(request.id, business.id, OWNER_ID)

        await consume(raw_material, 30)
        await consume(raw_material, 30)
        await consume(glue, 10)
        await consume(screws, 25)
        await consume(screws, 5, fulfill=False)

        report = await analytics_service.resource_variance_report(line.id, business.id)

        assert report.production_line.id == line.id
        rows = {v.resource_product_id: v for v in report.variances}
        assert (rows[raw_material.id].fulfilled_quantity, rows[raw_material.id].consumption) == (60, "OVER")
        assert rows[raw_material.id].variance_percentage == 20.0
        assert (rows[glue.id].variance, rows[glue.id].consumption) == (0, "EXACT")
        assert (rows[screws.id].fulfilled_quantity, rows[screws.id].consumption) == (25, "UNDER")
        assert rows[screws.id].pending_quantity == 5

    async def test_other_business_line_not_found(self, business, raw_material, finished_product, other_business):
        line = await _line(business, raw_material, finished_product, 10)
        other, _, _ = other_business

        with pytest.raises(NotFoundError):
            await analytics_service.resource_variance_report(line.id, other.id)

    async def test_unknown_line(self, business):
        with pytest.raises(NotFoundError):
            await analytics_service.resource_variance_report(uuid4(), business.id)
        assert await ProductionLine.filter(business_id=business.id).count() == 0
