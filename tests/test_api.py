"""Tests for the HTTP endpoints."""

from unittest.mock import MagicMock, patch

from spectable.models.enums import AssignmentType
from spectable.models.template_lookup import TemplateLookup

DOMAIN = "test-shop.myshopify.com"


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestStorefront:
    def test_resolves_product_template(self, client, shop, make_template, add_catalog, coordinator):
        add_catalog(products=["gid://shopify/Product/111"])
        template = make_template("Shoes", AssignmentType.PRODUCT, ["111"])
        coordinator.schedule_rebuild(shop.id)

        response = client.get(
            "/api/v1/storefront/template",
            params={"shop": DOMAIN, "product_id": "gid://shopify/Product/111"},
        )

        assert response.status_code == 200
        assert response.json() == {"template_id": template.id}

    def test_unknown_shop_resolves_to_null(self, client):
        response = client.get(
            "/api/v1/storefront/template",
            params={"shop": "missing.myshopify.com", "product_id": "1"},
        )
        assert response.status_code == 200
        assert response.json() == {"template_id": None}

    def test_resolution_failure_resolves_to_null(self, client, shop):
        with patch(
            "spectable.services.template_resolution.TemplateResolver.resolve",
            side_effect=RuntimeError("database unavailable"),
        ):
            response = client.get(
                "/api/v1/storefront/template", params={"shop": DOMAIN, "product_id": "1"}
            )

        assert response.status_code == 200
        assert response.json() == {"template_id": None}

    def test_shop_is_required(self, client):
        response = client.get("/api/v1/storefront/template")
        assert response.status_code == 422


class TestTemplateEndpoints:
    def test_save_assignment(self, client, shop, make_template):
        template = make_template("Global")

        response = client.put(
            f"/api/v1/templates/{template.id}/assignment",
            json={"assignment_type": "DEFAULT"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["targets"] == 0
        assert data["rebuilt"] == 1

    def test_save_assignment_without_targets(self, client, shop, make_template):
        template = make_template("Shoes")

        response = client.put(
            f"/api/v1/templates/{template.id}/assignment",
            json={"assignment_type": "PRODUCT", "target_ids": []},
        )

        assert response.status_code == 400

    def test_conflicting_assignment(self, client, shop, make_template):
        make_template("Global", AssignmentType.DEFAULT)
        other = make_template("Other")

        response = client.put(
            f"/api/v1/templates/{other.id}/assignment",
            json={"assignment_type": "DEFAULT"},
        )

        assert response.status_code == 409

    def test_assignment_for_missing_template(self, client):
        response = client.put(
            "/api/v1/templates/999999/assignment", json={"assignment_type": "DEFAULT"}
        )
        assert response.status_code == 404

    def test_deactivate_template(self, client, shop, make_template):
        template = make_template("Global", AssignmentType.DEFAULT)

        response = client.post(
            f"/api/v1/templates/{template.id}/active", json={"is_active": False}
        )

        assert response.status_code == 200
        assert response.json()["is_active"] is False

    def test_delete_template(self, client, shop, make_template):
        template = make_template("Global", AssignmentType.DEFAULT)

        response = client.delete(f"/api/v1/templates/{template.id}")

        assert response.status_code == 204

    def test_busy_shop_still_saves_assignment(self, client, shop, make_template, coordinator):
        template = make_template("Global")
        coordinator.lock_timeout = 0.05
        assert coordinator.lock.acquire(str(shop.id), blocking=False)
        try:
            with patch(
                "spectable.tasks.template_lookup.rebuild_template_lookup_task.delay"
            ) as mock_delay:
                response = client.put(
                    f"/api/v1/templates/{template.id}/assignment",
                    json={"assignment_type": "DEFAULT"},
                )
        finally:
            coordinator.lock.release(str(shop.id))

        assert response.status_code == 200
        assert response.json()["rebuilt"] is None
        mock_delay.assert_called_once_with(shop.id)


class TestLookupEndpoints:
    def test_rebuild_and_list(self, client, shop, make_template, add_catalog):
        add_catalog(collections=["5"])
        bags = make_template("Bags", AssignmentType.COLLECTION, ["5"])
        fallback = make_template("Fallback", AssignmentType.DEFAULT)

        response = client.post(f"/api/v1/shops/{shop.id}/template-lookup/rebuild")
        assert response.status_code == 200
        assert response.json() == {"shop_id": shop.id, "rebuilt": 2}

        response = client.get(f"/api/v1/shops/{shop.id}/template-lookup")
        assert response.status_code == 200
        entries = response.json()
        assert [(e["template_id"], e["priority"]) for e in entries] == [
            (bags.id, 2),
            (fallback.id, 3),
        ]
        assert entries[0]["collection_id"] == "5"
        assert entries[1]["is_default"] is True

    def test_rebuild_unknown_shop(self, client):
        response = client.post("/api/v1/shops/999999/template-lookup/rebuild")
        assert response.status_code == 404

    def test_rebuild_timeout_is_conflict(self, client, shop, coordinator):
        coordinator.lock_timeout = 0.05
        assert coordinator.lock.acquire(str(shop.id), blocking=False)
        try:
            response = client.post(f"/api/v1/shops/{shop.id}/template-lookup/rebuild")
        finally:
            coordinator.lock.release(str(shop.id))

        assert response.status_code == 409

    def test_rebuild_all(self, client, shop, make_template):
        make_template("Global", AssignmentType.DEFAULT)

        response = client.post("/api/v1/template-lookup/rebuild-all")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["succeeded"] == 1
        assert data["results"][0]["shop_domain"] == DOMAIN
        assert data["results"][0]["rebuilt"] == 1

    def test_rebuild_all_async(self, client):
        with patch("spectable.api.lookup.rebuild_all_template_lookups_task") as mock_task:
            mock_task.delay.return_value = MagicMock(id="task-123")
            response = client.post("/api/v1/template-lookup/rebuild-all/async")

        assert response.status_code == 202
        assert response.json() == {"task_id": "task-123"}
        mock_task.delay.assert_called_once()


class TestWebhooks:
    def test_product_delete(self, client, db, shop, make_template, add_catalog, coordinator):
        add_catalog(products=["gid://shopify/Product/7"])
        make_template("Shoes", AssignmentType.PRODUCT, ["7"])
        coordinator.schedule_rebuild(shop.id)

        response = client.post(
            "/api/v1/webhooks/products/delete",
            json={"id": 7},
            headers={"X-Shopify-Shop-Domain": DOMAIN},
        )

        assert response.status_code == 200
        db.expire_all()
        assert db.query(TemplateLookup).count() == 0

    def test_collection_delete_with_gid(self, client, db, shop, make_template, add_catalog):
        add_catalog(collections=["8"])
        make_template("Bags", AssignmentType.COLLECTION, ["8"])

        response = client.post(
            "/api/v1/webhooks/collections/delete",
            json={"id": 8, "admin_graphql_api_id": "gid://shopify/Collection/8"},
            headers={"X-Shopify-Shop-Domain": DOMAIN},
        )

        assert response.status_code == 200
        db.expire_all()
        assert db.query(TemplateLookup).count() == 0

    def test_errors_still_answer_200(self, client, shop):
        with patch(
            "spectable.services.catalog.CatalogService.product_deleted",
            side_effect=RuntimeError("boom"),
        ):
            response = client.post(
                "/api/v1/webhooks/products/delete",
                json={"id": 1},
                headers={"X-Shopify-Shop-Domain": DOMAIN},
            )

        assert response.status_code == 200

    def test_unknown_shop(self, client):
        response = client.post(
            "/api/v1/webhooks/products/delete",
            json={"id": 1},
            headers={"X-Shopify-Shop-Domain": "missing.myshopify.com"},
        )
        assert response.status_code == 200
