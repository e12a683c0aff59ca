"""Tests for template assignment mutations."""

from unittest.mock import patch

import pytest
from fastapi import HTTPException

from spectable.models.assignment import TemplateAssignment, TemplateAssignmentTarget
from spectable.models.enums import AssignmentType
from spectable.models.template import SpecificationTemplate
from spectable.models.template_lookup import TemplateLookup
from spectable.services.assignments import AssignmentService
from spectable.services.template_resolution import TemplateResolver


@pytest.fixture
def service(db, coordinator):
    return AssignmentService(db, coordinator)


def _resolve(db, shop_id, **kwargs):
    db.expire_all()
    return TemplateResolver(db, self_heal=False).resolve(shop_id, **kwargs)


def test_assign_products_rebuilds_lookup(db, shop, service, make_template, add_catalog):
    add_catalog(products=["gid://shopify/Product/1", "gid://shopify/Product/2"])
    template = make_template("Shoes")

    result = service.save_template_assignment(
        template.id, AssignmentType.PRODUCT, ["gid://shopify/Product/1", "2", "1"]
    )

    assert result["targets"] == 2
    assert result["rebuilt"] == 2
    targets = db.query(TemplateAssignmentTarget).order_by(TemplateAssignmentTarget.id).all()
    assert [t.target_shopify_id for t in targets] == ["1", "2"]
    assert _resolve(db, shop.id, product_id="2") == template.id


def test_reassign_replaces_previous_assignment(db, shop, service, make_template, add_catalog):
    add_catalog(products=["1"], collections=["9"])
    template = make_template("Shoes", AssignmentType.PRODUCT, ["1"])

    service.save_template_assignment(template.id, AssignmentType.COLLECTION, ["9"])

    assignments = db.query(TemplateAssignment).all()
    assert len(assignments) == 1
    assert assignments[0].assignment_type == AssignmentType.COLLECTION
    assert db.query(TemplateAssignmentTarget).count() == 1
    assert _resolve(db, shop.id, product_id="1") is None
    assert _resolve(db, shop.id, collection_id="9") == template.id


def test_clear_assignment(db, shop, service, make_template):
    template = make_template("Global", AssignmentType.DEFAULT)

    result = service.save_template_assignment(template.id, None)

    assert result == {"assignment_id": None, "targets": 0, "rebuilt": 0}
    assert db.query(TemplateAssignment).count() == 0


def test_second_default_is_rejected(db, shop, service, make_template):
    make_template("Global", AssignmentType.DEFAULT)
    other = make_template("Other")

    with pytest.raises(HTTPException) as exc_info:
        service.save_template_assignment(other.id, AssignmentType.DEFAULT)

    assert exc_info.value.status_code == 409
    assert "already assigned globally" in exc_info.value.detail


def test_target_owned_by_another_template_is_rejected(db, shop, service, make_template):
    make_template("Shoes", AssignmentType.PRODUCT, ["gid://shopify/Product/5"])
    other = make_template("Boots")

    with pytest.raises(HTTPException) as exc_info:
        service.save_template_assignment(other.id, AssignmentType.PRODUCT, ["5", "6"])

    assert exc_info.value.status_code == 409
    assert "5" in exc_info.value.detail
    assert db.query(TemplateAssignment).count() == 1


def test_same_target_different_type_is_allowed(db, shop, service, make_template, add_catalog):
    """A product id and a collection id never collide."""
    add_catalog(products=["5"], collections=["5"])
    make_template("Shoes", AssignmentType.PRODUCT, ["5"])
    other = make_template("Bags")

    result = service.save_template_assignment(other.id, AssignmentType.COLLECTION, ["5"])

    assert result["rebuilt"] == 2


def test_targets_required_for_product_assignment(service, make_template):
    template = make_template("Shoes")

    with pytest.raises(ValueError, match="requires at least one target"):
        service.save_template_assignment(template.id, AssignmentType.PRODUCT, [])


def test_unknown_template(service):
    with pytest.raises(HTTPException) as exc_info:
        service.save_template_assignment(424242, AssignmentType.DEFAULT)
    assert exc_info.value.status_code == 404


def test_deactivation_removes_assignments(db, shop, service, make_template, add_catalog):
    add_catalog(products=["1"])
    template = make_template("Shoes", AssignmentType.PRODUCT, ["1"])
    service.coordinator.schedule_rebuild(shop.id)

    updated = service.set_template_active(template.id, False)

    assert updated.is_active is False
    assert db.query(TemplateAssignment).count() == 0
    assert db.query(TemplateAssignmentTarget).count() == 0
    assert _resolve(db, shop.id, product_id="1") is None


def test_activation_keeps_assignments(db, shop, service, make_template):
    template = make_template("Global", AssignmentType.DEFAULT, is_active=False)

    service.set_template_active(template.id, True)

    assert _resolve(db, shop.id, product_id="1") == template.id


def test_delete_template(db, shop, service, make_template):
    template = make_template("Global", AssignmentType.DEFAULT)
    service.coordinator.schedule_rebuild(shop.id)
    template_id = template.id

    service.delete_template(template_id)

    db.expire_all()
    assert db.query(SpecificationTemplate).filter_by(id=template_id).first() is None
    assert db.query(TemplateAssignment).count() == 0
    assert db.query(TemplateLookup).count() == 0


def test_busy_shop_queues_rebuild_after_save(db, shop, service, make_template, coordinator):
    """The assignment is committed even when the shop stays locked."""
    template = make_template("Global")
    coordinator.lock_timeout = 0.05
    assert coordinator.lock.acquire(str(shop.id), blocking=False)
    try:
        with patch(
            "spectable.tasks.template_lookup.rebuild_template_lookup_task.delay"
        ) as mock_delay:
            result = service.save_template_assignment(template.id, AssignmentType.DEFAULT)
    finally:
        coordinator.lock.release(str(shop.id))

    assert result["rebuilt"] is None
    mock_delay.assert_called_once_with(shop.id)
    db.expire_all()
    assert db.query(TemplateAssignment).filter_by(template_id=template.id).count() == 1
