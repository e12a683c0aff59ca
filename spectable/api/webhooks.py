"""Webhook endpoints for catalog deletions.

Transport concerns (HMAC validation, delivery retries) are handled upstream.
Errors are logged and still answered with 200 so the platform does not
re-deliver.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Response

from spectable.api.dependencies import get_catalog_service
from spectable.schemas.webhook import ResourceDeletedPayload
from spectable.services.catalog import CatalogService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/products/delete")
def handle_product_deleted(
    payload: ResourceDeletedPayload,
    service: Annotated[CatalogService, Depends(get_catalog_service)],
    x_shopify_shop_domain: Annotated[str, Header()],
) -> Response:
    """Handle products/delete."""
    logger.info(f"Received products/delete for {x_shopify_shop_domain}")
    try:
        if payload.resource_id is not None:
            service.product_deleted(x_shopify_shop_domain, payload.resource_id)
    except Exception as e:
        logger.error(f"Error processing products/delete webhook: {e}", exc_info=True)
    return Response(status_code=200)


@router.post("/collections/delete")
def handle_collection_deleted(
    payload: ResourceDeletedPayload,
    service: Annotated[CatalogService, Depends(get_catalog_service)],
    x_shopify_shop_domain: Annotated[str, Header()],
) -> Response:
    """Handle collections/delete."""
    logger.info(f"Received collections/delete for {x_shopify_shop_domain}")
    try:
        if payload.resource_id is not None:
            service.collection_deleted(x_shopify_shop_domain, payload.resource_id)
    except Exception as e:
        logger.error(f"Error processing collections/delete webhook: {e}", exc_info=True)
    return Response(status_code=200)
