"""Storefront endpoint used by the specification table block on product pages."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from spectable.api.dependencies import get_template_resolver
from spectable.schemas.lookup import TemplateLookupResponse
from spectable.services.template_resolution import TemplateResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/storefront", tags=["storefront"])


@router.get("/template", response_model=TemplateLookupResponse)
def get_template_for_target(
    resolver: Annotated[TemplateResolver, Depends(get_template_resolver)],
    shop: str = Query(..., min_length=1),
    product_id: str | None = Query(None),
    collection_id: str | None = Query(None),
):
    """Resolve the template for a product page.

    The table is optional on the page, so failures come back as no template.
    """
    try:
        template_id = resolver.resolve_for_domain(shop, product_id, collection_id)
    except Exception as e:
        logger.error(f"Template resolution failed for {shop}: {e}", exc_info=True)
        template_id = None

    return TemplateLookupResponse(template_id=template_id)
