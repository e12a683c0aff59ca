"""Webhook payload schemas."""

from pydantic import BaseModel, ConfigDict


class ResourceDeletedPayload(BaseModel):
    """products/delete and collections/delete payload (only the ids are used)."""

    model_config = ConfigDict(extra="ignore")

    id: int | str | None = None
    admin_graphql_api_id: str | None = None

    @property
    def resource_id(self) -> int | str | None:
        return self.admin_graphql_api_id or self.id
