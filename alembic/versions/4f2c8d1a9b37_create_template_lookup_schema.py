"""create template lookup schema

Revision ID: 4f2c8d1a9b37
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4f2c8d1a9b37"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ASSIGNMENT_TYPE = sa.Enum("PRODUCT", "COLLECTION", "DEFAULT", name="assignmenttype")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "shops",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("shop_domain", sa.String(255), nullable=False, unique=True, index=True),
        *_timestamps(),
    )

    op.create_table(
        "specification_templates",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("shop_id", sa.Integer(), sa.ForeignKey("shops.id"), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true(), index=True),
        *_timestamps(),
    )

    op.create_table(
        "template_assignments",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column(
            "template_id",
            sa.Integer(),
            sa.ForeignKey("specification_templates.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("shop_id", sa.Integer(), sa.ForeignKey("shops.id"), nullable=False, index=True),
        sa.Column("assignment_type", ASSIGNMENT_TYPE, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "template_assignment_targets",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column(
            "assignment_id",
            sa.Integer(),
            sa.ForeignKey("template_assignments.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("target_shopify_id", sa.String(255), nullable=False, index=True),
        # Enum type already created with template_assignments
        sa.Column(
            "target_type",
            sa.Enum(
                "PRODUCT", "COLLECTION", "DEFAULT", name="assignmenttype", create_type=False
            ),
            nullable=False,
        ),
        sa.Column("is_excluded", sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    # Catalog mirror
    for table, constraint in (
        ("products", "uq_product_shop_shopify_id"),
        ("collections", "uq_collection_shop_shopify_id"),
    ):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True, index=True),
            sa.Column(
                "shop_id", sa.Integer(), sa.ForeignKey("shops.id"), nullable=False, index=True
            ),
            sa.Column("shopify_id", sa.String(255), nullable=False, index=True),
            sa.Column("title", sa.String(500), nullable=True),
            *_timestamps(),
            sa.UniqueConstraint("shop_id", "shopify_id", name=constraint),
        )

    op.create_table(
        "template_lookups",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("shop_id", sa.Integer(), sa.ForeignKey("shops.id"), nullable=False, index=True),
        sa.Column("product_id", sa.String(64), nullable=True),
        sa.Column("collection_id", sa.String(64), nullable=True),
        sa.Column(
            "template_id",
            sa.Integer(),
            sa.ForeignKey("specification_templates.id"),
            nullable=False,
        ),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    # At most one row per resolution key
    op.create_index(
        "uq_template_lookup_product",
        "template_lookups",
        ["shop_id", "product_id"],
        unique=True,
        postgresql_where=sa.text("product_id IS NOT NULL"),
    )
    op.create_index(
        "uq_template_lookup_collection",
        "template_lookups",
        ["shop_id", "collection_id"],
        unique=True,
        postgresql_where=sa.text("collection_id IS NOT NULL"),
    )
    op.create_index(
        "uq_template_lookup_default",
        "template_lookups",
        ["shop_id"],
        unique=True,
        postgresql_where=sa.text("is_default"),
    )


def downgrade() -> None:
    op.drop_index("uq_template_lookup_default", table_name="template_lookups")
    op.drop_index("uq_template_lookup_collection", table_name="template_lookups")
    op.drop_index("uq_template_lookup_product", table_name="template_lookups")
    op.drop_table("template_lookups")
    op.drop_table("collections")
    op.drop_table("products")
    op.drop_table("template_assignment_targets")
    op.drop_table("template_assignments")
    op.drop_table("specification_templates")
    op.drop_table("shops")
    ASSIGNMENT_TYPE.drop(op.get_bind(), checkfirst=True)
