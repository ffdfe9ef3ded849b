"""initial registry schema

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None

_LIVE = sa.text("deleted = false")


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _entity_columns() -> list[sa.Column]:
    return [
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("concurrency_key", sa.LargeBinary(length=8), nullable=False),
    ]


def _history_columns() -> list[sa.Column]:
    return [
        sa.Column("organization_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("updated_by_uid", sa.Uuid(), nullable=True),
        sa.Column("updated_by_display_name", sa.String(length=200), nullable=True),
        sa.Column("updated_by_ip_address", sa.String(length=45), nullable=True),
        sa.Column("log_description", sa.String(length=200), nullable=False),
        sa.Column("log_action", sa.String(length=10), nullable=False),
        sa.Column("deleted", sa.Boolean(), nullable=True),
        sa.Column("old_deleted", sa.Boolean(), nullable=True),
        sa.Column("cascade_from", sa.String(length=64), nullable=True),
        sa.Column("cascade_log_id", sa.Uuid(), nullable=True, index=True),
    ]


def _mirrored(name: str, type_: sa.types.TypeEngine) -> list[sa.Column]:
    return [
        sa.Column(name, type_, nullable=True),
        sa.Column(f"old_{name}", type_, nullable=True),
    ]


def _live_name_index(name: str, table: str, *columns) -> None:
    op.create_index(
        name,
        table,
        [*columns, sa.text("lower(name)")],
        unique=True,
        sqlite_where=_LIVE,
        postgresql_where=_LIVE,
    )


def upgrade() -> None:
    op.create_table(
        "organizations",
        *_base_columns(),
        *_entity_columns(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("logo_image_storage_id", sa.Uuid(), nullable=True),
        sa.Column("logo_image_url", sa.String(length=255), nullable=True),
        sa.Column("check_in_enabled", sa.Boolean(), nullable=False),
        sa.Column("work_from_home_enabled", sa.Boolean(), nullable=False),
        sa.Column("disabled", sa.Boolean(), nullable=False),
    )
    _live_name_index("ux_organizations_name_active", "organizations")

    op.create_table(
        "organization_domains",
        *_base_columns(),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
        sa.Column("domain_name", sa.String(length=253), nullable=False),
        sa.UniqueConstraint("domain_name", name="uq_organization_domains_domain_name"),
    )

    op.create_table(
        "regions",
        *_base_columns(),
        *_entity_columns(),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
        sa.Column("name", sa.String(length=100), nullable=False),
    )
    _live_name_index("ux_regions_org_name_active", "regions", "organization_id")

    op.create_table(
        "buildings",
        *_base_columns(),
        *_entity_columns(),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
        sa.Column("region_id", sa.Uuid(), sa.ForeignKey("regions.id"), nullable=False, index=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("address", sa.String(length=500), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("timezone", sa.String(length=50), nullable=False),
        sa.Column("facilities_management_email", sa.String(length=254), nullable=True),
        sa.Column("feature_image_storage_id", sa.Uuid(), nullable=True),
        sa.Column("feature_image_url", sa.String(length=255), nullable=True),
        sa.Column("map_image_storage_id", sa.Uuid(), nullable=True),
        sa.Column("map_image_url", sa.String(length=255), nullable=True),
        sa.Column("check_in_enabled", sa.Boolean(), nullable=False),
    )
    _live_name_index("ux_buildings_org_name_active", "buildings", "organization_id")

    op.create_table(
        "functions",
        *_base_columns(),
        *_entity_columns(),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
        sa.Column("building_id", sa.Uuid(), sa.ForeignKey("buildings.id"), nullable=False, index=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("html_color", sa.String(length=7), nullable=False),
    )
    _live_name_index("ux_functions_building_name_active", "functions", "organization_id", "building_id")

    op.create_table(
        "function_adjacencies",
        *_base_columns(),
        sa.Column("organization_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("function_id", sa.Uuid(), sa.ForeignKey("functions.id"), nullable=False, index=True),
        sa.Column("adjacent_function_id", sa.Uuid(), sa.ForeignKey("functions.id"), nullable=False, index=True),
        sa.UniqueConstraint("function_id", "adjacent_function_id", name="uq_function_adjacencies_pair"),
    )

    # Histories
    op.create_table(
        "region_histories",
        *_base_columns(),
        *_history_columns(),
        sa.Column("region_id", sa.Uuid(), sa.ForeignKey("regions.id"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
    )
    op.create_index("ix_region_histories_region_start", "region_histories", ["region_id", "start_at"])
    op.create_table(
        "building_histories",
        *_base_columns(),
        *_history_columns(),
        sa.Column("building_id", sa.Uuid(), sa.ForeignKey("buildings.id"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("region_id", sa.Uuid(), nullable=False),
    )
    op.create_index("ix_building_histories_building_start", "building_histories", ["building_id", "start_at"])
    op.create_table(
        "function_histories",
        *_base_columns(),
        *_history_columns(),
        sa.Column("function_id", sa.Uuid(), sa.ForeignKey("functions.id"), nullable=False),
        sa.Column("building_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("html_color", sa.String(length=7), nullable=False),
    )
    op.create_index("ix_function_histories_function_start", "function_histories", ["function_id", "start_at"])

    # Audit logs
    op.create_table(
        "organizations_log",
        *_base_columns(),
        *_audit_columns(),
        sa.Column("organization_id", sa.Uuid(), nullable=False, index=True),
        *_mirrored("name", sa.String(length=100)),
        *_mirrored("logo_image_storage_id", sa.Uuid()),
        *_mirrored("logo_image_url", sa.String(length=255)),
        *_mirrored("check_in_enabled", sa.Boolean()),
        *_mirrored("work_from_home_enabled", sa.Boolean()),
        *_mirrored("disabled", sa.Boolean()),
    )
    op.create_table(
        "organization_domains_log",
        *_base_columns(),
        *_audit_columns(),
        sa.Column("organization_domain_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("organization_id", sa.Uuid(), nullable=False, index=True),
        *_mirrored("domain_name", sa.String(length=253)),
    )
    op.create_table(
        "regions_log",
        *_base_columns(),
        *_audit_columns(),
        sa.Column("region_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        *_mirrored("name", sa.String(length=100)),
    )
    op.create_table(
        "buildings_log",
        *_base_columns(),
        *_audit_columns(),
        sa.Column("building_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        *_mirrored("name", sa.String(length=100)),
        *_mirrored("region_id", sa.Uuid()),
        *_mirrored("address", sa.String(length=500)),
        *_mirrored("latitude", sa.Float()),
        *_mirrored("longitude", sa.Float()),
        *_mirrored("timezone", sa.String(length=50)),
        *_mirrored("facilities_management_email", sa.String(length=254)),
        *_mirrored("feature_image_storage_id", sa.Uuid()),
        *_mirrored("feature_image_url", sa.String(length=255)),
        *_mirrored("map_image_storage_id", sa.Uuid()),
        *_mirrored("map_image_url", sa.String(length=255)),
        *_mirrored("check_in_enabled", sa.Boolean()),
    )
    op.create_table(
        "functions_log",
        *_base_columns(),
        *_audit_columns(),
        sa.Column("function_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        *_mirrored("building_id", sa.Uuid()),
        *_mirrored("name", sa.String(length=100)),
        *_mirrored("html_color", sa.String(length=7)),
    )
    op.create_table(
        "function_adjacencies_log",
        *_base_columns(),
        *_audit_columns(),
        sa.Column("function_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("adjacent_function_id", sa.Uuid(), nullable=False),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
    )

    # Images
    op.create_table(
        "stored_images",
        *_base_columns(),
        sa.Column("organization_id", sa.Uuid(), nullable=True, index=True),
        sa.Column(
            "related_object_type",
            sa.Enum("ORGANIZATION_LOGO", "BUILDING_FEATURE", "BUILDING_MAP", name="imagerelatedobjecttype"),
            nullable=False,
        ),
        sa.Column("related_object_id", sa.Uuid(), nullable=False),
        sa.Column("relative_path", sa.String(length=255), nullable=False),
        sa.Column("public_url", sa.String(length=255), nullable=False),
        sa.Column("mime_type", sa.String(length=50), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_stored_images_deleted_created", "stored_images", ["deleted", "created_at"])
    op.create_table(
        "stored_images_log",
        *_base_columns(),
        *_audit_columns(),
        sa.Column("stored_image_id", sa.Uuid(), nullable=False, index=True),
        sa.Column("organization_id", sa.Uuid(), nullable=True),
        sa.Column("related_object_type", sa.String(length=32), nullable=False),
        sa.Column("related_object_id", sa.Uuid(), nullable=False),
        sa.Column("relative_path", sa.String(length=255), nullable=False),
    )

    # Read-only dependents of functions
    op.create_table(
        "floors",
        *_base_columns(),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
        sa.Column("building_id", sa.Uuid(), sa.ForeignKey("buildings.id"), nullable=False, index=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_table(
        "desks",
        *_base_columns(),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
        sa.Column("floor_id", sa.Uuid(), sa.ForeignKey("floors.id"), nullable=False, index=True),
        sa.Column("function_id", sa.Uuid(), sa.ForeignKey("functions.id"), nullable=True, index=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_table(
        "users",
        *_base_columns(),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=151), nullable=False),
        sa.Column("avatar_thumbnail_url", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "user_building_assignments",
        *_base_columns(),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("building_id", sa.Uuid(), sa.ForeignKey("buildings.id"), nullable=False, index=True),
        sa.Column("function_id", sa.Uuid(), sa.ForeignKey("functions.id"), nullable=True, index=True),
        sa.UniqueConstraint("user_id", "building_id", name="uq_user_building_assignment"),
    )


def downgrade() -> None:
    for table in (
        "user_building_assignments",
        "users",
        "desks",
        "floors",
        "stored_images_log",
        "stored_images",
        "function_adjacencies_log",
        "functions_log",
        "buildings_log",
        "regions_log",
        "organization_domains_log",
        "organizations_log",
        "function_histories",
        "building_histories",
        "region_histories",
        "function_adjacencies",
        "functions",
        "buildings",
        "regions",
        "organization_domains",
        "organizations",
    ):
        op.drop_table(table)
    sa.Enum(name="imagerelatedobjecttype").drop(op.get_bind(), checkfirst=True)
