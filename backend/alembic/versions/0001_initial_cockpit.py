"""Initial cockpit schema: raw_items, processed_items, sources, source_seen."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


# Revision identifiers, used by Alembic.
revision = "0001_initial_cockpit"
down_revision = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
    return sa.Column("id", sa.BigInteger(), sa.Identity(always=False), primary_key=True)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))


def upgrade() -> None:
    # -------------------------------------------------------------------------
    # raw_items: content-addressed candidate urls and their processing state
    # -------------------------------------------------------------------------
    op.create_table(
        "raw_items",
        _id(),
        _created_at(),
        sa.Column("vertical", sa.String(length=32), nullable=False, server_default="ree"),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("url_hash", sa.String(length=64), nullable=False),
        sa.Column("source", sa.Text(), nullable=False, server_default="discord"),
        sa.Column("source_channel_id", sa.Text(), nullable=True),
        sa.Column("source_message_id", sa.Text(), nullable=True),
        sa.Column("author_id", sa.Text(), nullable=True),
        sa.Column("author_username", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="new"),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.CheckConstraint("status in ('new', 'processing', 'processed', 'error')", name="ck_raw_items_status"),
        sa.CheckConstraint("vertical in ('ree', 'coal', 'policy')", name="ck_raw_items_vertical"),
    )
    op.create_index("ux_raw_items_url_hash", "raw_items", ["url_hash"], unique=True)
    op.create_index(
        "ix_raw_items_new_created_at",
        "raw_items",
        ["created_at", "id"],
        postgresql_where=sa.text("status = 'new'"),
    )

    # -------------------------------------------------------------------------
    # processed_items: at most one enrichment result per raw item
    # -------------------------------------------------------------------------
    op.create_table(
        "processed_items",
        _id(),
        _created_at(),
        sa.Column(
            "raw_item_id",
            sa.BigInteger(),
            sa.ForeignKey("raw_items.id", name="fk_processed_items_raw_item_id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("vertical", sa.String(length=32), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("summary_1", sa.Text(), nullable=False),
        sa.Column("bullets", postgresql.JSONB(), nullable=False),
        sa.Column("why_it_matters", sa.Text(), nullable=True),
        sa.Column("tags", postgresql.JSONB(), nullable=False, server_default=sa.text("'[\"Other\"]'::jsonb")),
        sa.Column("entities", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("relevance_score", sa.SmallInteger(), nullable=False, server_default="0"),
        sa.Column("visibility", sa.String(length=16), nullable=False, server_default="public"),
        sa.Column("model", sa.Text(), nullable=False),
        sa.Column("posted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("relevance_score between 0 and 100", name="ck_processed_items_relevance_score"),
        sa.CheckConstraint("visibility in ('public', 'pro', 'internal')", name="ck_processed_items_visibility"),
        sa.CheckConstraint("jsonb_array_length(bullets) = 5", name="ck_processed_items_bullets_len"),
    )
    op.create_index("ux_processed_items_raw_item_id", "processed_items", ["raw_item_id"], unique=True)
    op.create_index(
        "ix_processed_items_unposted",
        "processed_items",
        ["vertical", "created_at"],
        postgresql_where=sa.text("posted_at IS NULL"),
    )

    # -------------------------------------------------------------------------
    # sources + source_seen: crawler configuration, cursors and seen-keys
    # -------------------------------------------------------------------------
    op.create_table(
        "sources",
        _id(),
        _created_at(),
        sa.Column("type", sa.String(length=32), nullable=False, server_default="rss"),
        sa.Column("vertical", sa.String(length=32), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("poll_interval_min", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("etag", sa.Text(), nullable=True),
        sa.Column("last_modified", sa.Text(), nullable=True),
        sa.Column("last_polled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.UniqueConstraint("type", "url", name="uq_sources_type_url"),
    )
    op.create_index("ix_sources_due", "sources", ["type", "enabled", "last_polled_at"])

    op.create_table(
        "source_seen",
        sa.Column(
            "source_id",
            sa.BigInteger(),
            sa.ForeignKey("sources.id", name="fk_source_seen_source_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("item_key", sa.Text(), primary_key=True),
        _created_at(),
    )


def downgrade() -> None:
    op.drop_table("source_seen")
    op.drop_index("ix_sources_due", table_name="sources")
    op.drop_table("sources")
    op.drop_index("ix_processed_items_unposted", table_name="processed_items")
    op.drop_index("ux_processed_items_raw_item_id", table_name="processed_items")
    op.drop_table("processed_items")
    op.drop_index("ix_raw_items_new_created_at", table_name="raw_items")
    op.drop_index("ux_raw_items_url_hash", table_name="raw_items")
    op.drop_table("raw_items")
