"""initial monetization schema

Revision ID: 3f1c9a7e2b10
Revises:
Create Date: 2026-10-18 09:12:41.503117

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from teasr_stage.db.types import Money

# revision identifiers, used by Alembic.
revision: str = "3f1c9a7e2b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create accounts, posts and the payment ledger."""
    op.create_table(
        "user_account",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("wallet_address", sa.Text(), nullable=False),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("wallet_address"),
        sa.UniqueConstraint("username"),
    )
    op.create_table(
        "post",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("creator_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("media_type", sa.Text(), nullable=False),
        sa.Column("encrypted_media_key", sa.Text(), nullable=False),
        sa.Column("blurred_thumbnail_key", sa.Text(), nullable=False),
        sa.Column("encrypted_key", sa.Text(), nullable=False),
        sa.Column("key_iv", sa.Text(), nullable=False),
        sa.Column("key_auth_tag", sa.Text(), nullable=False),
        sa.Column("base_price", Money(), nullable=False),
        sa.Column("buyout_price", Money(), nullable=True),
        sa.Column("is_free", sa.Boolean(), nullable=False),
        sa.Column("accepted_currencies", sa.Text(), nullable=False),
        sa.Column("max_investor_slots", sa.Integer(), nullable=False),
        sa.Column("investor_revenue_share_percent", Money(), nullable=False),
        sa.Column("comments_locked", sa.Boolean(), nullable=False),
        sa.Column("comment_fee", Money(), nullable=True),
        sa.Column("view_count", sa.Integer(), nullable=False),
        sa.Column("upvote_count", sa.Integer(), nullable=False),
        sa.Column("downvote_count", sa.Integer(), nullable=False),
        sa.Column("is_viral", sa.Boolean(), nullable=False),
        sa.Column("viral_detected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "max_investor_slots BETWEEN 1 AND 100", name="ck_post_max_investor_slots"
        ),
        sa.ForeignKeyConstraint(["creator_id"], ["user_account.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_post_creator_id", "post", ["creator_id"])

    op.create_table(
        "payment",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("payer_id", sa.String(length=36), nullable=False),
        sa.Column("post_id", sa.String(length=36), nullable=False),
        sa.Column("payment_type", sa.String(length=16), nullable=False),
        sa.Column("amount", Money(), nullable=False),
        sa.Column("currency", sa.String(length=16), nullable=False),
        sa.Column("network", sa.String(length=32), nullable=False),
        sa.Column("is_buyout", sa.Boolean(), nullable=False),
        sa.Column("transaction_proof", sa.Text(), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("payment_type IN ('content', 'comment')", name="ck_payment_type"),
        sa.ForeignKeyConstraint(["payer_id"], ["user_account.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "payer_id", "post_id", "payment_type", name="uq_payment_payer_post_type"
        ),
    )
    op.create_index("ix_payment_post_id", "payment", ["post_id"])

    op.create_table(
        "platform_fee",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("payment_id", sa.String(length=36), nullable=False),
        sa.Column("post_id", sa.String(length=36), nullable=False),
        sa.Column("amount", Money(), nullable=False),
        sa.Column("currency", sa.String(length=16), nullable=False),
        sa.Column("transaction_proof", sa.Text(), nullable=True),
        sa.Column("destination_wallet", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["payment_id"], ["payment.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("payment_id"),
    )
    op.create_index("ix_platform_fee_post_id", "platform_fee", ["post_id"])

    op.create_table(
        "settlement",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("payment_id", sa.String(length=36), nullable=False),
        sa.Column("route", sa.String(length=16), nullable=False),
        sa.Column("currency", sa.String(length=16), nullable=False),
        sa.Column("network", sa.String(length=32), nullable=False),
        sa.Column("total_amount", Money(), nullable=False),
        sa.Column("platform_amount", Money(), nullable=False),
        sa.Column("creator_amount", Money(), nullable=False),
        sa.Column("creator_wallet", sa.Text(), nullable=False),
        sa.Column("investor_legs", sa.JSON(), nullable=False),
        sa.Column("transaction_proof", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["payment_id"], ["payment.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("payment_id"),
    )

    op.create_table(
        "investor_position",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("post_id", sa.String(length=36), nullable=False),
        sa.Column("investor_id", sa.String(length=36), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("investment_amount", Money(), nullable=False),
        sa.Column("total_earnings", Money(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("position >= 1", name="ck_investor_position_positive"),
        sa.ForeignKeyConstraint(["investor_id"], ["user_account.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("post_id", "investor_id", name="uq_investor_post_investor"),
        sa.UniqueConstraint("post_id", "position", name="uq_investor_post_position"),
    )
    op.create_index("ix_investor_position_post_id", "investor_position", ["post_id"])
    op.create_index("ix_investor_position_investor_id", "investor_position", ["investor_id"])

    op.create_table(
        "post_vote",
        sa.Column("post_id", sa.String(length=36), nullable=False),
        sa.Column("voter_id", sa.String(length=36), nullable=False),
        sa.Column("direction", sa.SmallInteger(), nullable=False),
        sa.CheckConstraint("direction IN (1, -1)", name="ck_post_vote_direction"),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["voter_id"], ["user_account.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("post_id", "voter_id"),
    )
    op.create_index("ix_post_vote_post_id", "post_vote", ["post_id"])

    op.create_table(
        "viral_notification",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("post_id", sa.String(length=36), nullable=False),
        sa.Column("notified_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("views_at_notification", sa.Integer(), nullable=False),
        sa.Column("upvotes_at_notification", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("post_id"),
    )


def downgrade() -> None:
    """Drop every table created by this revision."""
    op.drop_table("viral_notification")
    op.drop_index("ix_post_vote_post_id", table_name="post_vote")
    op.drop_table("post_vote")
    op.drop_index("ix_investor_position_investor_id", table_name="investor_position")
    op.drop_index("ix_investor_position_post_id", table_name="investor_position")
    op.drop_table("investor_position")
    op.drop_table("settlement")
    op.drop_index("ix_platform_fee_post_id", table_name="platform_fee")
    op.drop_table("platform_fee")
    op.drop_index("ix_payment_post_id", table_name="payment")
    op.drop_table("payment")
    op.drop_index("ix_post_creator_id", table_name="post")
    op.drop_table("post")
    op.drop_table("user_account")
