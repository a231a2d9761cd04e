"""Initial graph schema: users, follow edges, follow requests, notes

Revision ID: 001
Revises:
Create Date: 2026-10-19

Tables created:
  - users            Profile copy synced from identity + follower/following counters
  - following        Outgoing edges (owner follows peer) with peer snapshot
  - followers        Incoming edges (peer follows owner) with peer snapshot
  - follow_requests  Pending requests against private accounts
  - notes            24h notes, one live row per author
  - note_audience    Viewers of each note, fixed at publish time
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _edge_table(name: str) -> None:
    """following / followers / follow_requests share one shape."""
    op.create_table(
        name,
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("peer_id", sa.Uuid(), nullable=False),
        sa.Column("peer_username", sa.String(50), nullable=False),
        sa.Column("peer_display_name", sa.String(150), nullable=False, server_default=""),
        sa.Column("peer_avatar_url", sa.String(500), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("owner_id", "peer_id", name=f"pk_{name}"),
        sa.ForeignKeyConstraint(
            ["owner_id"], ["users.id"], name=f"fk_{name}_owner_id_users", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["peer_id"], ["users.id"], name=f"fk_{name}_peer_id_users", ondelete="CASCADE"
        ),
        sa.CheckConstraint("owner_id != peer_id", name=f"ck_{name}_no_self"),
    )
    op.create_index(f"idx_{name}_owner_created", name, ["owner_id", "created_at"])


# ─────────────────────────────────────────────────────────────────────────────
#  UPGRADE
# ─────────────────────────────────────────────────────────────────────────────

def upgrade() -> None:
    # ── 1. users ──────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("display_name", sa.String(150), nullable=False, server_default=""),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("follower_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("following_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.CheckConstraint(
            "follower_count >= 0", name="ck_users_follower_count_non_negative"
        ),
        sa.CheckConstraint(
            "following_count >= 0", name="ck_users_following_count_non_negative"
        ),
    )

    # ── 2. edges + pending requests ───────────────────────────────────────────
    _edge_table("following")
    _edge_table("followers")
    _edge_table("follow_requests")

    # ── 3. notes ──────────────────────────────────────────────────────────────
    op.create_table(
        "notes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("author_id", sa.Uuid(), nullable=False),
        sa.Column("author_username", sa.String(50), nullable=False),
        sa.Column("author_display_name", sa.String(150), nullable=False, server_default=""),
        sa.Column("author_avatar_url", sa.String(500), nullable=True),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_notes"),
        sa.UniqueConstraint("author_id", name="uq_notes_author_id"),
        sa.ForeignKeyConstraint(
            ["author_id"], ["users.id"], name="fk_notes_author_id_users", ondelete="CASCADE"
        ),
    )
    op.create_index("idx_notes_expires_at", "notes", ["expires_at"])

    op.create_table(
        "note_audience",
        sa.Column("note_id", sa.Uuid(), nullable=False),
        sa.Column("viewer_id", sa.Uuid(), nullable=False),
        sa.PrimaryKeyConstraint("note_id", "viewer_id", name="pk_note_audience"),
        sa.ForeignKeyConstraint(
            ["note_id"], ["notes.id"], name="fk_note_audience_note_id_notes", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["viewer_id"],
            ["users.id"],
            name="fk_note_audience_viewer_id_users",
            ondelete="CASCADE",
        ),
    )
    op.create_index("idx_note_audience_viewer", "note_audience", ["viewer_id"])


# ─────────────────────────────────────────────────────────────────────────────
#  DOWNGRADE
# ─────────────────────────────────────────────────────────────────────────────

def downgrade() -> None:
    op.drop_index("idx_note_audience_viewer", table_name="note_audience")
    op.drop_table("note_audience")
    op.drop_index("idx_notes_expires_at", table_name="notes")
    op.drop_table("notes")
    for name in ("follow_requests", "followers", "following"):
        op.drop_index(f"idx_{name}_owner_created", table_name=name)
        op.drop_table(name)
    op.drop_table("users")
