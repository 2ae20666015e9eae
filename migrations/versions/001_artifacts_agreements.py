"""Create artifact, agreement and audit tables

Revision ID: 001_artifacts_agreements
Revises:
Create Date: 2026-10-18

"""
import sqlalchemy as sa
from alembic import op

# revision identifiers
revision = "001_artifacts_agreements"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Artifact data: single table for local and remote payloads
    op.create_table(
        "artifact_data",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("value", sa.LargeBinary, nullable=True),
        sa.Column("access_url", sa.String(2048), nullable=True),
        sa.Column("username", sa.String(255), nullable=True),
        sa.Column("password", sa.String(255), nullable=True),
    )
    op.create_index("ix_artifact_data_kind", "artifact_data", ["kind"])

    op.create_table(
        "artifacts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("remote_id", sa.String(2048), nullable=True),
        sa.Column("remote_address", sa.String(2048), nullable=True),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("num_accessed", sa.Integer, nullable=False),
        sa.Column("automated_download", sa.Boolean, nullable=False),
        sa.Column("byte_size", sa.BigInteger, nullable=False),
        sa.Column("check_sum", sa.BigInteger, nullable=False),
        sa.Column(
            "data_id",
            sa.String(36),
            sa.ForeignKey("artifact_data.id"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_artifacts_remote_id", "artifacts", ["remote_id"])

    op.create_table(
        "agreements",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("remote_id", sa.String(2048), nullable=True),
        sa.Column("value", sa.Text, nullable=False),
        sa.Column("confirmed", sa.Boolean, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_agreements_remote_id", "agreements", ["remote_id"])
    op.create_index("ix_agreements_created_at", "agreements", ["created_at"])

    op.create_table(
        "agreement_artifacts",
        sa.Column(
            "agreement_id",
            sa.String(36),
            sa.ForeignKey("agreements.id"),
            primary_key=True,
        ),
        sa.Column(
            "artifact_id",
            sa.String(36),
            sa.ForeignKey("artifacts.id"),
            primary_key=True,
        ),
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "actor_kind",
            sa.Enum("connector", "system", name="audit_actor_kind"),
            nullable=False,
        ),
        sa.Column("actor_id", sa.String(2048), nullable=False),
        sa.Column(
            "action",
            sa.Enum(
                "data_served",
                "data_refreshed",
                "data_stored",
                "data_erased",
                "access_denied",
                "usage_logged",
                name="audit_action",
            ),
            nullable=False,
        ),
        sa.Column("entity_kind", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(128), nullable=False),
        sa.Column("agreement_id", sa.String(2048), nullable=True),
        sa.Column("details", sa.JSON, nullable=True),
        sa.Column("note", sa.Text, nullable=True),
    )
    op.create_index("ix_audit_log_ts", "audit_log", ["ts"])
    op.create_index("ix_audit_log_actor_id", "audit_log", ["actor_id"])
    op.create_index("ix_audit_log_action", "audit_log", ["action"])
    op.create_index("ix_audit_log_entity_id", "audit_log", ["entity_id"])
    op.create_index("ix_audit_log_entity", "audit_log", ["entity_kind", "entity_id"])
    op.create_index(
        "ix_audit_log_entity_ts", "audit_log", ["entity_kind", "entity_id", "ts"]
    )


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("agreement_artifacts")
    op.drop_table("agreements")
    op.drop_table("artifacts")
    op.drop_table("artifact_data")

    sa.Enum(name="audit_action").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="audit_actor_kind").drop(op.get_bind(), checkfirst=True)
