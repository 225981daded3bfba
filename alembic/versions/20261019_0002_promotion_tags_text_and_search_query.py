"""promotion tags_text and unbounded search_query

Revision ID: 20261019_0002
Revises: 20261018_0001
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0002"
down_revision: Union[str, None] = "20261018_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


promotions = sa.table(
    "promotions",
    sa.column("id", sa.String(length=36)),
    sa.column("tags", sa.JSON()),
    sa.column("tags_text", sa.Text()),
)


def upgrade() -> None:
    with op.batch_alter_table("promotions") as batch_op:
        batch_op.add_column(sa.Column("tags_text", sa.Text(), nullable=False, server_default=""))

    bind = op.get_bind()
    rows = bind.execute(sa.select(promotions.c.id, promotions.c.tags)).all()
    for promotion_id, tags in rows:
        if not tags:
            continue
        bind.execute(
            promotions.update()
            .where(promotions.c.id == promotion_id)
            .values(tags_text="\n".join(tag.lower() for tag in tags))
        )

    with op.batch_alter_table("analytic_events") as batch_op:
        batch_op.alter_column(
            "search_query",
            existing_type=sa.String(length=255),
            type_=sa.Text(),
            existing_nullable=True,
        )


def downgrade() -> None:
    with op.batch_alter_table("analytic_events") as batch_op:
        batch_op.alter_column(
            "search_query",
            existing_type=sa.Text(),
            type_=sa.String(length=255),
            existing_nullable=True,
            postgresql_using="left(search_query, 255)",
        )

    with op.batch_alter_table("promotions") as batch_op:
        batch_op.drop_column("tags_text")
