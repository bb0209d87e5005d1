"""Fold legacy timesheet statuses into the current set

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

Rows imported from older releases may still carry 'Approved_By_TeamLead'.
The ORM already reads it as 'Approved'; this rewrites the stored value so
raw SQL reports agree.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute(sa.text("UPDATE timesheets SET status = 'Approved' WHERE status = 'Approved_By_TeamLead'"))
    op.execute(sa.text("UPDATE approval_history SET from_status = 'Approved' WHERE from_status = 'Approved_By_TeamLead'"))
    op.execute(sa.text("UPDATE approval_history SET to_status = 'Approved' WHERE to_status = 'Approved_By_TeamLead'"))


def downgrade() -> None:
    # the legacy value cannot be told apart from a genuine Approved once folded
    pass
