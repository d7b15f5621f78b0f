"""add_performance_log

Menambahkan tabel performance_log untuk capaian indikator kinerja
per sub kegiatan dengan status persetujuan sendiri.

Revision ID: 8b52e0c4a7d3
Revises: 3c7d1a9e4f20
Create Date: 2026-04-14 10:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '8b52e0c4a7d3'
down_revision: Union[str, None] = '3c7d1a9e4f20'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'performance_log',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('subkegiatan_id', sa.Integer(), sa.ForeignKey('rka_subkegiatan.id'), nullable=False),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('indikator_nama', sa.String(300), nullable=False),
        sa.Column('target', sa.Numeric(15, 2), nullable=False),
        sa.Column('realisasi', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('satuan', sa.String(50), nullable=False),
        sa.Column('periode', sa.String(20), nullable=False),
        sa.Column('bukti_url', sa.String(500), nullable=True),
        sa.Column('keterangan', sa.Text(), nullable=True),
        sa.Column('approval_status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('approved_by', sa.Integer(), sa.ForeignKey('usuario.id'), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('usuario.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_performance_log_subkegiatan', 'performance_log', ['subkegiatan_id'])
    op.create_index(
        'ix_performance_log_org_periode', 'performance_log', ['organization_id', 'periode']
    )


def downgrade() -> None:
    op.drop_index('ix_performance_log_org_periode', table_name='performance_log')
    op.drop_index('ix_performance_log_subkegiatan', table_name='performance_log')
    op.drop_table('performance_log')
