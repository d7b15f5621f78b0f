"""initial_schema

Membuat tabel NPD Tracker: organisasi, pengguna, hierarki RKA,
NPD dan barisnya, SP2D dan realisasi, serta audit, notifikasi, impor.

Revision ID: 3c7d1a9e4f20
Revises:
Create Date: 2026-03-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3c7d1a9e4f20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(with_updated: bool = True) -> list[sa.Column]:
    cols = [sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False)]
    if with_updated:
        cols.append(sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False))
    return cols


def upgrade() -> None:
    op.create_table(
        'organization',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('kode', sa.String(50), nullable=False, unique=True),
        sa.Column('nama', sa.String(300), nullable=False),
        sa.Column('activo', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        'usuario',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('username', sa.String(100), nullable=False, unique=True),
        sa.Column('email', sa.String(200), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(200), nullable=False),
        sa.Column('nombre_completo', sa.String(300), nullable=True),
        sa.Column('rol', sa.String(50), nullable=False),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('activo', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('ultimo_acceso', sa.DateTime(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'rka_program',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('fiscal_year', sa.Integer(), nullable=False),
        sa.Column('kode', sa.String(50), nullable=False),
        sa.Column('nama', sa.String(500), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        *_timestamps(),
        sa.UniqueConstraint('organization_id', 'fiscal_year', 'kode', name='uq_program_org_year_kode'),
    )

    op.create_table(
        'rka_kegiatan',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('program_id', sa.Integer(), sa.ForeignKey('rka_program.id'), nullable=False),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('fiscal_year', sa.Integer(), nullable=False),
        sa.Column('kode', sa.String(50), nullable=False),
        sa.Column('nama', sa.String(500), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        *_timestamps(),
        sa.UniqueConstraint('program_id', 'kode', name='uq_kegiatan_program_kode'),
    )

    op.create_table(
        'rka_subkegiatan',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('kegiatan_id', sa.Integer(), sa.ForeignKey('rka_kegiatan.id'), nullable=False),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('fiscal_year', sa.Integer(), nullable=False),
        sa.Column('kode', sa.String(50), nullable=False),
        sa.Column('nama', sa.String(500), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        *_timestamps(),
        sa.UniqueConstraint('kegiatan_id', 'kode', name='uq_subkegiatan_kegiatan_kode'),
    )

    op.create_table(
        'rka_account',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('subkegiatan_id', sa.Integer(), sa.ForeignKey('rka_subkegiatan.id'), nullable=False),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('fiscal_year', sa.Integer(), nullable=False),
        sa.Column('kode', sa.String(50), nullable=False),
        sa.Column('uraian', sa.String(500), nullable=False),
        sa.Column('satuan', sa.String(50), nullable=True),
        sa.Column('volume', sa.Numeric(15, 2), nullable=True),
        sa.Column('harga_satuan', sa.BigInteger(), nullable=True),
        sa.Column('pagu', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('realisasi_tahun', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('sisa_pagu', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('nilai_komitmen', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('sisa_komitmen', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        *_timestamps(),
        sa.UniqueConstraint('organization_id', 'fiscal_year', 'kode', name='uq_account_org_year_kode'),
    )

    op.create_table(
        'document_sequence',
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), primary_key=True),
        sa.Column('tahun', sa.Integer(), primary_key=True),
        sa.Column('last_value', sa.Integer(), nullable=False, server_default='0'),
    )

    op.create_table(
        'npd_document',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('subkegiatan_id', sa.Integer(), sa.ForeignKey('rka_subkegiatan.id'), nullable=False),
        sa.Column('document_number', sa.String(30), nullable=False),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('jenis', sa.String(5), nullable=False),
        sa.Column('tahun', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('catatan', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('usuario.id'), nullable=False),
        sa.Column('verified_by', sa.Integer(), sa.ForeignKey('usuario.id'), nullable=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.Column('finalized_by', sa.Integer(), sa.ForeignKey('usuario.id'), nullable=True),
        sa.Column('finalized_at', sa.DateTime(), nullable=True),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('locked_by', sa.Integer(), sa.ForeignKey('usuario.id'), nullable=True),
        sa.Column('locked_at', sa.DateTime(), nullable=True),
        sa.Column('lock_reason', sa.String(500), nullable=True),
        sa.Column('lock_expires_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('organization_id', 'document_number', name='uq_npd_org_number'),
    )

    op.create_table(
        'npd_line',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('npd_id', sa.Integer(), sa.ForeignKey('npd_document.id'), nullable=False),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('rka_account.id'), nullable=False),
        sa.Column('uraian', sa.String(500), nullable=True),
        sa.Column('jumlah', sa.BigInteger(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'verification_checklist',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('npd_id', sa.Integer(), sa.ForeignKey('npd_document.id'), nullable=False),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('checklist_type', sa.String(5), nullable=False),
        sa.Column('results', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('verified_by', sa.Integer(), sa.ForeignKey('usuario.id'), nullable=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'sp2d_ref',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('npd_id', sa.Integer(), sa.ForeignKey('npd_document.id'), nullable=False),
        sa.Column('no_spm', sa.String(100), nullable=True),
        sa.Column('no_sp2d', sa.String(100), nullable=False),
        sa.Column('tgl_sp2d', sa.Date(), nullable=False),
        sa.Column('nilai_cair', sa.BigInteger(), nullable=False),
        sa.Column('catatan', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('usuario.id'), nullable=False),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_by', sa.Integer(), sa.ForeignKey('usuario.id'), nullable=True),
        sa.Column('delete_reason', sa.String(500), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('organization_id', 'no_sp2d', name='uq_sp2d_org_number'),
    )

    op.create_table(
        'realization',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('sp2d_id', sa.Integer(), sa.ForeignKey('sp2d_ref.id'), nullable=False),
        sa.Column('npd_id', sa.Integer(), sa.ForeignKey('npd_document.id'), nullable=False),
        sa.Column('npd_line_id', sa.Integer(), sa.ForeignKey('npd_line.id'), nullable=True),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('rka_account.id'), nullable=False),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('jumlah', sa.BigInteger(), nullable=False),
        sa.Column('superseded_at', sa.DateTime(), nullable=True),
        *_timestamps(with_updated=False),
    )

    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), sa.ForeignKey('usuario.id'), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('entity_table', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('entity_data', sa.JSON(), nullable=True),
        sa.Column('keterangan', sa.Text(), nullable=True),
        *_timestamps(with_updated=False),
    )
    op.create_index('ix_audit_log_entity', 'audit_log', ['entity_table', 'entity_id'])

    op.create_table(
        'notification',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('usuario.id'), nullable=False),
        sa.Column('tipo', sa.String(50), nullable=False),
        sa.Column('titulo', sa.String(300), nullable=False),
        sa.Column('mensaje', sa.Text(), nullable=True),
        sa.Column('entity_table', sa.String(50), nullable=True),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('leido', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('leido_at', sa.DateTime(), nullable=True),
        *_timestamps(with_updated=False),
    )

    op.create_table(
        'registro_importacion',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organization.id'), nullable=False),
        sa.Column('fiscal_year', sa.Integer(), nullable=False),
        sa.Column('archivo_nombre', sa.String(500), nullable=False),
        sa.Column('fecha', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('usuario_id', sa.Integer(), nullable=False),
        sa.Column('usuario_username', sa.String(100), nullable=False),
        sa.Column('registros_ok', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('registros_error', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('estado', sa.String(20), nullable=False),
        sa.Column('errors_json', sa.Text(), nullable=True),
        sa.Column('warnings_json', sa.Text(), nullable=True),
    )


def downgrade() -> None:
    for table in (
        'registro_importacion',
        'notification',
        'audit_log',
        'realization',
        'sp2d_ref',
        'verification_checklist',
        'npd_line',
        'npd_document',
        'document_sequence',
        'rka_account',
        'rka_subkegiatan',
        'rka_kegiatan',
        'rka_program',
        'usuario',
        'organization',
    ):
        op.drop_table(table)
