"""Initial StockManager schema

Revision ID: 20261019090000
Revises:
Create Date: 2026-10-19T09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '20261019090000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TRADE_ACTION = ('BUY', 'SELL')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'alerts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('symbol', sa.String(length=20), nullable=False),
        sa.Column('alert_type', sa.Enum('PRICE', 'PERCENT_CHANGE', name='alerttypeenum'), nullable=False),
        sa.Column('condition', sa.Enum('ABOVE', 'BELOW', 'UP', 'DOWN', name='alertconditionenum'), nullable=False),
        sa.Column('target_value', sa.Float(), nullable=False),
        sa.Column('note', sa.String(length=500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('triggered_at', sa.DateTime(), nullable=True),
        sa.Column('triggered_price', sa.Float(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_alerts_id'), 'alerts', ['id'], unique=False)
    op.create_index(op.f('ix_alerts_symbol'), 'alerts', ['symbol'], unique=False)
    op.create_index(op.f('ix_alerts_is_active'), 'alerts', ['is_active'], unique=False)
    op.create_index(op.f('ix_alerts_triggered_at'), 'alerts', ['triggered_at'], unique=False)

    op.create_table(
        'trade_journal',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('symbol', sa.String(length=20), nullable=False),
        sa.Column('entry_date', sa.DateTime(), nullable=False),
        sa.Column('exit_date', sa.DateTime(), nullable=True),
        sa.Column('strategy', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('emotions', sa.String(length=500), nullable=True),
        sa.Column('lessons_learned', sa.Text(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('profit_loss', sa.Float(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_trade_journal_id'), 'trade_journal', ['id'], unique=False)
    op.create_index(op.f('ix_trade_journal_symbol'), 'trade_journal', ['symbol'], unique=False)
    op.create_index(op.f('ix_trade_journal_entry_date'), 'trade_journal', ['entry_date'], unique=False)

    op.create_table(
        'stock_trades',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('symbol', sa.String(length=20), nullable=False),
        sa.Column('entry_price', sa.Float(), nullable=False),
        sa.Column('exit_price', sa.Float(), nullable=True),
        sa.Column('quantity', sa.Float(), nullable=False),
        sa.Column('entry_date', sa.DateTime(), nullable=False),
        sa.Column('exit_date', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_stock_trades_id'), 'stock_trades', ['id'], unique=False)
    op.create_index(op.f('ix_stock_trades_symbol'), 'stock_trades', ['symbol'], unique=False)
    op.create_index(op.f('ix_stock_trades_entry_date'), 'stock_trades', ['entry_date'], unique=False)

    op.create_table(
        'option_trades',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('symbol', sa.String(length=20), nullable=False),
        sa.Column('option_type', sa.Enum('CALL', 'PUT', name='optiontypeenum'), nullable=False),
        sa.Column('action', sa.Enum(*TRADE_ACTION, name='tradeactionenum'), nullable=False),
        sa.Column('strike', sa.Float(), nullable=False),
        sa.Column('expiration', sa.Date(), nullable=False),
        sa.Column('premium', sa.Float(), nullable=False),
        sa.Column('contracts', sa.Integer(), nullable=False),
        sa.Column('trade_date', sa.DateTime(), nullable=False),
        sa.Column('strategy', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_option_trades_id'), 'option_trades', ['id'], unique=False)
    op.create_index(op.f('ix_option_trades_symbol'), 'option_trades', ['symbol'], unique=False)
    op.create_index(op.f('ix_option_trades_trade_date'), 'option_trades', ['trade_date'], unique=False)

    op.create_table(
        'watchlist',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('symbol', sa.String(length=20), nullable=False),
        sa.Column('note', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_watchlist_id'), 'watchlist', ['id'], unique=False)
    op.create_index(op.f('ix_watchlist_symbol'), 'watchlist', ['symbol'], unique=True)

    op.create_table(
        'trade_signals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('symbol', sa.String(length=20), nullable=False),
        sa.Column('action', sa.Enum(*TRADE_ACTION, name='tradeactionenum'), nullable=False),
        sa.Column('price', sa.Float(), nullable=True),
        sa.Column('strategy', sa.String(length=100), nullable=False),
        sa.Column('quantity', sa.Float(), nullable=False),
        sa.Column('timeframe', sa.String(length=20), nullable=False),
        sa.Column('entry_condition', sa.String(length=500), nullable=True),
        sa.Column('exit_condition', sa.String(length=500), nullable=True),
        sa.Column('source', sa.String(length=50), nullable=False),
        sa.Column('received_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_trade_signals_id'), 'trade_signals', ['id'], unique=False)
    op.create_index(op.f('ix_trade_signals_symbol'), 'trade_signals', ['symbol'], unique=False)
    op.create_index(op.f('ix_trade_signals_received_at'), 'trade_signals', ['received_at'], unique=False)

    op.create_table(
        'config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('value_type', sa.String(length=20), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_config_id'), 'config', ['id'], unique=False)
    op.create_index(op.f('ix_config_key'), 'config', ['key'], unique=True)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.Enum(
            'ALERT_CREATED', 'ALERT_UPDATED', 'ALERT_DELETED', 'ALERT_TRIGGERED',
            'JOURNAL_ENTRY_CREATED', 'JOURNAL_ENTRY_UPDATED', 'JOURNAL_ENTRY_DELETED',
            'TRADE_CREATED', 'TRADE_UPDATED', 'TRADE_DELETED',
            'WATCHLIST_ADDED', 'WATCHLIST_REMOVED', 'SETTINGS_UPDATED', 'SIGNAL_RECEIVED',
            name='auditeventtypeenum'), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('entity_type', sa.String(length=50), nullable=True),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_logs_id'), 'audit_logs', ['id'], unique=False)
    op.create_index(op.f('ix_audit_logs_event_type'), 'audit_logs', ['event_type'], unique=False)
    op.create_index(op.f('ix_audit_logs_entity_type'), 'audit_logs', ['entity_type'], unique=False)
    op.create_index(op.f('ix_audit_logs_entity_id'), 'audit_logs', ['entity_id'], unique=False)
    op.create_index(op.f('ix_audit_logs_timestamp'), 'audit_logs', ['timestamp'], unique=False)


def downgrade() -> None:
    for table in (
        'audit_logs', 'config', 'trade_signals', 'watchlist',
        'option_trades', 'stock_trades', 'trade_journal', 'alerts',
    ):
        op.drop_table(table)
