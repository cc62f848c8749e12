from alembic import op
import sqlalchemy as sa

revision = "20261019093000"
down_revision = None

order_status = sa.Enum('accepting_items', 'submitted', name='order_status')

def upgrade():
    op.create_table(
        'books',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(length=240), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('inventory', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('archived', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.CheckConstraint('inventory >= 0', name='ck_books_inventory_non_negative'),
        sa.CheckConstraint('price >= 0', name='ck_books_price_non_negative'),
    )
    op.create_table(
        'orders',
        sa.Column('order_id', sa.Uuid(), primary_key=True),
        sa.Column('purchaser_id', sa.Uuid(), nullable=False),
        sa.Column('status', order_status, nullable=False, server_default='accepting_items'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_orders_purchaser_id', 'orders', ['purchaser_id'])
    op.create_table(
        'order_items',
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('orders.order_id', ondelete='CASCADE'), primary_key=True),
        sa.Column('book_id', sa.Uuid(), sa.ForeignKey('books.id'), primary_key=True),
        sa.Column('book_name', sa.String(length=240), nullable=False),
        sa.Column('book_units', sa.Integer(), nullable=False),
        sa.Column('unit_price_at_order', sa.Numeric(10, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('book_units > 0', name='ck_order_items_units_positive'),
    )

def downgrade():
    op.drop_table('order_items')
    op.drop_index('ix_orders_purchaser_id', table_name='orders')
    op.drop_table('orders')
    op.drop_table('books')
    order_status.drop(op.get_bind(), checkfirst=True)
