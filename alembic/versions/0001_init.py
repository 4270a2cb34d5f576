from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

order_status = sa.Enum('PENDING', 'PAID', 'DELIVERED', 'CANCELLED', name='order_status')


def upgrade():
    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('total_items', sa.Integer, nullable=False),
        sa.Column('status', order_status, nullable=False),
        sa.Column('paid', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('paid_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('total_amount >= 0', name='ck_orders_total_amount'),
        sa.CheckConstraint('total_items >= 0', name='ck_orders_total_items'),
    )
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_table(
        'order_items',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('order_id', sa.Uuid, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.String(64), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('position', sa.Integer, nullable=False, server_default='0'),
        sa.CheckConstraint('quantity > 0', name='ck_order_items_quantity'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])


def downgrade():
    op.drop_index('ix_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_table('orders')
    order_status.drop(op.get_bind(), checkfirst=True)
