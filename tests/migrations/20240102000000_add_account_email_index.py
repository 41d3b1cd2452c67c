from alembic import op


def upgrade():
    op.create_index('ix_accounts_email', 'accounts', ['email'], unique=True)


def downgrade():
    op.drop_index('ix_accounts_email', 'accounts')
