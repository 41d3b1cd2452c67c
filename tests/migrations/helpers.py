# Not a migration: the name does not match the migration file pattern.
def upgrade():
    raise AssertionError("helpers.py must never be loaded as a migration")
