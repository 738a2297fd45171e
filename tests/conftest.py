import os

os.environ.setdefault("FINANCES_DATABASE_URL", "sqlite:///:memory:")
