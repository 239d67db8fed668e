from academy_auth.db.base_class import Base

# Import every model so Base.metadata knows all tables (Alembic + init_db)
from academy_auth.models.account import Account  # noqa: F401
