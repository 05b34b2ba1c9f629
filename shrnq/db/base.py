# shrnq/db/base.py

# Importing the models registers their tables on Base.metadata, which
# create_all() in the lifespan hook (and the test fixtures) rely on.
from shrnq.db.base_class import Base  # noqa: F401
from shrnq.db.models.authenticator import Authenticator  # noqa: F401
from shrnq.db.models.user import User  # noqa: F401
