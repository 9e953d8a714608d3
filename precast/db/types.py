from sqlalchemy import JSON, Integer
from sqlalchemy.dialects.postgresql import ARRAY, JSONB

# The CRUD schema stores these as PostgreSQL arrays / jsonb; SQLite keeps them as JSON text.
IntArray = ARRAY(Integer).with_variant(JSON(), "sqlite")
JSONDocument = JSON().with_variant(JSONB(), "postgresql")
