from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from oee_app.models import Counter

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class UnsupportedDialectError(Exception):
    def __init__(self, dialect_name: str):
        super().__init__(
            f"No atomic upsert available for dialect {dialect_name!r}. "
            f"Supported: {sorted(_UPSERT_DIALECTS)}"
        )
        self.dialect_name = dialect_name


def counter_key(tenant_id: int | str, year: int) -> str:
    return f"{tenant_id}:{year}"


def next_sequence(session: Session, tenant_id: int | str, year: int) -> int:
    """Increment and return the (tenant, year) sequence in one statement.

    The row is created with seq=1 on first use. The increment and the read
    happen in a single INSERT ... ON CONFLICT DO UPDATE ... RETURNING, so
    concurrent callers on the same key never observe the same value.
    The caller owns the transaction and must commit.
    """
    dialect_name = session.get_bind().dialect.name
    insert = _UPSERT_DIALECTS.get(dialect_name)
    if insert is None:
        raise UnsupportedDialectError(dialect_name)

    key = counter_key(tenant_id, year)
    table = Counter.__table__
    stmt = insert(table).values(key=key, seq=1)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.key],
        set_={"seq": table.c.seq + 1, "updated_at": func.now()},
    ).returning(table.c.seq)
    return int(session.execute(stmt).scalar_one())
