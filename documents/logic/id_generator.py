from __future__ import annotations

import re
from datetime import datetime, timezone

from documents.adapters.database_adapter import DatabaseAdapter

_SEQ_RE = re.compile(r"\{seq:(\d+)d\}")


class IdGenerator:
    def __init__(self, db: DatabaseAdapter, prefix: str, pattern: str) -> None:
        self._db = db
        self._prefix = prefix
        self._pattern = pattern
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        self._db.execute("""
            CREATE TABLE IF NOT EXISTS sequences (
                year INTEGER NOT NULL,
                prefix TEXT NOT NULL,
                seq INTEGER NOT NULL,
                PRIMARY KEY (year, prefix)
            )
        """)

    def format(self, year: int, seq: int) -> str:
        token = self._pattern.replace("{YYYY}", str(year))
        m = _SEQ_RE.search(token)
        if m:
            token = _SEQ_RE.sub(f"{seq:0{int(m.group(1))}d}", token)
        else:
            token = token.replace("{seq}", str(seq))
        return f"{self._prefix}-{token}"

    def next_id(self) -> str:
        year = datetime.now(timezone.utc).year
        with self._db.transaction():
            row = self._db.fetchone("SELECT seq FROM sequences WHERE year=? AND prefix=?",
                                    (year, self._prefix))
            if row is None:
                seq = 1
                self._db.insert("sequences", {"year": year, "prefix": self._prefix, "seq": seq})
            else:
                seq = int(row["seq"]) + 1
                self._db.update("sequences", {"seq": seq}, "year=? AND prefix=?", (year, self._prefix))
        return self.format(year, seq)
