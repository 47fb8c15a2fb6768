# database/repositories/clients_repo.py
from __future__ import annotations

from dataclasses import dataclass
import sqlite3
from typing import Optional

from ...constants import WALK_IN_CLIENT_NAME
from .errors import PersistenceError


@dataclass
class Client:
    client_id: int
    name: str
    phone: str | None
    address: str | None
    is_active: int = 1


class ClientsRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    def get(self, client_id: int) -> Optional[Client]:
        row = self.conn.execute(
            "SELECT client_id, name, phone, address, is_active FROM clients WHERE client_id = ?;",
            (client_id,),
        ).fetchone()
        return Client(**row) if row else None

    def create(self, name: str, phone: str | None = None, address: str | None = None) -> int:
        try:
            cur = self.conn.execute(
                "INSERT INTO clients(name, phone, address, is_active) VALUES (?, ?, ?, 1);",
                (name.strip(), phone, address),
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not create client {name!r}: {e}") from e
        return int(cur.lastrowid)

    def walk_in(self) -> Client:
        """
        The seeded walk-in client used for point-of-sale sales without a chosen
        client. Created on the fly if the seed row is missing (no commit here).
        """
        row = self.conn.execute(
            "SELECT client_id, name, phone, address, is_active FROM clients "
            "WHERE name = ? ORDER BY client_id LIMIT 1;",
            (WALK_IN_CLIENT_NAME,),
        ).fetchone()
        if row:
            return Client(**row)
        client_id = self.create(WALK_IN_CLIENT_NAME)
        return Client(client_id=client_id, name=WALK_IN_CLIENT_NAME, phone=None, address=None)
