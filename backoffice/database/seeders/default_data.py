from ...constants import WALK_IN_CLIENT_NAME


def seed(conn):
    # point-of-sale sales without a chosen client attach to the walk-in client
    row = conn.execute(
        "SELECT COUNT(*) AS n FROM clients WHERE name = ?", (WALK_IN_CLIENT_NAME,)
    ).fetchone()
    if row and row["n"] == 0:
        conn.execute(
            "INSERT INTO clients(name, phone, address, is_active) VALUES (?, NULL, NULL, 1)",
            (WALK_IN_CLIENT_NAME,),
        )
