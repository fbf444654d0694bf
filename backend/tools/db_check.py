import json
import sqlite3
import sys

DB = sys.argv[1] if len(sys.argv) > 1 else "dev.db"
OWNER = sys.argv[2] if len(sys.argv) > 2 else None  # e.g. "user:1" or "session:abc"

conn = sqlite3.connect(DB)
cur = conn.cursor()

print("=== Cart Lines ===")
if OWNER:
    cur.execute(
        "SELECT id, owner_key, config_key, quantity, price_snapshot_kobo, created_at FROM cart_lines WHERE owner_key=? ORDER BY id",
        (OWNER,),
    )
else:
    cur.execute(
        "SELECT id, owner_key, config_key, quantity, price_snapshot_kobo, created_at FROM cart_lines ORDER BY created_at DESC LIMIT 20"
    )
for r in cur.fetchall():
    print(r)

# more than one row per (owner, configuration) means the unique index is missing
cur.execute(
    "SELECT owner_key, config_key, COUNT(*) FROM cart_lines GROUP BY owner_key, config_key HAVING COUNT(*) > 1"
)
dupes = cur.fetchall()
print("\nDuplicate cart lines:", dupes or "none")

print("\n=== Recent Orders ===")
cur.execute(
    "SELECT id, order_number, user_id, status, subtotal_kobo, shipping_fee_kobo, total_kobo, proof_of_payment_url, created_at FROM orders ORDER BY created_at DESC LIMIT 20"
)
for r in cur.fetchall():
    print(r)

print("\n=== Orders whose lines do not add up ===")
cur.execute(
    """
    SELECT o.id, o.order_number, o.total_kobo,
           COALESCE(SUM(l.unit_price_kobo * l.quantity), 0) + o.shipping_fee_kobo AS computed
    FROM orders o LEFT JOIN order_lines l ON l.order_id = o.id
    GROUP BY o.id
    HAVING computed != o.total_kobo
    """
)
bad = cur.fetchall()
print(bad or "none")

print("\n=== Payment Attempts ===")
cur.execute(
    "SELECT id, order_id, user_id, session_id, started, created_at, updated_at FROM payment_attempts ORDER BY updated_at DESC LIMIT 20"
)
for r in cur.fetchall():
    print(
        json.dumps(
            {
                "id": r[0],
                "order_id": r[1],
                "user_id": r[2],
                "session_id": r[3],
                "started": bool(r[4]),
                "created_at": r[5],
                "updated_at": r[6],
            }
        )
    )

conn.close()
