"""
One-time migration: normalize todo.user_id to integers.
Run:  python migrate_owner_ids.py [path/to/todo.db]

Older imports stored the owner id as text ('3') in some rows and as an integer
in others. SQLite keeps whatever type was written, so owner-scoped queries
would miss the text rows. This rewrites them as integers.

What it does (idempotent):
- Convert text user_id values that hold a whole number to INTEGER
- Report (and leave untouched) rows whose user_id cannot be converted
"""
import sqlite3
import sys
from pathlib import Path

DB_PATH = Path("instance") / "todo.db"


def find_text_owner_rows(cur):
    return cur.execute(
        "SELECT id, user_id FROM todo WHERE typeof(user_id) != 'integer'"
    ).fetchall()


def normalize_owner_ids(cur):
    converted, skipped = 0, []
    for todo_id, raw in find_text_owner_rows(cur):
        value = str(raw).strip() if raw is not None else ''
        if value.lstrip('-').isdigit():
            cur.execute("UPDATE todo SET user_id=? WHERE id=?", (int(value), todo_id))
            converted += 1
        else:
            skipped.append((todo_id, raw))
    print(f"[update] converted {converted} owner ids to integers")
    for todo_id, raw in skipped:
        print(f"[skip] todo {todo_id} has unusable user_id {raw!r}")
    return converted, skipped


def main(db_path=DB_PATH):
    conn = sqlite3.connect(db_path)
    cur = conn.cursor()
    try:
        normalize_owner_ids(cur)
        conn.commit()
        print("Migration complete.")
    finally:
        conn.close()


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else DB_PATH)
