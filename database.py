from contextlib import contextmanager
import json
import logging
import sqlite3
import threading

from config import DATABASE_PATH
from errors import StoreError

logger = logging.getLogger(__name__)

EVENT_COLUMNS = (
    "id", "title", "description", "date", "time", "location", "price",
    "category", "image_url", "capacity", "organizer_id", "organizer_name",
)
USER_COLUMNS = (
    "id", "name", "email", "password", "role", "profile_image", "gender",
    "city", "interests", "age", "budget", "verified",
)


class Database:
    def __init__(self, db_name=DATABASE_PATH):
        """
        Initialize SQLite database connection.
        Note: For production, consider using PostgreSQL for better scalability.
        """
        self.conn = sqlite3.connect(db_name, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.RLock()
        self.create_tables()

    @contextmanager
    def _cursor(self):
        """Yield a cursor inside a transaction; store failures surface as StoreError."""
        with self._lock:
            cursor = self.conn.cursor()
            try:
                yield cursor
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                logger.error(f"Store call failed: {e}")
                raise StoreError(str(e)) from e
            finally:
                cursor.close()

    def create_tables(self):
        """Create database tables with appropriate indexes."""
        with self._cursor() as cursor:
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password TEXT NOT NULL,
                    role TEXT NOT NULL CHECK(role IN ('attendee', 'organizer')),
                    profile_image TEXT,
                    gender TEXT,
                    city TEXT,
                    interests TEXT NOT NULL DEFAULT '[]',
                    age INTEGER,
                    budget REAL,
                    verified INTEGER NOT NULL DEFAULT 0
                )
            ''')
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS events (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    date TEXT NOT NULL,
                    time TEXT NOT NULL DEFAULT '',
                    location TEXT NOT NULL DEFAULT '',
                    price REAL NOT NULL DEFAULT 0 CHECK(price >= 0),
                    category TEXT NOT NULL CHECK(category IN ('Music', 'Travel', 'Tech', 'Workshops')),
                    image_url TEXT NOT NULL DEFAULT '',
                    capacity INTEGER NOT NULL CHECK(capacity > 0),
                    organizer_id TEXT NOT NULL,
                    organizer_name TEXT NOT NULL,
                    FOREIGN KEY (organizer_id) REFERENCES users(id)
                )
            ''')
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS attendees (
                    event_id TEXT NOT NULL,
                    attendee_id TEXT NOT NULL,
                    created_at TEXT NOT NULL DEFAULT (datetime('now')),
                    FOREIGN KEY (event_id) REFERENCES events(id) ON DELETE CASCADE,
                    FOREIGN KEY (attendee_id) REFERENCES users(id),
                    PRIMARY KEY (event_id, attendee_id)
                )
            ''')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_users_email ON users(email)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_attendees_event_id ON attendees(event_id)')

    # -------------------------------
    # Events
    # -------------------------------
    def _attendee_ids(self, cursor, event_id):
        cursor.execute('SELECT attendee_id FROM attendees WHERE event_id = ? ORDER BY rowid', (event_id,))
        return [r["attendee_id"] for r in cursor.fetchall()]

    def add_event(self, record):
        """Insert an event and return it as stored."""
        values = tuple(record[c] for c in EVENT_COLUMNS)
        placeholders = ", ".join("?" for _ in EVENT_COLUMNS)
        with self._cursor() as cursor:
            cursor.execute(f'INSERT INTO events ({", ".join(EVENT_COLUMNS)}) VALUES ({placeholders})', values)
        return self.get_event(record["id"])

    def get_event(self, event_id):
        """Retrieve an event by ID, including its attendee ids."""
        with self._cursor() as cursor:
            cursor.execute('SELECT * FROM events WHERE id = ?', (event_id,))
            row = cursor.fetchone()
            if row is None:
                return None
            event = dict(row)
            event["attendees"] = self._attendee_ids(cursor, event_id)
            return event

    def list_events(self):
        """Retrieve all events in creation order."""
        with self._cursor() as cursor:
            cursor.execute('SELECT * FROM events ORDER BY rowid')
            events = [dict(r) for r in cursor.fetchall()]
            cursor.execute('SELECT event_id, attendee_id FROM attendees ORDER BY rowid')
            by_event = {}
            for r in cursor.fetchall():
                by_event.setdefault(r["event_id"], []).append(r["attendee_id"])
        for e in events:
            e["attendees"] = by_event.get(e["id"], [])
        return events

    def update_event(self, event_id, fields):
        """Update an event's columns and return the stored record."""
        updates = {k: v for k, v in fields.items() if k in EVENT_COLUMNS and k != "id"}
        if updates:
            set_clause = ", ".join(f"{k} = ?" for k in updates.keys())
            values = list(updates.values()) + [event_id]
            with self._cursor() as cursor:
                cursor.execute(f'UPDATE events SET {set_clause} WHERE id = ?', values)
                if cursor.rowcount == 0:
                    raise StoreError(f"Event {event_id} does not exist")
        return self.get_event(event_id)

    def delete_event(self, event_id):
        """Delete an event and its attendance rows."""
        with self._cursor() as cursor:
            cursor.execute('DELETE FROM attendees WHERE event_id = ?', (event_id,))
            cursor.execute('DELETE FROM events WHERE id = ?', (event_id,))
            if cursor.rowcount == 0:
                raise StoreError(f"Event {event_id} does not exist")

    # -------------------------------
    # Attendance
    # -------------------------------
    def add_attendee(self, event_id, attendee_id):
        """Insert an attendance row unless the event is already full."""
        with self._cursor() as cursor:
            cursor.execute('''
                INSERT INTO attendees (event_id, attendee_id)
                SELECT id, ? FROM events
                WHERE id = ? AND capacity > (SELECT COUNT(*) FROM attendees WHERE event_id = ?)
            ''', (attendee_id, event_id, event_id))
            if cursor.rowcount == 0:
                raise StoreError(f"Event {event_id} is full or does not exist")

    def remove_attendee(self, event_id, attendee_id):
        """Delete an attendance row."""
        with self._cursor() as cursor:
            cursor.execute('DELETE FROM attendees WHERE event_id = ? AND attendee_id = ?', (event_id, attendee_id))
            if cursor.rowcount == 0:
                raise StoreError(f"User {attendee_id} is not attending event {event_id}")

    # -------------------------------
    # Users
    # -------------------------------
    def _user(self, row):
        user = dict(row)
        user["interests"] = json.loads(user["interests"] or "[]")
        user["verified"] = bool(user["verified"])
        return user

    def add_user(self, record):
        """Add a user to the database."""
        record = dict(record)
        record["interests"] = json.dumps(list(record.get("interests") or []))
        record["verified"] = int(bool(record.get("verified")))
        values = tuple(record.get(c) for c in USER_COLUMNS)
        placeholders = ", ".join("?" for _ in USER_COLUMNS)
        with self._cursor() as cursor:
            cursor.execute(f'INSERT INTO users ({", ".join(USER_COLUMNS)}) VALUES ({placeholders})', values)
        return self.get_user(record["id"])

    def get_user(self, user_id):
        """Retrieve a user by ID."""
        with self._cursor() as cursor:
            cursor.execute('SELECT * FROM users WHERE id = ?', (user_id,))
            row = cursor.fetchone()
        return self._user(row) if row else None

    def get_user_by_email(self, email):
        """Retrieve a user by email."""
        with self._cursor() as cursor:
            cursor.execute('SELECT * FROM users WHERE email = ?', (email,))
            row = cursor.fetchone()
        return self._user(row) if row else None

    def get_users(self, user_ids):
        """Retrieve users by ID, in the order the ids were given."""
        if not user_ids:
            return []
        placeholders = ", ".join("?" for _ in user_ids)
        with self._cursor() as cursor:
            cursor.execute(f'SELECT * FROM users WHERE id IN ({placeholders})', tuple(user_ids))
            found = {r["id"]: self._user(r) for r in cursor.fetchall()}
        return [found[uid] for uid in user_ids if uid in found]

    def update_user(self, user_id, fields):
        """Update a user's profile columns and return the stored record."""
        updates = {k: v for k, v in fields.items() if k in USER_COLUMNS and k not in ("id", "email", "role", "password")}
        if "interests" in updates:
            updates["interests"] = json.dumps(list(updates["interests"] or []))
        if "verified" in updates:
            updates["verified"] = int(bool(updates["verified"]))
        if updates:
            set_clause = ", ".join(f"{k} = ?" for k in updates.keys())
            values = list(updates.values()) + [user_id]
            with self._cursor() as cursor:
                cursor.execute(f'UPDATE users SET {set_clause} WHERE id = ?', values)
                if cursor.rowcount == 0:
                    raise StoreError(f"User {user_id} does not exist")
        return self.get_user(user_id)

    def close(self):
        """Close the database connection."""
        self.conn.close()


_default_db = None


def get_db() -> Database:
    """Return the process-wide store, opening it on first use."""
    global _default_db
    if _default_db is None:
        _default_db = Database(DATABASE_PATH)
    return _default_db
