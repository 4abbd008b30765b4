"""Authentication: app users, sessions, JWT and role checks."""
