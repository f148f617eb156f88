"""Adapters that connect the reminder core to SQLite and the Fonnte gateway."""
