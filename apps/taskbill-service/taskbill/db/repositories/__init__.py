"""
Per-domain repository modules for database access.

Functions take the session as the first argument and keyword-only inputs;
those that write commit before returning.
"""
