"""auth/ -- Accounts, password hashing, JWT tokens and role checks for the catalog API.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/, catalog/, or realtime/.
api/ imports from auth/, not the other way around.
"""
