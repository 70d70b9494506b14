"""auth/ -- Credential store, verification, and account flows for the scholarship portal.

Layer rule: auth/ does NOT import from api/ or web/.
api/ and web/ import from auth/, not the other way around. accounts.py and
verification.py drive identity/ and notify/ through their interfaces.
"""
