"""identity/ -- External identity provider, profile mirror, and the sync between them and the credential store.

Layer rule: identity/ imports from core/ and auth/models only.
It does NOT import from api/, web/, notify/ or applications/.
The orchestrator in identity/sync.py is the only code that creates entries in
the identity provider or the profile mirror.
"""
