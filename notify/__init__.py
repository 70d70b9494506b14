"""notify/ -- Outbound transactional email.

Layer rule: notify/ imports from core/ only.
"""
