"""applications/ -- Scholarship applications and their uploaded documents.

Consumers of the join key: every application belongs to a student_no and its
files live under applications/<student_no>/<application_id>/ in the object
store.

Layer rule: may import from core/, auth/ (models and store) and notify/. No imports from
api/, web/ or identity/.
"""
