"""records/ -- User records, their persistence and the visibility policy.

Layer rule: records/ may import from auth/ and core/ (owner identities, the
shared schema, the error taxonomy). It does NOT import from api/ or web/.
"""
