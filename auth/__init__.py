"""auth/ -- Identity, session tokens and the per-request auth gate for wwwbase.

Layer rule: auth/ imports only core/, stdlib and third-party libraries.
It does NOT import from api/, web/ or records/.
api/, web/ and records/ import from auth/, not the other way around.
"""
