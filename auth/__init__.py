"""auth/ -- Authentication and access control for GridPortal.

Layer rule: auth/ imports from core/, sessions/ and third-party libraries.
It does NOT import from api/ or web/.
api/ and web/ import from auth/, not the other way around.
"""
