"""sessions/ -- Server-side session state and its persistence.

Layer rule: sessions/ imports only stdlib + third-party libraries.
auth/, api/ and web/ import from sessions/, not the other way around.
"""
