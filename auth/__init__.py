"""auth/ -- Authentication and authorization core for Mosifra.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or users/.
api/ and users/ import from auth/, not the other way around.
"""
