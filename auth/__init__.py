"""auth/ -- Token codec, credential verifier, user store and rotation protocol.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
