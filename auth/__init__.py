"""auth/ -- Authentication and authorization package for ProxyPanel.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/, services/, inventory/, or audit/.
api/ and services/ import from auth/, not the other way around.
"""
