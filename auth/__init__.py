"""auth/ -- Authentication and authorization package for the NTC bus API.

Layer rule: auth/ imports stdlib, third-party libraries and core/ (the
kernel). It does NOT import from api/ or fleet/.
api/ imports from auth/, not the other way around.
"""
