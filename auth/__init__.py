"""auth/ -- Authentication and authorization gate for Stockkeeper.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/, core/, or inventory/.
api/ imports from auth/, not the other way around.
"""
