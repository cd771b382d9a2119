"""inventory/ -- Product catalog persistence for Stockkeeper.

Layer rule: inventory/ imports only stdlib + third-party libraries.
It does NOT import from api/ or auth/.
"""
