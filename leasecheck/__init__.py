"""
BC Lease Checker - flags risky or unlawful clauses in BC residential tenancy agreements.
"""
__version__ = "1.0.0"
