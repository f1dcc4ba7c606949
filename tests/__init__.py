"""
Milk pool ledger test suite.
"""
