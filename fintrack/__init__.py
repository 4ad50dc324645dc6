"""
fintrack — personal-finance backend.
"""
