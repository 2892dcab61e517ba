"""
Comparison pipeline services.
"""
