"""
SOP compliance comparison service.
"""
