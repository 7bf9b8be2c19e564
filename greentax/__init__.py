"""
Green-Tax Compliance & Rebate Monitor
"""
__version__ = "1.0.0"
