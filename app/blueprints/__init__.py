"""
Utility Permit Tracker
Blueprint registry.
"""
