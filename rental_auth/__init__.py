"""
Loccar authentication service.
"""
