"""
Command-line interfaces.
"""
