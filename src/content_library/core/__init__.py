"""
Core infrastructure shared by the content library engine and CLI.
"""
