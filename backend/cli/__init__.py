"""
Command line tools
"""
