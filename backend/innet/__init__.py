"""
InNet fact-share backend
"""
