"""
BlockPress command-line interface.
"""
