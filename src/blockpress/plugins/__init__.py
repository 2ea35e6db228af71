"""
Plugins shipped with BlockPress.
"""
