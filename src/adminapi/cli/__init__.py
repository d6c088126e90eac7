"""
adminapi CLI module.

Provides the command implementations and shared CLI utilities.
"""
