"""
Core modules for Prompt Journal.

This package contains token estimation and entry metadata tracking.
"""
