"""
Test support utilities for dbhandles tests.

Helpers that are not fixtures but are shared by several test modules.
"""
