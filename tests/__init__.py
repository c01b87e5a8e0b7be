"""
Test suite for the print shop stock service.
"""
