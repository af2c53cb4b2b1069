"""Test utilities.

- fakes.py: in-memory transport, scripted remote peer and settings builders
"""
