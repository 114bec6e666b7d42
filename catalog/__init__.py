"""
Movie catalog service.

Lists, creates and votes on movies; list queries are expressed in a
``field__operator=value`` grammar checked against a field registry.
"""

__version__ = "1.0.0"
