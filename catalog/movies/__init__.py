"""
Movie records, request payloads and the catalog service.
"""
