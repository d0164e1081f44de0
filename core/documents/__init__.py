"""
Nexus Documents
================
Document numbering for internal order numbers and invoices.
"""
