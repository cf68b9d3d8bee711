"""
Processor webhook endpoint for settlement events.
"""
