"""
HTTP transport.

Components:
- models.py: RequestDescriptor
- http_transport.py: httpx-based Transport with error mapping and CSRF handling
"""
