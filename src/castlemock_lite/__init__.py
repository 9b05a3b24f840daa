"""
CastleMock Lite

Describe a REST API (from scratch or from an OpenAPI document) and resolve
simulated requests against it without a real backend.
"""

__version__ = '1.0.0'
