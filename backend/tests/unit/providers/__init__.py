"""Unit tests for quote providers and the reasoning-service client.

Upstream HTTP is stubbed with httpx.MockTransport.
"""
