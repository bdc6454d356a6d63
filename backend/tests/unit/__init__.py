"""Unit tests for the Depot Quotes backend.

Covers input parsing, providers, repositories, services and the HTTP
endpoints without any external service.
"""
