"""
Authentication microservice for the Loccar rental platform.

This module provides authentication services:
- User login with JWT bearer tokens
- User registration relayed to the customer registry
- Stateless logout
"""
