"""
Accounts Service
User registration, login and bearer token issuance
"""

__version__ = "0.1.0"
