"""
firewatch - firewall device polling and alerting service.
"""

__version__ = "0.1.0"
