"""
ESPN Fantasy Service Module
Secondary platform client.
"""

from .client import EspnClient

__all__ = ["EspnClient"]
