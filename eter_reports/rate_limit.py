"""Limiteur de débit par IP / Per-IP rate limiter.

Appliqué à la connexion et à la soumission publique des rapports.
Applied to login and to the public report submission endpoint.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
