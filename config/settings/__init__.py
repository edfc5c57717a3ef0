"""
Settings loader for the Auction Lot Crawler.

DJANGO_ENV picks the module: production, test, or development (default).
"""

import os

env = os.getenv("DJANGO_ENV", "development")

if env == "production":
    from .production import *
elif env == "test":
    from .test import *
else:
    from .development import *
