"""
Shared Flask extensions.

Created here rather than inside create_app() so blueprints can import them
for decorators before an app exists.
"""

from __future__ import annotations

from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["300 per hour"])
