"""
Blueprint registration for IT Streak.

All blueprints are registered without URL prefixes; routes carry their full paths.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.core import bp as core_bp
    from blueprints.streak import bp as streak_bp
    from blueprints.progress import bp as progress_bp
    from blueprints.settings import bp as settings_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(streak_bp)
    app.register_blueprint(progress_bp)
    app.register_blueprint(settings_bp)
