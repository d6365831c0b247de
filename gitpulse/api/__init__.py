"""gitpulse HTTP API layer.

Usage
-----
Create the application::

    from gitpulse.api import create_app

    app = create_app()              # health-only mode
    app = create_app(dependencies)  # with pipeline endpoints
"""

from gitpulse.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
