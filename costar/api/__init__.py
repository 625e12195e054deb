"""costar HTTP and WebSocket API layer.

Usage
-----
Create and run the application::

    from costar.api import create_app

    app = create_app()              # health-only mode
    app = create_app(dependencies)  # job list and channel

"""

from costar.api.app import create_app

__all__ = ["create_app"]
