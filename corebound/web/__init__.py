"""HTTP layer: application factory, auth, origin checks and rate limiting.

Example Usage:
    ```python
    from corebound.config import CoreboundConfig
    from corebound.web import create_app

    app = create_app(CoreboundConfig.from_env())
    ```

Run with ``corebound serve`` or any ASGI server pointed at the factory.
"""

from .server import RequestIDMiddleware, create_app

__all__ = [
    "RequestIDMiddleware",
    "create_app",
]
