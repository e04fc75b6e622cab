"""Bailiff HTTP API layer.

This package provides the Falcon Asynchronous Server Gateway Interface
(ASGI) application that receives GitHub webhooks.

Usage
-----
Create and run the application::

    from bailiff.api import AppDependencies, create_app

    app = create_app(AppDependencies(pipeline=pipeline, webhook_secret=secret))

Public API
----------
create_app
    Application factory that configures the Falcon ASGI app with the
    liveness probe and the webhook sink.
AppDependencies
    Collaborators the application dispatches to.
"""

from bailiff.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
