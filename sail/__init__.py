"""sail: command-line client for a container hosting platform.

Describes, deploys and manages containerized services by talking to the
platform's control-plane HTTP API:
 - compiles `service add` flags into one service document
 - submits it, falling back to a redeploy when the service already exists
 - starts the service and optionally attaches to its console
 - manages application webhooks
"""

__version__ = "0.4.0"
