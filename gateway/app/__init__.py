"""
Tunnel Gateway application package.

Subpackages:
    - auth        : Shared-secret gate for /api routes
    - tunnel      : Outbound client for the backend server
    - proxy       : Forwarding handlers mounted under /api
    - diagnostics : On-demand probe of the forwarding path
"""
