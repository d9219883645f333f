"""restgate - HTTP gateway in front of lazily started PostgREST instances.

restgate forwards REST requests for ``users`` and ``posts`` to isolated
PostgREST backends, one per derived instance name, and load-balances a
generic catch-all path across a fixed pool of instances.

Key modules:

- :mod:`restgate.instances` - Instance registry, readiness prober, request forwarder, load balancer
- :mod:`restgate.platform` - Platform bindings (Docker containers, static upstream)
- :mod:`restgate.server` - FastAPI routes and JSON error envelope
- :mod:`restgate.config` - YAML configuration loading and validation
- :mod:`restgate.cli` - Command-line interface
"""

__version__ = "0.1.0"
