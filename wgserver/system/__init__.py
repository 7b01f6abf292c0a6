"""System management modules."""

from .setup import init_server, is_provisioned, render_server_config
