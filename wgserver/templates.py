"""Jinja2 templates for server and client configuration files."""

from jinja2 import DictLoader, Environment, StrictUndefined

SERVER_INTERFACE_TEMPLATE = """\
[Interface]
Address = {{ address }}/{{ prefix }}
ListenPort = {{ port }}
PrivateKey = {{ private_key }}
PostUp = iptables -A FORWARD -i {{ interface }} -j ACCEPT; iptables -A FORWARD -o {{ interface }} -j ACCEPT; iptables -t nat -A POSTROUTING -o {{ wan }} -j MASQUERADE
PostDown = iptables -D FORWARD -i {{ interface }} -j ACCEPT; iptables -D FORWARD -o {{ interface }} -j ACCEPT; iptables -t nat -D POSTROUTING -o {{ wan }} -j MASQUERADE

"""

CLIENT_TEMPLATE = """\
[Interface]
PrivateKey = {{ private_key }}
Address = {{ address }}/32
{% if dns %}
DNS = {{ dns }}
{% endif %}

[Peer]
PublicKey = {{ server_public_key }}
AllowedIPs = {{ allowed_ips }}
Endpoint = {{ endpoint }}
{% if keepalive %}
PersistentKeepalive = {{ keepalive }}
{% endif %}
"""

# Resolved by the shell when wg-quick runs the hook
DEFAULT_ROUTE_INTERFACE = "$(ip route | awk '/default/ { print $5 }')"

env = Environment(
    loader=DictLoader({
        "server.conf.j2": SERVER_INTERFACE_TEMPLATE,
        "client.conf.j2": CLIENT_TEMPLATE,
    }),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    undefined=StrictUndefined,
    autoescape=False,
)


def render(template_name: str, **context) -> str:
    return env.get_template(template_name).render(**context)
