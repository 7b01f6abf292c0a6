"""Client management modules."""

from .create import add_client
from .remove import remove_client
from .list import list_clients, client_rows, print_clients
from .qrcode import show_qr, show_config
from .repair import ConsistencyReport, check_consistency, repair
