"""Transport layer: serial radio links and outbound command routing."""

from .serial_link import LinkInfo, SerialLink, Transport, choose_port, list_links
from .router import CommandRouter
