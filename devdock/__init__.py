"""devdock: local infrastructure for container-based development.

Brings up and tears down a fixed set of helper containers:
 - dnsmasq, resolving the managed domain suffix to a local address
 - an HTTP/HTTPS reverse proxy routing to containers by virtual host
 - an ssh-agent that other containers can share, plus key injection

and keeps the host resolver configuration pointed at the dnsmasq container.
"""

__version__ = "0.4.0"
