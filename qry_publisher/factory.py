from __future__ import annotations
from typing import Any, Union

from .config import PublisherOptions
from .publisher import QRYPublisher
from .transport import TransportFactory

def create_publisher(hub_url: str,
                     *,
                     transport: Union[str, TransportFactory] = "socketio",
                     auto_connect: bool = False,
                     **options: Any) -> QRYPublisher:
    """
    One-liner factory:
      create_publisher("hub.example.com", instance_private_key="PVT_K1_...", auto_connect=True)
      create_publisher("localhost:7001", use_tls=False, transport=my_transport_factory)

    - hub_url: hub host (optionally with http:// or https://)
    - transport: "socketio" | zero-argument callable returning a Transport
    - auto_connect: run connect() before returning
    - **options: any PublisherOptions field, plus on_connect / on_metadata_request /
      on_disconnect / on_not_registered hooks
    """
    hook_names = ("on_connect", "on_metadata_request", "on_disconnect", "on_not_registered")
    hooks = {name: options.pop(name) for name in hook_names if name in options}
    opts = PublisherOptions(hub_url=hub_url, **options)
    for name, hook in hooks.items():
        setattr(opts.hooks, name, hook)

    # Resolve transport
    if isinstance(transport, str):
        tlabel = transport.lower()
        if tlabel == "socketio":
            factory = None  # publisher builds the socket.io transport from opts
        else:
            raise ValueError(f"Unknown transport label: {transport}")
    else:
        factory = transport

    pub = QRYPublisher(opts, transport_factory=factory)
    if auto_connect:
        pub.connect()
    return pub
