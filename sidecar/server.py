import os
import socket

import uvicorn


def find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def start_server(app, port: int):
    # In web mode, bind to all interfaces; otherwise localhost only
    require_auth = os.getenv("REQUIRE_AUTH", "").lower() == "true"
    host = "0.0.0.0" if require_auth else "127.0.0.1"
    print(f"PORT:{port}", flush=True)
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=os.getenv("UVICORN_LOG_LEVEL", "warning"),
    )
