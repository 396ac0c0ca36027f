import threading

import pytest

from file_server import Server, ServerConfig

PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f"
    b"\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)


@pytest.fixture
def www(tmp_path):
    root = tmp_path / "www"
    root.mkdir()
    (root / "index.html").write_bytes(b"hi")
    (root / "image.png").write_bytes(PNG_BYTES)
    (root / "notes").write_bytes(b"no extension\r\n")
    (root / "big.zip").write_bytes(bytes(range(256)) * 1024)
    (root / "docs").mkdir()
    (root / "docs" / "readme.txt").write_bytes(b"line one\nline two\n")
    (tmp_path / "secret.txt").write_bytes(b"outside the root")
    (root / "link.txt").symlink_to(tmp_path / "secret.txt")
    (root / "alias.html").symlink_to(root / "index.html")
    return root


@pytest.fixture
def live_server(www):
    server = Server(ServerConfig('127.0.0.1', 0, str(www)))
    server.bind()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.address[1]}"
    server.close()
    thread.join(timeout=5)
