"""
测试公共夹具：生成测试证书并启动本地TLS服务器
"""
import socket
import ssl
import threading
from datetime import datetime, timezone, timedelta

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID


def make_certificate(common_name=None, alt_names=(), not_before=None, not_after=None):
    """
    生成自签名证书

    Returns:
        tuple: (x509.Certificate, 私钥)
    """
    now = datetime.now(timezone.utc)
    not_before = not_before or now - timedelta(days=1)
    not_after = not_after or now + timedelta(days=90)

    key = ec.generate_private_key(ec.SECP256R1())
    attributes = [x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test Org")]
    if common_name:
        attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    name = x509.Name(attributes)

    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
    )
    if alt_names:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(n) for n in alt_names]),
            critical=False,
        )

    return builder.sign(key, hashes.SHA256()), key


def certificate_der(**kwargs) -> bytes:
    cert, _ = make_certificate(**kwargs)
    return cert.public_bytes(serialization.Encoding.DER)


class LoopbackTLSServer:
    """
    在 127.0.0.1 上运行的简单HTTPS服务器，对任何请求返回 200

    header_delay 大于0时，状态行之后每隔 header_delay 秒才发送一行响应头。
    """

    def __init__(self, cert, key, tmp_path, header_delay=0):
        certfile = tmp_path / "server.pem"
        keyfile = tmp_path / "server.key"
        certfile.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
        keyfile.write_bytes(key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ))

        self.context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        self.context.load_cert_chain(str(certfile), str(keyfile))

        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(('127.0.0.1', 0))
        self.sock.listen(5)
        self.sock.settimeout(0.2)
        self.port = self.sock.getsockname()[1]
        self.requests = []
        self.header_delay = header_delay

        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self):
        while not self._stop.is_set():
            try:
                conn, _ = self.sock.accept()
            except socket.timeout:
                continue
            except OSError:
                break

            conn.settimeout(2)
            try:
                with self.context.wrap_socket(conn, server_side=True) as tls:
                    data = b''
                    while b'\r\n\r\n' not in data:
                        chunk = tls.recv(4096)
                        if not chunk:
                            break
                        data += chunk
                    self.requests.append(data.decode('ascii', errors='replace'))
                    self._respond(tls)
            except OSError:
                conn.close()

    def _respond(self, tls):
        if not self.header_delay:
            tls.sendall(b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\nConnection: close\r\n\r\n")
            return

        tls.sendall(b"HTTP/1.1 200 OK\r\n")
        for i in range(20):
            if self._stop.wait(self.header_delay):
                return
            tls.sendall(f"X-Slow-{i}: 1\r\n".encode('ascii'))
        tls.sendall(b"\r\n")

    def stop(self):
        self._stop.set()
        self._thread.join(timeout=2)
        self.sock.close()


@pytest.fixture
def tls_server(tmp_path):
    """
    启动本地TLS服务器的工厂夹具

    用法: server = tls_server(common_name="localhost", alt_names=["localhost"])
    缓慢响应: server = tls_server(common_name="localhost", header_delay=0.5)
    """
    servers = []

    def start(header_delay=0, **cert_kwargs):
        cert, key = make_certificate(**cert_kwargs)
        server = LoopbackTLSServer(cert, key, tmp_path, header_delay=header_delay)
        servers.append(server)
        return server

    yield start

    for server in servers:
        server.stop()


@pytest.fixture
def silent_server():
    """接受TCP连接但从不完成TLS握手的服务器端口"""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(('127.0.0.1', 0))
    sock.listen(5)
    yield sock.getsockname()[1]
    sock.close()


@pytest.fixture
def closed_port():
    """一个当前没有监听的本地端口"""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(('127.0.0.1', 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture
def der_certificate():
    """生成DER证书的工厂夹具"""
    return certificate_der
