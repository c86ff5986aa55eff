"""
SSL证书获取服务
"""
import ssl
import socket
import time
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import List, Optional, Tuple
from urllib.parse import urlsplit

from cryptography import x509
from cryptography.x509.oid import NameOID

from ..interfaces import CertificateFetcherInterface
from ..models import CertificateInfo
from .error_handler import CertificateFetchError, NetworkErrorHandler


NOT_HTTPS_ISSUE = "Not using HTTPS (secure connection)"
NO_CERTIFICATE_ISSUE = "No SSL certificate found"
TIMEOUT_ISSUE = "Connection timed out"

MAX_HEADER_BYTES = 65536


class CertificateFetcher(CertificateFetcherInterface):
    """
    证书获取器

    只完成TLS握手并发送一次HEAD请求，用于读取服务器出示的叶子证书。
    证书链与主机名校验在传输层关闭，过期或自签名的证书同样可以取回。
    """

    def __init__(self, timeout: float = 5.0, error_handler: Optional[NetworkErrorHandler] = None):
        """
        初始化证书获取器

        Args:
            timeout: 整体超时时间（秒），覆盖连接、握手和HEAD请求
            error_handler: 网络错误处理器
        """
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)
        self.error_handler = error_handler or NetworkErrorHandler()

    def fetch(self, url: str) -> CertificateInfo:
        """
        获取URL对应服务器的证书信息

        Args:
            url: 要检查的绝对URL

        Returns:
            CertificateInfo: 证书信息

        Raises:
            CertificateFetchError: 非HTTPS、连接失败、超时或证书缺失
        """
        host, port, path = self._parse_target(url)

        try:
            cert_der = self._get_peer_certificate(host, port, path)
        except OSError as e:
            raise CertificateFetchError(
                self.error_handler.describe_connection_error(host, port, e)
            ) from e
        except ValueError as e:
            raise CertificateFetchError(f"Error checking SSL: {e}") from e

        if not cert_der:
            raise CertificateFetchError(NO_CERTIFICATE_ISSUE)

        return self._parse_certificate(cert_der)

    def _parse_target(self, url: str) -> Tuple[str, int, str]:
        """
        解析URL，得到主机、端口和请求路径

        Raises:
            CertificateFetchError: 非HTTPS或URL不合法
        """
        try:
            parts = urlsplit(url)
            scheme = parts.scheme.lower()
            host = parts.hostname
            port = parts.port or 443
        except ValueError as e:
            raise CertificateFetchError(f"Error checking SSL: {e}") from e

        if scheme != 'https':
            raise CertificateFetchError(NOT_HTTPS_ISSUE)

        if not host:
            raise CertificateFetchError(f"Error checking SSL: no hostname in {url!r}")

        path = parts.path or '/'
        if parts.query:
            path = f"{path}?{parts.query}"

        return host, port, path

    def _create_context(self) -> ssl.SSLContext:
        """创建不校验证书链和主机名的客户端上下文（仍发送SNI）"""
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    def _get_peer_certificate(self, host: str, port: int, path: str) -> bytes:
        """
        建立TLS连接，发送HEAD请求并返回DER格式的叶子证书

        DNS解析、连接、握手和HEAD请求的每次读写都使用同一个截止时间的剩余时间。

        Args:
            host: 主机名
            port: 端口
            path: 请求路径

        Returns:
            bytes: DER证书，服务器未出示证书时为空

        Raises:
            socket.timeout: 超过整体超时时间
            OSError: 解析、连接或TLS握手失败
        """
        deadline = time.monotonic() + self.timeout
        context = self._create_context()

        with self._connect(host, port, deadline) as sock:
            sock.settimeout(self._remaining(deadline))
            with context.wrap_socket(sock, server_hostname=host) as ssock:
                cert_der = ssock.getpeercert(binary_form=True)
                self._send_head_request(ssock, host, port, path, deadline)

        return cert_der

    def _resolve(self, host: str, port: int, deadline: float) -> list:
        """
        在后台线程中解析主机名，等待时间不超过截止时间

        Returns:
            list: socket.getaddrinfo 的结果
        """
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(socket.getaddrinfo, host, port, 0, socket.SOCK_STREAM)
            return future.result(timeout=self._remaining(deadline))
        except FutureTimeoutError as e:
            raise socket.timeout(TIMEOUT_ISSUE) from e
        finally:
            executor.shutdown(wait=False)

    def _connect(self, host: str, port: int, deadline: float) -> socket.socket:
        """依次尝试解析出的地址，每次连接只使用剩余时间"""
        last_error = None
        for _, _, _, _, sockaddr in self._resolve(host, port, deadline):
            try:
                return socket.create_connection(sockaddr[:2], timeout=self._remaining(deadline))
            except socket.timeout:
                raise
            except OSError as e:
                last_error = e

        if last_error is None:
            raise socket.gaierror(f"no addresses for {host}")
        raise last_error

    def _send_head_request(self, ssock: ssl.SSLSocket, host: str, port: int, path: str, deadline: float):
        """发送HEAD请求，读取到响应头结束为止"""
        host_header = host if port == 443 else f"{host}:{port}"
        request = (
            f"HEAD {path} HTTP/1.1\r\n"
            f"Host: {host_header}\r\n"
            f"User-Agent: site-safety-checker\r\n"
            f"Connection: close\r\n\r\n"
        )
        ssock.settimeout(self._remaining(deadline))
        ssock.sendall(request.encode('ascii', errors='ignore'))

        response = b''
        while b'\r\n\r\n' not in response and len(response) < MAX_HEADER_BYTES:
            # 每次读取前重新计算，整个响应头受同一截止时间约束
            ssock.settimeout(self._remaining(deadline))
            chunk = ssock.recv(4096)
            if not chunk:
                break
            response += chunk

        status_line = response.split(b'\r\n', 1)[0].decode('latin-1')
        self.logger.debug(f"{host}:{port} HEAD {path} -> {status_line or '连接已关闭'}")

    @staticmethod
    def _remaining(deadline: float) -> float:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise socket.timeout(TIMEOUT_ISSUE)
        return remaining

    def _parse_certificate(self, cert_der: bytes) -> CertificateInfo:
        """
        解析DER证书

        Raises:
            CertificateFetchError: 证书数据无法解析
        """
        try:
            cert = x509.load_der_x509_certificate(cert_der)
            return CertificateInfo(
                valid_from=cert.not_valid_before_utc,
                valid_to=cert.not_valid_after_utc,
                subject_common_name=self._get_common_name(cert),
                subject_alt_names=self._get_alt_names(cert),
            )
        except ValueError as e:
            self.logger.warning(f"证书数据无法解析: {e}")
            raise CertificateFetchError(NO_CERTIFICATE_ISSUE) from e

    @staticmethod
    def _get_common_name(cert: x509.Certificate) -> Optional[str]:
        attrs = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        return str(attrs[0].value) if attrs else None

    @staticmethod
    def _get_alt_names(cert: x509.Certificate) -> List[str]:
        """读取SAN扩展中的DNS名称，没有该扩展时返回空列表"""
        try:
            san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        except x509.ExtensionNotFound:
            return []
        return san.value.get_values_for_type(x509.DNSName)
