"""
证书获取器测试
"""
import socket
import ssl
import time
from datetime import datetime, timezone, timedelta
from unittest.mock import patch, MagicMock, ANY

import pytest

from site_safety_checker.services.certificate_fetcher import (
    CertificateFetcher,
    NO_CERTIFICATE_ISSUE,
    NOT_HTTPS_ISSUE,
)
from site_safety_checker.services.error_handler import CertificateFetchError


EXAMPLE_ADDRESSES = [
    (socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP, '', ('93.184.216.34', 443)),
    (socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP, '', ('93.184.216.35', 443)),
]


class TestCertificateFetcher:
    """证书获取器测试类"""

    def setup_method(self):
        """测试前准备"""
        self.fetcher = CertificateFetcher(timeout=2)

    def test_parse_target(self):
        """测试URL解析"""
        assert self.fetcher._parse_target("https://example.com") == ("example.com", 443, "/")
        assert self.fetcher._parse_target("https://Example.com:8443/a/b?x=1") == ("example.com", 8443, "/a/b?x=1")

    @patch('site_safety_checker.services.certificate_fetcher.socket.create_connection')
    def test_non_https_makes_no_connection(self, mock_connection):
        """非HTTPS地址不发起网络连接"""
        with pytest.raises(CertificateFetchError) as exc_info:
            self.fetcher.fetch("http://example.com")

        assert exc_info.value.issue == NOT_HTTPS_ISSUE
        mock_connection.assert_not_called()

    def test_invalid_port(self):
        with pytest.raises(CertificateFetchError, match="Error checking SSL"):
            self.fetcher.fetch("https://example.com:99999/")

    def test_missing_hostname(self):
        with pytest.raises(CertificateFetchError, match="Error checking SSL"):
            self.fetcher.fetch("https:///path")

    def test_create_context_disables_verification(self):
        """传输层关闭证书链和主机名校验"""
        context = self.fetcher._create_context()

        assert context.check_hostname is False
        assert context.verify_mode == ssl.CERT_NONE

    @patch.object(CertificateFetcher, '_send_head_request')
    @patch.object(CertificateFetcher, '_create_context')
    @patch.object(CertificateFetcher, '_resolve', return_value=EXAMPLE_ADDRESSES)
    @patch('site_safety_checker.services.certificate_fetcher.socket.create_connection')
    def test_fetch_success(self, mock_connection, mock_resolve, mock_context, mock_head, der_certificate):
        """测试成功获取并解析证书"""
        not_after = datetime(2031, 1, 1, tzinfo=timezone.utc)
        der = der_certificate(common_name="example.com",
                              alt_names=["example.com", "www.example.com"],
                              not_after=not_after)

        mock_sock = MagicMock()
        mock_connection.return_value.__enter__.return_value = mock_sock

        mock_ssl_sock = MagicMock()
        mock_ssl_sock.getpeercert.return_value = der
        mock_context.return_value.wrap_socket.return_value.__enter__.return_value = mock_ssl_sock

        cert_info = self.fetcher.fetch("https://example.com/login")

        assert cert_info.subject_common_name == "example.com"
        assert cert_info.subject_alt_names == ["example.com", "www.example.com"]
        assert cert_info.valid_to == not_after
        assert cert_info.valid_from.tzinfo is not None

        mock_resolve.assert_called_once_with("example.com", 443, ANY)
        mock_connection.assert_called_once_with(("93.184.216.34", 443), timeout=ANY)
        assert 0 < mock_connection.call_args.kwargs['timeout'] <= 2
        mock_context.return_value.wrap_socket.assert_called_once_with(mock_sock, server_hostname="example.com")
        mock_ssl_sock.getpeercert.assert_called_once_with(binary_form=True)
        mock_head.assert_called_once_with(mock_ssl_sock, "example.com", 443, "/login", ANY)

    @patch.object(CertificateFetcher, '_send_head_request')
    @patch.object(CertificateFetcher, '_create_context')
    @patch.object(CertificateFetcher, '_resolve', return_value=EXAMPLE_ADDRESSES)
    @patch('site_safety_checker.services.certificate_fetcher.socket.create_connection')
    def test_fetch_empty_certificate(self, mock_connection, mock_resolve, mock_context, mock_head):
        """服务器未出示证书"""
        mock_ssl_sock = MagicMock()
        mock_ssl_sock.getpeercert.return_value = None
        mock_context.return_value.wrap_socket.return_value.__enter__.return_value = mock_ssl_sock

        with pytest.raises(CertificateFetchError) as exc_info:
            self.fetcher.fetch("https://example.com")

        assert exc_info.value.issue == NO_CERTIFICATE_ISSUE

    def test_parse_malformed_certificate(self):
        """无法解析的证书数据按证书缺失处理"""
        with pytest.raises(CertificateFetchError) as exc_info:
            self.fetcher._parse_certificate(b"not a certificate")

        assert exc_info.value.issue == NO_CERTIFICATE_ISSUE

    def test_parse_certificate_without_san(self, der_certificate):
        cert_info = self.fetcher._parse_certificate(der_certificate(common_name="example.com"))

        assert cert_info.subject_common_name == "example.com"
        assert cert_info.subject_alt_names == []

    def test_parse_certificate_without_common_name(self, der_certificate):
        cert_info = self.fetcher._parse_certificate(der_certificate(alt_names=["example.com"]))

        assert cert_info.subject_common_name is None
        assert cert_info.subject_alt_names == ["example.com"]

    @patch('site_safety_checker.services.certificate_fetcher.socket.getaddrinfo')
    def test_dns_failure(self, mock_getaddrinfo):
        mock_getaddrinfo.side_effect = socket.gaierror(-2, "Name or service not known")

        with pytest.raises(CertificateFetchError) as exc_info:
            self.fetcher.fetch("https://nonexistent.invalid")

        assert exc_info.value.issue.startswith("SSL connection error: DNS lookup failed for nonexistent.invalid")

    @patch('site_safety_checker.services.certificate_fetcher.socket.getaddrinfo')
    def test_slow_dns_bounded_by_timeout(self, mock_getaddrinfo):
        """DNS解析超过截止时间时直接返回超时"""
        mock_getaddrinfo.side_effect = lambda *args: time.sleep(1.5) or EXAMPLE_ADDRESSES
        fetcher = CertificateFetcher(timeout=0.3)

        start = time.monotonic()
        with pytest.raises(CertificateFetchError) as exc_info:
            fetcher.fetch("https://example.com")
        elapsed = time.monotonic() - start

        assert exc_info.value.issue == "Connection timed out"
        assert elapsed < 1.2

    @patch.object(CertificateFetcher, '_resolve', return_value=EXAMPLE_ADDRESSES)
    @patch('site_safety_checker.services.certificate_fetcher.socket.create_connection')
    def test_next_address_tried_after_failure(self, mock_connection, mock_resolve):
        """第一个地址连接失败时尝试下一个地址"""
        mock_connection.side_effect = [ConnectionRefusedError(), ConnectionResetError("reset")]

        with pytest.raises(CertificateFetchError) as exc_info:
            self.fetcher.fetch("https://example.com")

        assert mock_connection.call_count == 2
        assert mock_connection.call_args.args[0] == ("93.184.216.35", 443)
        assert exc_info.value.issue == "SSL connection error: connection reset by example.com:443"

    @patch.object(CertificateFetcher, '_resolve', return_value=EXAMPLE_ADDRESSES)
    @patch('site_safety_checker.services.certificate_fetcher.socket.create_connection')
    def test_connect_timeout(self, mock_connection, mock_resolve):
        """连接超时不再尝试其他地址"""
        mock_connection.side_effect = socket.timeout("timed out")

        with pytest.raises(CertificateFetchError) as exc_info:
            self.fetcher.fetch("https://example.com")

        assert exc_info.value.issue == "Connection timed out"
        assert mock_connection.call_count == 1

    def test_remaining_after_deadline(self):
        """超过截止时间时抛出超时"""
        with pytest.raises(socket.timeout):
            CertificateFetcher._remaining(time.monotonic() - 1)


class TestCertificateFetcherLoopback:
    """使用本地TLS服务器的证书获取测试"""

    def test_fetch_self_signed_certificate(self, tls_server):
        """自签名证书同样可以取回"""
        server = tls_server(common_name="localhost", alt_names=["localhost", "*.localhost"])
        fetcher = CertificateFetcher(timeout=3)

        cert_info = fetcher.fetch(f"https://127.0.0.1:{server.port}/health?check=1")

        assert cert_info.subject_common_name == "localhost"
        assert cert_info.subject_alt_names == ["localhost", "*.localhost"]
        assert server.requests[0].startswith("HEAD /health?check=1 HTTP/1.1")
        assert f"Host: 127.0.0.1:{server.port}" in server.requests[0]

    def test_fetch_expired_certificate(self, tls_server):
        """过期证书同样可以取回"""
        now = datetime.now(timezone.utc)
        server = tls_server(common_name="localhost",
                            not_before=now - timedelta(days=365),
                            not_after=now - timedelta(days=1))

        cert_info = CertificateFetcher(timeout=3).fetch(f"https://127.0.0.1:{server.port}/")

        assert cert_info.valid_to < now

    def test_handshake_timeout(self, silent_server):
        """服务器不响应握手时在超时时间内返回"""
        fetcher = CertificateFetcher(timeout=0.5)

        start = time.monotonic()
        with pytest.raises(CertificateFetchError) as exc_info:
            fetcher.fetch(f"https://127.0.0.1:{silent_server}/")
        elapsed = time.monotonic() - start

        assert exc_info.value.issue == "Connection timed out"
        assert elapsed < 3

    def test_slow_response_headers_bounded_by_timeout(self, tls_server):
        """握手完成后逐行缓慢返回响应头时，整体耗时仍受超时时间约束"""
        server = tls_server(common_name="localhost", header_delay=0.5)
        fetcher = CertificateFetcher(timeout=1)

        start = time.monotonic()
        with pytest.raises(CertificateFetchError) as exc_info:
            fetcher.fetch(f"https://127.0.0.1:{server.port}/")
        elapsed = time.monotonic() - start

        assert exc_info.value.issue == "Connection timed out"
        assert elapsed < 2.5

    def test_connection_refused(self, closed_port):
        with pytest.raises(CertificateFetchError) as exc_info:
            CertificateFetcher(timeout=2).fetch(f"https://127.0.0.1:{closed_port}/")

        assert exc_info.value.issue == f"SSL connection error: connection refused by 127.0.0.1:{closed_port}"
