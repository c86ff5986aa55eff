"""
SSL证书评估服务
"""
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional
from urllib.parse import urlsplit

from ..interfaces import CertificateEvaluatorInterface, CertificateFetcherInterface
from ..models import CertificateInfo, ValidationResult
from .certificate_fetcher import CertificateFetcher
from .domain_matcher import matches_domain
from .error_handler import CertificateFetchError


class CertificateEvaluator(CertificateEvaluatorInterface):
    """证书评估器：检查有效期和主机名匹配"""

    def __init__(self, fetcher: Optional[CertificateFetcherInterface] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        初始化证书评估器

        Args:
            fetcher: 证书获取器，默认使用5秒超时的 CertificateFetcher
            clock: 返回当前UTC时间的函数
        """
        self.fetcher = fetcher or CertificateFetcher()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = logging.getLogger(__name__)

    def evaluate(self, url: str) -> ValidationResult:
        """
        评估URL对应服务器的证书

        Args:
            url: 要检查的URL

        Returns:
            ValidationResult: 评估结果，网络错误同样以问题描述返回
        """
        try:
            cert_info = self.fetcher.fetch(url)
        except CertificateFetchError as e:
            self.logger.info(f"{url} 证书获取失败: {e.issue}")
            return ValidationResult(issues=[e.issue])

        hostname = urlsplit(url).hostname or ''
        issues = []

        issues.extend(self._check_validity_window(cert_info))
        issues.extend(self._check_hostname(cert_info, hostname))

        return ValidationResult(issues=issues)

    def _check_validity_window(self, cert_info: CertificateInfo) -> List[str]:
        now = self.clock()
        if cert_info.is_within_validity(now):
            return []

        return [
            f"Certificate expired or not yet valid "
            f"(valid from {cert_info.valid_from.date().isoformat()} "
            f"to {cert_info.valid_to.date().isoformat()})"
        ]

    def _check_hostname(self, cert_info: CertificateInfo, hostname: str) -> List[str]:
        """CN不匹配时依次检查SAN，全部不匹配则报告域名不一致"""
        if matches_domain(hostname, cert_info.subject_common_name):
            return []

        for alt_name in cert_info.subject_alt_names:
            if matches_domain(hostname, alt_name):
                return []

        cert_name = cert_info.subject_common_name or 'unknown'
        return [f"Certificate domain mismatch (cert: {cert_name}, requested: {hostname})"]
