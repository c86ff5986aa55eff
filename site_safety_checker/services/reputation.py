"""
VirusTotal URL信誉服务
"""
import logging
from typing import Any, Dict, Optional

import requests

from ..interfaces import ReputationServiceInterface
from ..models import ReputationVerdict
from .error_handler import NetworkErrorHandler


class VirusTotalClient(ReputationServiceInterface):
    """VirusTotal v3 API 客户端"""

    BASE_URL = "https://www.virustotal.com/api/v3"

    def __init__(self, api_key: str, session: Optional[requests.Session] = None,
                 timeout: float = 15.0, error_handler: Optional[NetworkErrorHandler] = None):
        """
        初始化VirusTotal客户端

        Args:
            api_key: VirusTotal API密钥
            session: HTTP会话，默认新建
            timeout: 单次请求超时时间（秒）
            error_handler: 网络错误处理器（提供重试）
        """
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout
        self.error_handler = error_handler or NetworkErrorHandler()
        self.logger = logging.getLogger(__name__)

    def scan_url(self, url: str) -> ReputationVerdict:
        """
        提交URL扫描并读取分析报告

        Args:
            url: 要扫描的URL

        Returns:
            ReputationVerdict: 扫描结论

        Raises:
            requests.RequestException: API调用失败
            ValueError: 响应格式不符合预期
        """
        analysis_id = self.error_handler.with_retry(self._submit_url, url)
        self.logger.debug(f"VirusTotal 分析ID: {analysis_id}")

        report = self.error_handler.with_retry(self._get_analysis, analysis_id)
        stats = report.get('stats') or {}

        verdict = ReputationVerdict(
            analysis_id=analysis_id,
            malicious=int(stats.get('malicious', 0)),
            suspicious=int(stats.get('suspicious', 0)),
            harmless=int(stats.get('harmless', 0)),
            undetected=int(stats.get('undetected', 0)),
        )

        self.logger.info(
            f"VirusTotal 结果 - URL: {url}, 恶意: {verdict.malicious}, 可疑: {verdict.suspicious}, "
            f"状态: {report.get('status', 'unknown')}"
        )
        return verdict

    def _headers(self) -> Dict[str, str]:
        return {'accept': 'application/json', 'x-apikey': self.api_key}

    def _submit_url(self, url: str) -> str:
        response = self.session.post(
            f"{self.BASE_URL}/urls",
            data={'url': url},
            headers=self._headers(),
            timeout=self.timeout,
        )
        response.raise_for_status()

        try:
            return response.json()['data']['id']
        except (KeyError, TypeError) as e:
            raise ValueError(f"VirusTotal 提交响应缺少分析ID: {e}") from e

    def _get_analysis(self, analysis_id: str) -> Dict[str, Any]:
        response = self.session.get(
            f"{self.BASE_URL}/analyses/{analysis_id}",
            headers=self._headers(),
            timeout=self.timeout,
        )
        response.raise_for_status()

        try:
            return response.json()['data']['attributes']
        except (KeyError, TypeError) as e:
            raise ValueError(f"VirusTotal 分析报告格式无效: {e}") from e
