"""
AbstractAPI 电话号码校验服务
"""
import logging
from typing import Any, Dict, Optional

import requests

from ..interfaces import PhoneValidationServiceInterface
from ..models import PhoneLookup
from .error_handler import NetworkErrorHandler


INVALID_NUMBER_RISK = 70
VOIP_RISK = 30
MAX_RISK_SCORE = 100


def calculate_risk_score(valid: bool, line_type: Optional[str]) -> int:
    """
    根据号码有效性和线路类型计算风险分

    Args:
        valid: 号码是否有效
        line_type: 线路类型

    Returns:
        int: 0-100 的风险分
    """
    risk_score = 0
    if not valid:
        risk_score += INVALID_NUMBER_RISK
    if (line_type or '').lower() == 'voip':
        risk_score += VOIP_RISK
    return min(risk_score, MAX_RISK_SCORE)


def _text(data: Dict[str, Any], key: str, field: Optional[str] = None) -> Optional[str]:
    """
    读取响应中的字符串字段，字段类型不符时返回None

    Args:
        data: 响应数据
        key: 字段名
        field: 字段为对象时读取的子字段
    """
    value = data.get(key)
    if field is not None and isinstance(value, dict):
        value = value.get(field)
    return value if isinstance(value, str) else None


class AbstractPhoneClient(PhoneValidationServiceInterface):
    """AbstractAPI Phone Validation 客户端"""

    BASE_URL = "https://phonevalidation.abstractapi.com/v1/"

    def __init__(self, api_key: str, session: Optional[requests.Session] = None,
                 timeout: float = 15.0, error_handler: Optional[NetworkErrorHandler] = None):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout
        self.error_handler = error_handler or NetworkErrorHandler()
        self.logger = logging.getLogger(__name__)

    def lookup(self, phone_number: str) -> PhoneLookup:
        """
        查询号码信息并计算风险分

        Args:
            phone_number: E.164 格式的号码

        Returns:
            PhoneLookup: 查询结果

        Raises:
            requests.RequestException: API调用失败
            ValueError: 响应为空或格式无效
        """
        data = self.error_handler.with_retry(self._request, phone_number)

        valid = bool(data.get('valid'))
        line_type = _text(data, 'type') or "Unknown"
        country = _text(data, 'country', 'name') or "Unknown"
        formatted = _text(data, 'format', 'international') or phone_number

        lookup = PhoneLookup(
            phone_number=phone_number,
            country=country,
            carrier=_text(data, 'carrier') or "Unknown",
            line_type=line_type,
            risk_score=calculate_risk_score(valid, line_type),
            details={
                'valid': valid,
                'formatted': formatted,
                'location': _text(data, 'location') or "",
                # AbstractAPI 不提供垃圾号码举报数
                'spamReports': 0,
            },
        )

        self.logger.info(
            f"AbstractAPI 结果 - 号码: {phone_number}, 有效: {valid}, "
            f"类型: {line_type}, 风险分: {lookup.risk_score}"
        )
        return lookup

    def _request(self, phone_number: str) -> Dict[str, Any]:
        response = self.session.get(
            self.BASE_URL,
            params={'api_key': self.api_key, 'phone': phone_number},
            timeout=self.timeout,
        )
        response.raise_for_status()

        data = response.json()
        if not data or not isinstance(data, dict):
            raise ValueError("Invalid response from AbstractAPI")
        return data
