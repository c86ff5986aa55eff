"""
URL与电话号码安全检查编排
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from .interfaces import (
    CertificateEvaluatorInterface,
    HistoryStoreInterface,
    PhoneValidationServiceInterface,
    ReputationServiceInterface,
)
from .models import PhoneCheck, UrlCheck
from .services.config import DEFAULT_HISTORY_LIMIT
from .services.error_handler import (
    InvalidInputError,
    NetworkErrorHandler,
    ServiceConfigurationError,
    UpstreamServiceError,
)
from .services.input_validator import InputValidator
from .services.logger import LoggerService


URL_ERROR_PREFIX = "Unable to check URL with VirusTotal. "
PHONE_ERROR_PREFIX = "Unable to check phone number with AbstractAPI. "


class SafetyCheckService:
    """
    检查编排器

    先调用信誉服务，HTTPS地址再做本地证书检查，合并结果后写入历史记录。
    证书问题只会改写结果描述，不影响 isSafe。
    """

    def __init__(self,
                 reputation_service: Optional[ReputationServiceInterface],
                 phone_service: Optional[PhoneValidationServiceInterface],
                 certificate_evaluator: CertificateEvaluatorInterface,
                 history_store: HistoryStoreInterface,
                 logger_service: LoggerService,
                 history_limit: int = DEFAULT_HISTORY_LIMIT,
                 input_validator: Optional[InputValidator] = None,
                 error_handler: Optional[NetworkErrorHandler] = None):
        """
        初始化检查编排器

        Args:
            reputation_service: URL信誉服务，未配置密钥时为None
            phone_service: 电话号码校验服务，未配置密钥时为None
            certificate_evaluator: 证书评估器
            history_store: 历史记录存储
            logger_service: 日志服务
            history_limit: 响应中返回的历史记录条数
            input_validator: 参数校验器
            error_handler: 网络错误处理器
        """
        self.reputation_service = reputation_service
        self.phone_service = phone_service
        self.certificate_evaluator = certificate_evaluator
        self.history_store = history_store
        self.logger_service = logger_service
        self.history_limit = history_limit
        self.input_validator = input_validator or InputValidator()
        self.error_handler = error_handler or NetworkErrorHandler()

    def check_url(self, url: Optional[str]) -> Dict[str, Any]:
        """
        检查URL安全性

        Args:
            url: 用户提交的URL

        Returns:
            Dict[str, Any]: 响应内容

        Raises:
            InvalidInputError: URL缺失或格式无效
            ServiceConfigurationError: 未配置VirusTotal密钥
            UpstreamServiceError: VirusTotal调用失败
        """
        if not url:
            raise InvalidInputError("URL is required")

        if not self.input_validator.validate_url(url):
            raise InvalidInputError("Invalid URL format")

        if self.reputation_service is None:
            raise ServiceConfigurationError("VirusTotal API key not configured")

        self.logger_service.log_check_start('url', url)

        try:
            verdict = self.reputation_service.scan_url(url)
        except (requests.RequestException, ValueError) as e:
            self.logger_service.log_error(url, e)
            message, status = self.error_handler.describe_api_error(URL_ERROR_PREFIX, e)
            raise UpstreamServiceError(message, status) from e

        is_safe = verdict.is_safe
        result = verdict.summary

        ssl_result = None
        ssl_issues: List[str] = []
        if url.lower().startswith('https://'):
            ssl_result = self.certificate_evaluator.evaluate(url)
            ssl_issues = ssl_result.issues

        has_ssl_issues = bool(ssl_issues)
        if has_ssl_issues and is_safe:
            result = f"No malware detected, but SSL certificate has issues: {'; '.join(ssl_issues)}"

        self.logger_service.log_url_result(url, is_safe, ssl_result)

        self.history_store.add_url_check(UrlCheck(
            url=url,
            is_safe=is_safe,
            result=result,
            checked_at=datetime.now(timezone.utc),
        ))

        response = {
            'url': url,
            'isSafe': is_safe,
            'result': result,
            'hasSslIssues': has_ssl_issues,
            'history': self.url_history(),
        }
        if has_ssl_issues:
            response['sslIssues'] = ssl_issues
        return response

    def check_phone(self, phone_number: Optional[str]) -> Dict[str, Any]:
        """
        检查电话号码安全性

        Args:
            phone_number: 用户提交的号码

        Returns:
            Dict[str, Any]: 响应内容

        Raises:
            InvalidInputError: 号码缺失或格式无效
            ServiceConfigurationError: 未配置AbstractAPI密钥
            UpstreamServiceError: AbstractAPI调用失败
        """
        if not phone_number:
            raise InvalidInputError("Phone number is required")

        if not self.input_validator.validate_phone_number(phone_number):
            raise InvalidInputError("Invalid phone number format")

        if self.phone_service is None:
            raise ServiceConfigurationError("AbstractAPI API key not configured")

        formatted_number = self.input_validator.normalize_phone_number(phone_number)
        self.logger_service.log_check_start('phone', formatted_number)

        try:
            lookup = self.phone_service.lookup(formatted_number)
        except (requests.RequestException, ValueError) as e:
            self.logger_service.log_error(formatted_number, e)
            message, status = self.error_handler.describe_api_error(PHONE_ERROR_PREFIX, e)
            raise UpstreamServiceError(message, status) from e

        self.logger_service.log_phone_result(lookup)

        self.history_store.add_phone_check(PhoneCheck(
            phone_number=lookup.phone_number,
            is_safe=lookup.is_safe,
            country=lookup.country,
            carrier=lookup.carrier,
            line_type=lookup.line_type,
            risk_score=lookup.risk_score,
            details=lookup.details,
            checked_at=datetime.now(timezone.utc),
        ))

        response = lookup.to_dict()
        response['isSafe'] = lookup.is_safe
        response['history'] = self.phone_history()
        return response

    def url_history(self) -> List[Dict[str, Any]]:
        return [check.to_dict() for check in self.history_store.get_recent_url_checks(self.history_limit)]

    def phone_history(self) -> List[Dict[str, Any]]:
        return [check.to_dict() for check in self.history_store.get_recent_phone_checks(self.history_limit)]
