"""
错误处理服务
"""
import socket
import ssl
import time
from typing import Callable, Any, Optional, Tuple
import logging

import requests


class SafetyCheckError(Exception):
    """检查流程中需要以HTTP状态码返回给调用方的错误"""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidInputError(SafetyCheckError):
    """请求参数不合法"""

    status_code = 400


class ServiceConfigurationError(SafetyCheckError):
    """服务配置缺失（如API密钥未设置）"""

    status_code = 500


class UpstreamServiceError(SafetyCheckError):
    """第三方服务调用失败"""

    status_code = 500


class CertificateFetchError(Exception):
    """证书获取失败，issue 为可直接展示给用户的描述"""

    def __init__(self, issue: str):
        super().__init__(issue)
        self.issue = issue


class NetworkErrorHandler:
    """网络错误处理器"""

    def __init__(self, max_retries: int = 2, base_delay: float = 1.0):
        """
        初始化网络错误处理器

        Args:
            max_retries: 最大重试次数
            base_delay: 基础延迟时间（秒）
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.logger = logging.getLogger(__name__)

        # 可重试的网络错误类型
        self.retryable_errors = {
            requests.ConnectionError,
            requests.Timeout,
        }

        # 可重试的上游HTTP状态码
        self.retryable_status_codes = {500, 502, 503, 504}

    def with_retry(self, func: Callable, *args, **kwargs) -> Any:
        """
        带重试机制执行函数

        Args:
            func: 要执行的函数
            *args: 函数参数
            **kwargs: 函数关键字参数

        Returns:
            Any: 函数执行结果

        Raises:
            Exception: 不可重试的异常，或重试次数用尽后的最后一个异常
        """
        for attempt in range(self.max_retries + 1):
            try:
                return func(*args, **kwargs)

            except Exception as e:
                if not self._is_retryable_error(e):
                    self.logger.error(f"不可重试的错误: {type(e).__name__}: {str(e)}")
                    raise

                if attempt == self.max_retries:
                    self.logger.error(f"重试次数用尽，最终失败: {type(e).__name__}: {str(e)}")
                    raise

                # 指数退避
                delay = self.base_delay * (2 ** attempt)

                self.logger.warning(
                    f"尝试 {attempt + 1}/{self.max_retries + 1} 失败: {type(e).__name__}: {str(e)}，"
                    f"{delay:.1f}秒后重试"
                )

                time.sleep(delay)

    def _is_retryable_error(self, error: Exception) -> bool:
        """
        判断上游调用错误是否可重试

        Args:
            error: 异常对象

        Returns:
            bool: 是否可重试
        """
        if isinstance(error, requests.HTTPError):
            status = self._status_of(error)
            return status in self.retryable_status_codes

        return any(isinstance(error, retryable) for retryable in self.retryable_errors)

    @staticmethod
    def _status_of(error: Exception) -> Optional[int]:
        response = getattr(error, 'response', None)
        return getattr(response, 'status_code', None) if response is not None else None

    def describe_connection_error(self, host: str, port: int, error: Exception) -> str:
        """
        将证书获取过程中的网络/TLS异常转换为问题描述

        Args:
            host: 目标主机
            port: 目标端口
            error: 异常对象

        Returns:
            str: 问题描述
        """
        if isinstance(error, socket.timeout):
            return "Connection timed out"
        if isinstance(error, socket.gaierror):
            detail = f"DNS lookup failed for {host} ({error})"
        elif isinstance(error, ConnectionRefusedError):
            detail = f"connection refused by {host}:{port}"
        elif isinstance(error, ConnectionResetError):
            detail = f"connection reset by {host}:{port}"
        elif isinstance(error, ssl.SSLError):
            detail = getattr(error, 'reason', None) or str(error)
        else:
            detail = str(error) or type(error).__name__

        self.logger.debug(f"{host}:{port} 连接失败: {type(error).__name__}: {error}")
        return f"SSL connection error: {detail}"

    def describe_api_error(self, prefix: str, error: Exception) -> Tuple[str, int]:
        """
        将第三方API调用异常转换为用户可读的错误信息

        Args:
            prefix: 错误信息前缀（如 "Unable to check URL with VirusTotal. "）
            error: 异常对象

        Returns:
            Tuple[str, int]: (错误信息, HTTP状态码)
        """
        status = self._status_of(error)

        if status == 429:
            reason = "Rate limit exceeded. Please try again in a few minutes."
        elif isinstance(error, (requests.ConnectionError, requests.Timeout)):
            reason = "Connection failed. Please check your internet connection."
        else:
            reason = "An unexpected error occurred."

        return prefix + reason, status or 500
