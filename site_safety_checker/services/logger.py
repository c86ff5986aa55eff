"""
日志服务
"""
import os
import logging
import traceback
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from ..interfaces import LoggerServiceInterface
from ..models import PhoneLookup, ValidationResult


class LoggerService(LoggerServiceInterface):
    """日志服务实现"""

    def __init__(self, logger_name: str = "site_safety_checker", log_level: Optional[str] = None):
        """
        初始化日志服务

        Args:
            logger_name: 日志器名称
            log_level: 日志级别，如果为None则从环境变量读取
        """
        self.logger_name = logger_name
        self.log_level = log_level or os.getenv('LOG_LEVEL', 'INFO')

        # 配置日志器
        self.logger = logging.getLogger(logger_name)
        self._configure_logger()

        # 执行统计
        self.execution_stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            'start_time': None,
            'total_checks': 0,
            'url_checks': 0,
            'phone_checks': 0,
            'safe_results': 0,
            'unsafe_results': 0,
            'ssl_issue_results': 0,
            'errors': []
        }

    def _configure_logger(self):
        """配置日志器"""
        level = getattr(logging, self.log_level.upper(), logging.INFO)
        self.logger.setLevel(level)

        # 避免重复添加处理器
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(level)

            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            handler.setFormatter(formatter)

            self.logger.addHandler(handler)

        # 防止日志传播到根日志器
        self.logger.propagate = False

    def log_check_start(self, check_type: str, target: str):
        """
        记录检查开始

        Args:
            check_type: 检查类型（url / phone）
            target: 检查目标
        """
        if self.execution_stats['start_time'] is None:
            self.execution_stats['start_time'] = datetime.now(timezone.utc)

        self.execution_stats['total_checks'] += 1
        self.execution_stats[f'{check_type}_checks'] += 1

        self.logger.info(f"开始 {check_type} 检查: {target}")

    def log_url_result(self, url: str, is_safe: bool, ssl_result: ValidationResult = None):
        """
        记录URL检查结果

        Args:
            url: URL
            is_safe: 信誉服务是否判定安全
            ssl_result: 证书检查结果（仅HTTPS）
        """
        self._count_verdict(is_safe)

        if ssl_result is not None and not ssl_result.is_valid:
            self.execution_stats['ssl_issue_results'] += 1
            self.logger.warning(
                f"证书存在问题 - URL: {url}, 问题: {'; '.join(ssl_result.issues)}"
            )

        if is_safe:
            self.logger.info(f"URL检查完成 - URL: {url}, 结果: 安全")
        else:
            self.logger.warning(f"URL检查完成 - URL: {url}, 结果: 不安全")

    def log_phone_result(self, lookup: PhoneLookup):
        """
        记录电话号码检查结果

        Args:
            lookup: 号码查询结果
        """
        self._count_verdict(lookup.is_safe)

        message = (
            f"号码检查完成 - 号码: {lookup.phone_number}, "
            f"国家: {lookup.country}, 类型: {lookup.line_type}, "
            f"风险分: {lookup.risk_score}"
        )
        if lookup.is_safe:
            self.logger.info(message)
        else:
            self.logger.warning(message)

    def _count_verdict(self, is_safe: bool):
        if is_safe:
            self.execution_stats['safe_results'] += 1
        else:
            self.execution_stats['unsafe_results'] += 1

    def log_error(self, target: str, error: Exception):
        """
        记录错误信息

        Args:
            target: 检查目标
            error: 异常对象
        """
        error_info = {
            'target': target,
            'error_type': type(error).__name__,
            'error_message': str(error),
            'timestamp': datetime.now(timezone.utc).isoformat()
        }

        self.execution_stats['errors'].append(error_info)

        self.logger.error(
            f"{target} 检查时发生错误: {type(error).__name__}: {str(error)}"
        )

        # 记录详细的堆栈跟踪（调试级别）
        self.logger.debug(f"{target} 错误堆栈跟踪:\n{traceback.format_exc()}")

    def log_configuration_info(self, config: Dict[str, Any]):
        """
        记录配置信息

        Args:
            config: 配置信息字典
        """
        safe_config = self._sanitize_config(config)

        self.logger.info("系统配置信息:")
        for key, value in safe_config.items():
            self.logger.info(f"  {key}: {value}")

    def _sanitize_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        清理配置信息中的敏感数据

        Args:
            config: 原始配置

        Returns:
            Dict[str, Any]: 清理后的配置
        """
        safe_config = {}
        for key, value in config.items():
            key_lower = key.lower()

            is_sensitive = (
                key_lower in {'password', 'secret', 'token', 'key', 'api_key'} or
                key_lower.endswith('_key') or
                key_lower.endswith('_secret') or
                key_lower.endswith('_password') or
                key_lower.endswith('_token')
            )

            if is_sensitive and isinstance(value, str) and value:
                # 只显示前几个字符
                safe_config[key] = value[:3] + "***" if len(value) > 3 else "***"
            else:
                safe_config[key] = value

        return safe_config

    def get_execution_summary(self) -> Dict[str, Any]:
        """
        获取执行摘要

        Returns:
            Dict[str, Any]: 执行摘要信息
        """
        stats = self.execution_stats
        completed = stats['safe_results'] + stats['unsafe_results']

        return {
            'start_time': stats['start_time'].isoformat() if stats['start_time'] else None,
            'total_checks': stats['total_checks'],
            'url_checks': stats['url_checks'],
            'phone_checks': stats['phone_checks'],
            'safe_results': stats['safe_results'],
            'unsafe_results': stats['unsafe_results'],
            'ssl_issue_results': stats['ssl_issue_results'],
            'success_rate': completed / stats['total_checks'] if stats['total_checks'] > 0 else 0,
            'error_count': len(stats['errors']),
            'errors': stats['errors']
        }

    def reset_stats(self):
        """重置执行统计"""
        self.execution_stats = self._empty_stats()
