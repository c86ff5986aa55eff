"""
运行配置
"""
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional


DEFAULT_HISTORY_LIMIT = 10
DEFAULT_SSL_TIMEOUT = 5.0
DEFAULT_HTTP_TIMEOUT = 15.0
DEFAULT_API_MAX_RETRIES = 2


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


@dataclass
class AppConfig:
    """应用配置，由调用方显式创建并传入各服务"""
    virustotal_api_key: Optional[str] = None
    abstract_api_key: Optional[str] = None
    history_limit: int = DEFAULT_HISTORY_LIMIT
    history_table_name: Optional[str] = None
    aws_region: str = 'us-east-1'
    ssl_timeout: float = DEFAULT_SSL_TIMEOUT
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    api_max_retries: int = DEFAULT_API_MAX_RETRIES
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """
        从环境变量读取配置

        Returns:
            AppConfig: 配置对象

        Raises:
            ValueError: 数值类型的环境变量格式无效
        """
        return cls(
            virustotal_api_key=os.getenv('VIRUSTOTAL_API_KEY') or os.getenv('VirusTotal_API'),
            abstract_api_key=os.getenv('ABSTRACT_API'),
            history_limit=_get_int('HISTORY_LIMIT', DEFAULT_HISTORY_LIMIT),
            history_table_name=os.getenv('HISTORY_TABLE_NAME') or None,
            aws_region=os.getenv('AWS_REGION', 'us-east-1'),
            ssl_timeout=_get_float('SSL_TIMEOUT', DEFAULT_SSL_TIMEOUT),
            http_timeout=_get_float('HTTP_TIMEOUT', DEFAULT_HTTP_TIMEOUT),
            api_max_retries=_get_int('API_MAX_RETRIES', DEFAULT_API_MAX_RETRIES),
            log_level=os.getenv('LOG_LEVEL', 'INFO'),
        )

    def to_log_dict(self) -> Dict[str, Any]:
        """用于记录日志的配置字典（密钥由日志服务脱敏）"""
        return {
            'virustotal_api_key': self.virustotal_api_key or '',
            'abstract_api_key': self.abstract_api_key or '',
            'history_limit': self.history_limit,
            'history_backend': 'dynamodb' if self.history_table_name else 'memory',
            'history_table_name': self.history_table_name or '',
            'aws_region': self.aws_region,
            'ssl_timeout': self.ssl_timeout,
            'http_timeout': self.http_timeout,
            'api_max_retries': self.api_max_retries,
            'log_level': self.log_level,
        }
