"""
AWS Lambda函数入口点（API Gateway 代理集成）
"""
import base64
import json
from typing import Dict, Any, Optional, Tuple
from datetime import datetime, timezone

from .check_service import SafetyCheckService
from .interfaces import HistoryStoreInterface
from .services.certificate_evaluator import CertificateEvaluator
from .services.certificate_fetcher import CertificateFetcher
from .services.config import AppConfig
from .services.config_validator import ConfigValidator
from .services.error_handler import InvalidInputError, NetworkErrorHandler, SafetyCheckError
from .services.history_store import DynamoDBHistoryStore, InMemoryHistoryStore
from .services.logger import LoggerService
from .services.phone_validation import AbstractPhoneClient
from .services.reputation import VirusTotalClient


class SafetyCheckApp:
    """安全检查应用：显式组装所有服务并分发API请求"""

    def __init__(self, config: Optional[AppConfig] = None,
                 history_store: Optional[HistoryStoreInterface] = None):
        """
        初始化应用

        Args:
            config: 应用配置，为None时从环境变量读取
            history_store: 历史记录存储，为None时按配置创建
        """
        self.config = config or AppConfig.from_env()
        self.logger_service = LoggerService(log_level=self.config.log_level)
        self.error_handler = NetworkErrorHandler(max_retries=self.config.api_max_retries)
        self.history_store = history_store or self._create_history_store()

        reputation_service = None
        if self.config.virustotal_api_key:
            reputation_service = VirusTotalClient(
                self.config.virustotal_api_key,
                timeout=self.config.http_timeout,
                error_handler=self.error_handler,
            )

        phone_service = None
        if self.config.abstract_api_key:
            phone_service = AbstractPhoneClient(
                self.config.abstract_api_key,
                timeout=self.config.http_timeout,
                error_handler=self.error_handler,
            )

        self.check_service = SafetyCheckService(
            reputation_service=reputation_service,
            phone_service=phone_service,
            certificate_evaluator=CertificateEvaluator(
                CertificateFetcher(timeout=self.config.ssl_timeout, error_handler=self.error_handler)
            ),
            history_store=self.history_store,
            logger_service=self.logger_service,
            history_limit=self.config.history_limit,
            error_handler=self.error_handler,
        )

        self.routes = {
            ('POST', '/api/check-url'): (self._check_url, "Failed to check URL"),
            ('POST', '/api/check-phone'): (self._check_phone, "Failed to check phone number"),
            ('GET', '/api/url-history'): (self._url_history, "Failed to get URL history"),
            ('GET', '/api/phone-history'): (self._phone_history, "Failed to get phone history"),
            ('GET', '/api/health'): (self._health, "Failed to check system health"),
        }

        self.logger_service.log_configuration_info(self.config.to_log_dict())

    def _create_history_store(self) -> HistoryStoreInterface:
        if self.config.history_table_name:
            return DynamoDBHistoryStore(self.config.history_table_name, region_name=self.config.aws_region)
        return InMemoryHistoryStore()

    def handle(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """
        处理一次API Gateway请求

        Args:
            event: API Gateway 代理事件（REST API 或 HTTP API 格式）

        Returns:
            dict: 代理集成响应
        """
        method, path = self._parse_route(event)
        route = self.routes.get((method, path))

        if route is None:
            return build_response(404, {'message': f"Route not found: {method} {path}"})

        handler, failure_message = route
        try:
            return build_response(200, handler(event))

        except SafetyCheckError as e:
            return build_response(e.status_code, {'message': e.message})

        except Exception as e:
            self.logger_service.log_error(f"{method} {path}", e)
            return build_response(500, {'message': failure_message})

    @staticmethod
    def _parse_route(event: Dict[str, Any]) -> Tuple[str, str]:
        http_context = (event.get('requestContext') or {}).get('http') or {}
        method = event.get('httpMethod') or http_context.get('method') or 'GET'
        path = event.get('path') or event.get('rawPath') or '/'
        return method.upper(), path.rstrip('/') or '/'

    def _check_url(self, event: Dict[str, Any]) -> Dict[str, Any]:
        body = parse_json_body(event)
        return self.check_service.check_url(body.get('url'))

    def _check_phone(self, event: Dict[str, Any]) -> Dict[str, Any]:
        body = parse_json_body(event)
        return self.check_service.check_phone(body.get('phoneNumber'))

    def _url_history(self, event: Dict[str, Any]):
        return self.check_service.url_history()

    def _phone_history(self, event: Dict[str, Any]):
        return self.check_service.phone_history()

    def _health(self, event: Dict[str, Any]) -> Dict[str, Any]:
        return self.validate_system_health()

    def validate_system_health(self) -> dict:
        """
        验证系统健康状态

        Returns:
            dict: 系统健康状态信息
        """
        health_status = {
            'overall_healthy': True,
            'components': {},
            'issues': []
        }

        config_result = ConfigValidator().validate_all_configurations()
        health_status['components']['configuration'] = {
            'healthy': config_result['is_valid'],
            'details': {'errors': config_result['errors'], 'warnings': config_result['warnings']}
        }
        if not config_result['is_valid']:
            health_status['issues'].extend(config_result['errors'])
            health_status['overall_healthy'] = False

        for name, client in (('virustotal', self.check_service.reputation_service),
                             ('abstractapi', self.check_service.phone_service)):
            configured = client is not None
            health_status['components'][name] = {'healthy': configured}
            if not configured:
                health_status['issues'].append(f"{name} API密钥未配置")
                health_status['overall_healthy'] = False

        store_healthy = self.history_store.health_check()
        health_status['components']['history_store'] = {
            'healthy': store_healthy,
            'details': {'backend': type(self.history_store).__name__}
        }
        if not store_healthy:
            health_status['issues'].append("历史记录存储不可用")
            health_status['overall_healthy'] = False

        return health_status


def parse_json_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    解析请求体JSON

    Raises:
        InvalidInputError: 请求体不是JSON对象
    """
    body = event.get('body')
    if body is None or body == '':
        return {}

    if isinstance(body, dict):
        return body

    try:
        if event.get('isBase64Encoded'):
            body = base64.b64decode(body).decode('utf-8')
        parsed = json.loads(body)
    except (ValueError, TypeError) as e:
        raise InvalidInputError(f"Invalid JSON body: {e}") from e

    if not isinstance(parsed, dict):
        raise InvalidInputError("Request body must be a JSON object")
    return parsed


def build_response(status_code: int, body: Any) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(body, ensure_ascii=False, default=str),
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda函数入口点

    Args:
        event: API Gateway 代理事件
        context: Lambda运行时上下文

    Returns:
        dict: 代理集成响应
    """
    try:
        app = SafetyCheckApp()
        return app.handle(event)

    except Exception as e:
        # 配置错误等在应用组装阶段抛出的异常
        LoggerService().logger.error(f"Lambda函数执行时发生严重错误: {type(e).__name__}: {str(e)}")
        return build_response(500, {
            'message': 'Site safety checker encountered a critical error',
            'error': str(e),
            'timestamp': datetime.now(timezone.utc).isoformat()
        })
