"""
配置验证服务
"""
import os
import re
from typing import Dict, Any
import logging


class ConfigValidator:
    """配置验证器"""

    def __init__(self):
        """初始化配置验证器"""
        self.logger = logging.getLogger(__name__)

        # 必需的环境变量（任选其一即可的写成元组）
        self.required_env_vars = {
            ('VIRUSTOTAL_API_KEY', 'VirusTotal_API'): 'VirusTotal API密钥',
            ('ABSTRACT_API',): 'AbstractAPI 电话校验密钥',
        }

        # 可选的环境变量
        self.optional_env_vars = {
            'HISTORY_TABLE_NAME': 'DynamoDB历史记录表名',
            'HISTORY_LIMIT': '返回的历史记录条数',
            'SSL_TIMEOUT': '证书检查超时时间（秒）',
            'LOG_LEVEL': '日志级别',
        }

    def validate_all_configurations(self) -> Dict[str, Any]:
        """
        验证所有配置

        Returns:
            Dict[str, Any]: 验证结果
        """
        validation_result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'configurations': {}
        }

        for name, validate in (
                ('environment', self.validate_environment_variables),
                ('history', self.validate_history_configuration),
                ('timeouts', self.validate_timeout_configuration)):
            section = validate()
            validation_result['configurations'][name] = section

            if not section['is_valid']:
                validation_result['is_valid'] = False
                validation_result['errors'].extend(section['errors'])

            validation_result['warnings'].extend(section['warnings'])

        return validation_result

    def validate_environment_variables(self) -> Dict[str, Any]:
        """
        验证环境变量

        Returns:
            Dict[str, Any]: 环境变量验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'missing_required': [],
            'present_vars': {}
        }

        for var_names, description in self.required_env_vars.items():
            present = [name for name in var_names if os.getenv(name)]
            if not present:
                result['missing_required'].append({
                    'name': var_names[0],
                    'description': description
                })
                result['errors'].append(f"缺少必需的环境变量: {' / '.join(var_names)} ({description})")
                result['is_valid'] = False
            else:
                name = present[0]
                result['present_vars'][name] = self._sanitize_env_value(os.getenv(name))

        for var_name, description in self.optional_env_vars.items():
            value = os.getenv(var_name)
            if not value:
                result['warnings'].append(f"缺少可选的环境变量: {var_name} ({description})")
            else:
                result['present_vars'][var_name] = value

        return result

    def validate_history_configuration(self) -> Dict[str, Any]:
        """
        验证历史记录配置

        Returns:
            Dict[str, Any]: 历史记录配置验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'backend': 'memory',
            'history_limit': None
        }

        table_name = os.getenv('HISTORY_TABLE_NAME')
        if table_name:
            result['backend'] = 'dynamodb'
            # DynamoDB 表名规则：3-255 个字符，字母数字及 _ - .
            if not re.match(r'^[a-zA-Z0-9_.-]{3,255}$', table_name):
                result['is_valid'] = False
                result['errors'].append(f"DynamoDB表名格式无效: {table_name}")
        else:
            result['warnings'].append("HISTORY_TABLE_NAME未设置，历史记录仅保存在进程内存中")

        limit = os.getenv('HISTORY_LIMIT')
        if limit:
            try:
                history_limit = int(limit)
                result['history_limit'] = history_limit
                if not 1 <= history_limit <= 100:
                    result['is_valid'] = False
                    result['errors'].append(f"HISTORY_LIMIT 超出范围(1-100): {history_limit}")
            except ValueError:
                result['is_valid'] = False
                result['errors'].append(f"HISTORY_LIMIT 格式无效: {limit}")

        return result

    def validate_timeout_configuration(self) -> Dict[str, Any]:
        """
        验证超时配置

        Returns:
            Dict[str, Any]: 超时配置验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'timeouts': {}
        }

        for var_name in ('SSL_TIMEOUT', 'HTTP_TIMEOUT'):
            value = os.getenv(var_name)
            if not value:
                continue
            try:
                seconds = float(value)
            except ValueError:
                result['is_valid'] = False
                result['errors'].append(f"{var_name} 格式无效: {value}")
                continue

            result['timeouts'][var_name] = seconds
            if seconds <= 0:
                result['is_valid'] = False
                result['errors'].append(f"{var_name} 必须大于0: {seconds}")
            elif seconds > 30:
                result['warnings'].append(f"{var_name} 过长: {seconds}秒，可能拖慢请求")

        return result

    def _sanitize_env_value(self, value: str) -> str:
        """
        清理密钥类环境变量值（隐藏敏感信息）

        Args:
            value: 变量值

        Returns:
            str: 清理后的值
        """
        return value[:4] + "***" if len(value) > 8 else "***"

    def get_configuration_summary(self) -> str:
        """
        获取配置摘要

        Returns:
            str: 配置摘要文本
        """
        validation_result = self.validate_all_configurations()

        lines = [
            "配置验证摘要",
            "=" * 30
        ]

        if validation_result['is_valid']:
            lines.append("✅ 配置验证通过")
        else:
            lines.append("❌ 配置验证失败")

        if validation_result['errors']:
            lines.append("\n错误:")
            for error in validation_result['errors']:
                lines.append(f"  • {error}")

        if validation_result['warnings']:
            lines.append("\n警告:")
            for warning in validation_result['warnings']:
                lines.append(f"  • {warning}")

        env_config = validation_result['configurations'].get('environment', {})
        if env_config.get('present_vars'):
            lines.append("\n环境变量:")
            for var_name, var_value in env_config['present_vars'].items():
                lines.append(f"  {var_name}: {var_value}")

        history_config = validation_result['configurations'].get('history', {})
        lines.append(f"\n历史记录存储: {history_config.get('backend', 'memory')}")

        return "\n".join(lines)
