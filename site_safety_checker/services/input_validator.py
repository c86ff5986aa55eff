"""
请求参数校验服务
"""
import re
import logging


class InputValidator:
    """URL与电话号码格式校验"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

        # URL格式验证正则表达式
        self.url_pattern = re.compile(
            r'^(http|https)://[a-zA-Z0-9\-_.]+\.[a-zA-Z]{2,}(/.*)?$'
        )

        self.min_phone_digits = 10

    def validate_url(self, url: str) -> bool:
        """
        验证URL格式

        Args:
            url: 要验证的URL

        Returns:
            bool: URL是否有效
        """
        if not url or not isinstance(url, str):
            return False

        if len(url) > 2048:
            self.logger.warning(f"URL过长: {len(url)} 个字符")
            return False

        return bool(self.url_pattern.fullmatch(url))

    def validate_phone_number(self, phone_number: str) -> bool:
        """
        验证电话号码格式（至少10位数字）

        Args:
            phone_number: 要验证的电话号码

        Returns:
            bool: 电话号码是否有效
        """
        if not phone_number or not isinstance(phone_number, str):
            return False

        return len(self.digits_only(phone_number)) >= self.min_phone_digits

    @staticmethod
    def digits_only(value: str) -> str:
        return re.sub(r'\D', '', value)

    def normalize_phone_number(self, phone_number: str) -> str:
        """
        将电话号码转换为E.164格式

        以 + 开头的号码保持原样；11位且以0开头按尼日利亚号码处理；
        10位且不以0开头按美国/加拿大号码处理；其他情况直接加 +。

        Args:
            phone_number: 原始电话号码

        Returns:
            str: 格式化后的号码
        """
        if phone_number.startswith('+'):
            return phone_number

        cleaned = self.digits_only(phone_number)

        if cleaned.startswith('0') and len(cleaned) == 11:
            return f"+234{cleaned[1:]}"
        if len(cleaned) == 10 and not cleaned.startswith('0'):
            return f"+1{cleaned}"
        return f"+{cleaned}"
