"""
服务接口定义
"""
from abc import ABC, abstractmethod
from typing import List
from .models import (
    CertificateInfo,
    PhoneCheck,
    PhoneLookup,
    ReputationVerdict,
    UrlCheck,
    ValidationResult,
)


class CertificateFetcherInterface(ABC):
    """证书获取器接口"""

    @abstractmethod
    def fetch(self, url: str) -> CertificateInfo:
        """获取目标URL出示的叶子证书"""
        pass


class CertificateEvaluatorInterface(ABC):
    """证书评估器接口"""

    @abstractmethod
    def evaluate(self, url: str) -> ValidationResult:
        """评估目标URL的SSL证书"""
        pass


class ReputationServiceInterface(ABC):
    """URL信誉服务接口"""

    @abstractmethod
    def scan_url(self, url: str) -> ReputationVerdict:
        """提交URL并获取分析结论"""
        pass


class PhoneValidationServiceInterface(ABC):
    """电话号码校验服务接口"""

    @abstractmethod
    def lookup(self, phone_number: str) -> PhoneLookup:
        """查询电话号码信息"""
        pass


class HistoryStoreInterface(ABC):
    """检查历史存储接口"""

    @abstractmethod
    def add_url_check(self, check: UrlCheck) -> UrlCheck:
        """保存URL检查记录"""
        pass

    @abstractmethod
    def get_recent_url_checks(self, limit: int) -> List[UrlCheck]:
        """获取最近的URL检查记录（新的在前）"""
        pass

    @abstractmethod
    def add_phone_check(self, check: PhoneCheck) -> PhoneCheck:
        """保存电话号码检查记录"""
        pass

    @abstractmethod
    def get_recent_phone_checks(self, limit: int) -> List[PhoneCheck]:
        """获取最近的电话号码检查记录（新的在前）"""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """检查存储是否可用"""
        pass


class LoggerServiceInterface(ABC):
    """日志服务接口"""

    @abstractmethod
    def log_check_start(self, check_type: str, target: str):
        """记录检查开始"""
        pass

    @abstractmethod
    def log_url_result(self, url: str, is_safe: bool, ssl_result: ValidationResult = None):
        """记录URL检查结果"""
        pass

    @abstractmethod
    def log_error(self, target: str, error: Exception):
        """记录错误信息"""
        pass
