"""
数据模型定义
"""
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any


URL_RECORD_PATTERN = re.compile(r'^https?://[^\s/?#]+[^\s]*$', re.IGNORECASE)


class RecordValidationError(ValueError):
    """历史记录字段校验失败"""


@dataclass
class CertificateInfo:
    """服务器出示的叶子证书信息"""
    valid_from: datetime
    valid_to: datetime
    subject_common_name: Optional[str]
    subject_alt_names: List[str] = field(default_factory=list)

    def is_within_validity(self, now: datetime) -> bool:
        """判断给定时间是否处于有效期内"""
        return self.valid_from <= now <= self.valid_to


@dataclass
class ValidationResult:
    """证书检查结果，issues 为空即有效"""
    issues: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues


@dataclass
class ReputationVerdict:
    """URL信誉扫描结论"""
    analysis_id: str
    malicious: int
    suspicious: int
    harmless: int = 0
    undetected: int = 0

    @property
    def is_safe(self) -> bool:
        return self.malicious == 0 and self.suspicious == 0

    @property
    def summary(self) -> str:
        if self.is_safe:
            return "No threats detected"
        return (
            f"Detected as malicious by {self.malicious} and suspicious by "
            f"{self.suspicious} security vendors"
        )


@dataclass
class PhoneLookup:
    """电话号码校验结果"""
    phone_number: str
    country: str
    carrier: str
    line_type: str
    risk_score: int
    details: Dict[str, Any]

    @property
    def is_safe(self) -> bool:
        """风险分低于50视为安全"""
        return self.risk_score < 50

    def to_dict(self) -> Dict[str, Any]:
        return {
            'phoneNumber': self.phone_number,
            'country': self.country,
            'carrier': self.carrier,
            'lineType': self.line_type,
            'riskScore': self.risk_score,
            'details': self.details,
        }


@dataclass
class UrlCheck:
    """URL检查历史记录"""
    url: str
    is_safe: bool
    result: str
    checked_at: datetime
    id: Optional[str] = None

    def validate(self):
        """
        校验记录字段

        Raises:
            RecordValidationError: 字段不合法
        """
        if not isinstance(self.url, str) or not URL_RECORD_PATTERN.fullmatch(self.url):
            raise RecordValidationError(f"url 必须是合法的绝对URL: {self.url!r}")
        if not isinstance(self.is_safe, bool):
            raise RecordValidationError("is_safe 必须是布尔值")
        if not isinstance(self.result, str):
            raise RecordValidationError("result 必须是字符串")
        if not isinstance(self.checked_at, datetime):
            raise RecordValidationError("checked_at 必须是时间")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'url': self.url,
            'isSafe': self.is_safe,
            'result': self.result,
            'checkedAt': self.checked_at.isoformat(),
        }


@dataclass
class PhoneCheck:
    """电话号码检查历史记录"""
    phone_number: str
    is_safe: bool
    checked_at: datetime
    country: Optional[str] = None
    carrier: Optional[str] = None
    line_type: Optional[str] = None
    risk_score: Optional[int] = None
    details: Optional[Dict[str, Any]] = None
    id: Optional[str] = None

    def validate(self):
        """
        校验记录字段

        Raises:
            RecordValidationError: 字段不合法
        """
        if not isinstance(self.phone_number, str) or not self.phone_number:
            raise RecordValidationError("phone_number 不能为空")
        if not isinstance(self.is_safe, bool):
            raise RecordValidationError("is_safe 必须是布尔值")
        for name in ('country', 'carrier', 'line_type'):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise RecordValidationError(f"{name} 必须是字符串或空")
        if self.risk_score is not None and (
                isinstance(self.risk_score, bool) or not isinstance(self.risk_score, (int, float))):
            raise RecordValidationError("risk_score 必须是数字或空")
        if self.details is not None and not isinstance(self.details, dict):
            raise RecordValidationError("details 必须是字典或空")
        if not isinstance(self.checked_at, datetime):
            raise RecordValidationError("checked_at 必须是时间")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'phoneNumber': self.phone_number,
            'isSafe': self.is_safe,
            'country': self.country,
            'carrier': self.carrier,
            'lineType': self.line_type,
            'riskScore': self.risk_score,
            'details': self.details,
            'checkedAt': self.checked_at.isoformat(),
        }
