"""
检查历史存储服务
"""
import logging
import uuid
from collections import deque
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError, BotoCoreError

from ..interfaces import HistoryStoreInterface
from ..models import PhoneCheck, UrlCheck


URL_CHECK_TYPE = 'url'
PHONE_CHECK_TYPE = 'phone'


class InMemoryHistoryStore(HistoryStoreInterface):
    """
    进程内历史存储

    每种检查类型各保留最近 max_records 条记录，超出时丢弃最旧的记录。
    """

    def __init__(self, max_records: int = 100):
        self.max_records = max_records
        self.logger = logging.getLogger(__name__)
        self._records = {
            URL_CHECK_TYPE: deque(maxlen=max_records),
            PHONE_CHECK_TYPE: deque(maxlen=max_records),
        }

    def add_url_check(self, check: UrlCheck) -> UrlCheck:
        return self._add(URL_CHECK_TYPE, check)

    def get_recent_url_checks(self, limit: int) -> List[UrlCheck]:
        return self._recent(URL_CHECK_TYPE, limit)

    def add_phone_check(self, check: PhoneCheck) -> PhoneCheck:
        return self._add(PHONE_CHECK_TYPE, check)

    def get_recent_phone_checks(self, limit: int) -> List[PhoneCheck]:
        return self._recent(PHONE_CHECK_TYPE, limit)

    def health_check(self) -> bool:
        return True

    def _add(self, check_type: str, check):
        check.validate()
        if check.id is None:
            check.id = uuid.uuid4().hex
        self._records[check_type].append(check)
        self.logger.debug(f"保存 {check_type} 检查记录: {check.id}")
        return check

    def _recent(self, check_type: str, limit: int) -> list:
        if limit <= 0:
            return []
        records = list(self._records[check_type])
        records.reverse()
        return records[:limit]


class DynamoDBHistoryStore(HistoryStoreInterface):
    """DynamoDB 历史存储实现"""

    def __init__(self, table_name: str, region_name: Optional[str] = None, dynamodb_resource=None):
        """
        初始化DynamoDB历史存储

        表结构：分区键 check_type (S)，排序键 sort_key (S，时间戳#记录ID)

        Args:
            table_name: 表名
            region_name: AWS区域名称
            dynamodb_resource: 已创建的 boto3 DynamoDB resource
        """
        self.table_name = table_name
        self.region_name = region_name or 'us-east-1'
        self.logger = logging.getLogger(__name__)

        resource = dynamodb_resource or boto3.resource('dynamodb', region_name=self.region_name)
        self.table = resource.Table(table_name)
        self.logger.info(f"DynamoDB历史存储初始化成功，表: {table_name}, 区域: {self.region_name}")

    def add_url_check(self, check: UrlCheck) -> UrlCheck:
        check.validate()
        check.id = check.id or uuid.uuid4().hex
        self._put(URL_CHECK_TYPE, check, {
            'url': check.url,
            'is_safe': check.is_safe,
            'result': check.result,
        })
        return check

    def get_recent_url_checks(self, limit: int) -> List[UrlCheck]:
        return [
            UrlCheck(
                id=item['id'],
                url=item['url'],
                is_safe=bool(item['is_safe']),
                result=item['result'],
                checked_at=datetime.fromisoformat(item['checked_at']),
            )
            for item in self._query(URL_CHECK_TYPE, limit)
        ]

    def add_phone_check(self, check: PhoneCheck) -> PhoneCheck:
        check.validate()
        check.id = check.id or uuid.uuid4().hex
        self._put(PHONE_CHECK_TYPE, check, {
            'phone_number': check.phone_number,
            'is_safe': check.is_safe,
            'country': check.country,
            'carrier': check.carrier,
            'line_type': check.line_type,
            'risk_score': check.risk_score,
            'details': check.details,
        })
        return check

    def get_recent_phone_checks(self, limit: int) -> List[PhoneCheck]:
        return [
            PhoneCheck(
                id=item['id'],
                phone_number=item['phone_number'],
                is_safe=bool(item['is_safe']),
                country=item.get('country'),
                carrier=item.get('carrier'),
                line_type=item.get('line_type'),
                risk_score=_from_dynamo(item.get('risk_score')),
                details=_from_dynamo(item.get('details')),
                checked_at=datetime.fromisoformat(item['checked_at']),
            )
            for item in self._query(PHONE_CHECK_TYPE, limit)
        ]

    def health_check(self) -> bool:
        """
        检查表是否可访问

        Returns:
            bool: 表状态为 ACTIVE 时返回 True
        """
        try:
            status = self.table.table_status
            return status == 'ACTIVE'
        except (ClientError, BotoCoreError) as e:
            self.logger.error(f"DynamoDB表 {self.table_name} 不可用: {str(e)}")
            return False

    def _put(self, check_type: str, check, attributes: Dict[str, Any]):
        checked_at = check.checked_at.isoformat()
        item = {
            'check_type': check_type,
            'sort_key': f"{checked_at}#{check.id}",
            'id': check.id,
            'checked_at': checked_at,
        }
        item.update(attributes)

        self.table.put_item(Item=item)
        self.logger.debug(f"保存 {check_type} 检查记录: {check.id}")

    def _query(self, check_type: str, limit: int) -> List[Dict[str, Any]]:
        if limit <= 0:
            return []
        response = self.table.query(
            KeyConditionExpression=Key('check_type').eq(check_type),
            ScanIndexForward=False,
            Limit=limit,
        )
        return response.get('Items', [])


def _from_dynamo(value):
    """DynamoDB 返回的数字是 Decimal，转换回 int/float"""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    return value
