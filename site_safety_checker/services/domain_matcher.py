"""
证书名称与主机名匹配
"""


def matches_domain(hostname: str, cert_name: str) -> bool:
    """
    判断证书中的名称是否匹配请求的主机名（支持通配符）

    通配符只做后缀匹配：要求主机名以基础域名结尾，且后缀之前至少还有一个点。
    不限制通配符只覆盖一级标签，a.b.example.com 同样匹配 *.example.com。

    Args:
        hostname: 请求的主机名
        cert_name: 证书CN或SAN中的名称

    Returns:
        bool: 是否匹配
    """
    if not hostname or not cert_name:
        return False

    hostname = hostname.lower()
    cert_name = cert_name.lower()

    if hostname == cert_name:
        return True

    if cert_name.startswith('*.'):
        base_domain = cert_name[2:]
        if not base_domain or not hostname.endswith(base_domain):
            return False
        return '.' in hostname[:-len(base_domain)]

    return False
