# app/services/url_check_service.py
# 檢查使用者貼上的連結是否可以開啟 (不會連到內網)

import asyncio
import ipaddress
import logging
import socket
from typing import Optional, Union
from urllib.parse import urljoin, urlparse

import httpx

from app.core.config import settings
from app.schemas.utils_schema import UrlCheckOut

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

ALLOWED_SCHEMES = {"http", "https"}

# 這些狀態碼代表網址存在 (只是需要登入)
REACHABLE_STATUSES = {401, 403}

# HEAD 不支援時改用 GET
HEAD_UNSUPPORTED_STATUSES = {405, 501}

# 手動跟隨重新導向的上限，每一跳都重新檢查目標主機
MAX_REDIRECTS = 5


class BlockedRedirect(Exception):
    """重新導向指向不允許探測的位址"""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{reason}: {url}")
        self.url = url
        self.reason = reason


def is_blocked_ip(ip: IPAddress) -> bool:
    """
    私有、迴路、link-local、保留、多播或未指定位址都不允許探測
    """
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_multicast
        or ip.is_unspecified
    )


def _parse_ip(host: str) -> Optional[IPAddress]:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        return None


async def resolves_to_blocked_address(host: str) -> bool:
    """
    解析主機名稱，任何一個位址落在內網就擋下。
    DNS 失敗不算錯誤，交給後面的探測處理。
    """
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    except socket.gaierror as e:
        logger.info(f"DNS lookup failed for {host}: {e}")
        return False

    for info in infos:
        ip = _parse_ip(info[4][0].split("%", 1)[0])
        if ip is not None and is_blocked_ip(ip):
            return True
    return False


async def blocked_reason(url: str) -> Optional[str]:
    """
    檢查單一網址能不能探測。回傳擋下的原因，None 代表可以。
    初始網址與每一次重新導向的 Location 都走這裡。
    """
    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError:
        return "Invalid url"

    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not host:
        return "Invalid url"

    host = host.lower()
    if host == "localhost" or host.endswith(".localhost"):
        return "Blocked host"

    literal_ip = _parse_ip(host)
    if literal_ip is not None:
        if is_blocked_ip(literal_ip):
            return "Blocked host"
    elif await resolves_to_blocked_address(host):
        return "Blocked host"
    return None


async def probe_url(url: str) -> int:
    """
    HEAD 探測，伺服器不支援 HEAD 時再用 GET。回傳最後的狀態碼。

    不交給 httpx 自動跟隨重新導向: 公開網址可能 302 到內網，
    所以每一跳的目標都要先通過 blocked_reason。
    """
    async with httpx.AsyncClient(
        timeout=settings.URL_CHECK_TIMEOUT_SECONDS,
        follow_redirects=False,
    ) as client:
        for _ in range(MAX_REDIRECTS + 1):
            response = await client.head(url)
            if response.status_code in HEAD_UNSUPPORTED_STATUSES:
                response = await client.get(url)
            if not response.is_redirect:
                return response.status_code

            next_url = urljoin(str(response.url), response.headers["location"])
            reason = await blocked_reason(next_url)
            if reason is not None:
                raise BlockedRedirect(next_url, reason)
            url = next_url

        raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=response.request)


async def check_url(raw: Optional[str]) -> UrlCheckOut:
    url = (raw or "").strip()
    if not url:
        return UrlCheckOut(ok=False, reason="Missing url")

    reason = await blocked_reason(url)
    if reason is not None:
        return UrlCheckOut(ok=False, reason=reason)

    try:
        status_code = await probe_url(url)
    except BlockedRedirect as e:
        logger.warning(f"URL check for {url} redirected to blocked target {e.url}")
        return UrlCheckOut(ok=False, reason="Blocked host")
    except httpx.HTTPError as e:
        logger.warning(f"URL probe failed for {url}: {e.__class__.__name__}")
        return UrlCheckOut(ok=False, reason="Unreachable")

    if 200 <= status_code < 400 or status_code in REACHABLE_STATUSES:
        return UrlCheckOut(ok=True)
    return UrlCheckOut(ok=False, reason=f"HTTP {status_code}")
