import re
from dataclasses import dataclass

from fastapi import Request

_TABLET_RE = re.compile(r"ipad|tablet|kindle|silk|playbook|(android(?!.*mobile))", re.IGNORECASE)
_MOBILE_RE = re.compile(r"mobi|iphone|ipod|android.*mobile|windows phone|blackberry", re.IGNORECASE)

# Order matters: Edge and Opera also advertise Chrome, Chrome also advertises Safari.
_BROWSERS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Edge", re.compile(r"edg(e|a|ios)?/", re.IGNORECASE)),
    ("Opera", re.compile(r"opr/|opera", re.IGNORECASE)),
    ("Firefox", re.compile(r"firefox/|fxios/", re.IGNORECASE)),
    ("Chrome", re.compile(r"chrome/|crios/", re.IGNORECASE)),
    ("Safari", re.compile(r"safari/", re.IGNORECASE)),
)

_OPERATING_SYSTEMS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Windows", re.compile(r"windows", re.IGNORECASE)),
    ("iOS", re.compile(r"iphone|ipad|ipod", re.IGNORECASE)),
    ("Android", re.compile(r"android", re.IGNORECASE)),
    ("macOS", re.compile(r"mac os x|macintosh", re.IGNORECASE)),
    ("Linux", re.compile(r"linux", re.IGNORECASE)),
)


@dataclass(frozen=True)
class ClientInfo:
    device: str
    browser: str | None
    os: str | None
    ip: str | None
    referer: str | None


def detect_device(user_agent: str) -> str:
    if not user_agent:
        return "other"
    if _TABLET_RE.search(user_agent):
        return "tablet"
    if _MOBILE_RE.search(user_agent):
        return "mobile"
    return "desktop"


def _first_match(user_agent: str, patterns: tuple[tuple[str, re.Pattern[str]], ...]) -> str | None:
    if not user_agent:
        return None
    for name, pattern in patterns:
        if pattern.search(user_agent):
            return name
    return None


def client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for", "").strip()
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_client_info(request: Request) -> ClientInfo:
    user_agent = request.headers.get("user-agent", "")
    return ClientInfo(
        device=detect_device(user_agent),
        browser=_first_match(user_agent, _BROWSERS),
        os=_first_match(user_agent, _OPERATING_SYSTEMS),
        ip=client_ip(request),
        referer=request.headers.get("referer") or None,
    )
