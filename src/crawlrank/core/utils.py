import re
from typing import Optional
from urllib.parse import unquote, urldefrag, urljoin, urlsplit, urlunsplit

MAX_URL_LENGTH = 2083

DEFAULT_PORTS = {"http": 80, "https": 443}

INDEX_FILENAMES = {
    "index.html",
    "index.htm",
    "index.php",
    "index.asp",
    "index.aspx",
    "index.shtml",
    "index.jsp",
    "default.asp",
    "default.aspx",
}

HTML_EXTENSIONS = {
    "html", "php", "asp", "aspx", "htm", "xhtml", "stm", "phtml", "php3",
    "php4", "php5", "phps", "xht", "adp", "bml", "cfm", "cgi", "ihtml", "jsp",
    "las", "lasso", "pl", "rna", "r", "rnx", "shtml",
}  # fmt: skip

VCS_HOST_PREFIXES = ("git.", "svn.", "hg.")

# Anything outside Latin-1 and Cyrillic
_ALIEN_CHAR_RE = re.compile(r"[^\x00-\xffа-яА-ЯёЁ]")
_DUP_SLASHES_RE = re.compile(r"/{2,}")


def _host_to_unicode(host: str) -> str:
    if "xn--" not in host:
        return host
    try:
        return host.encode("ascii").decode("idna")
    except UnicodeError:
        return host


def normalize_url(base: str, link: str | None) -> Optional[str]:
    """Resolve `link` against `base` and reduce it to its canonical form.

    Query and fragment are dropped, the host is lowercased, converted from
    punycode and stripped of "www.", default ports, duplicate slashes,
    default index documents and the trailing slash are removed. Returns
    None for anything that is not an absolute http(s) URL.
    """
    if not link:
        return None
    link = link.strip()
    if link.startswith("//"):
        link = "http:" + link
    href = urljoin(base, link) if base else link
    href, _ = urldefrag(href)
    if not href.lower().startswith(("http://", "https://")):
        return None
    if len(href) > MAX_URL_LENGTH:
        return None

    parts = urlsplit(href)
    try:
        port = parts.port
    except ValueError:
        return None
    scheme = parts.scheme.lower()
    host = _host_to_unicode(parts.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    if not host:
        return None
    if port and DEFAULT_PORTS.get(scheme) != port:
        host = f"{host}:{port}"

    path = _DUP_SLASHES_RE.sub("/", parts.path)
    head, _, tail = path.rpartition("/")
    if tail.lower() in INDEX_FILENAMES:
        path = head + "/"

    normalized = urlunsplit((scheme, host, path, "", ""))
    if normalized.endswith("/"):
        normalized = normalized[:-1]
    if len(normalized) > MAX_URL_LENGTH:
        return None
    return normalized


def url_key(url: str) -> str:
    """Identity of a normalized URL: case-insensitive, like the page table."""
    return url.lower()


def get_domain(url: str) -> str:
    """Host (with non-default port) of a normalized URL."""
    return urlsplit(url).netloc


def url_path(url: str) -> str:
    return urlsplit(url).path or "/"


def guess_relevant(url: str, loose: bool = False) -> bool:
    """Cheap guess whether `url` can lead to an HTML page worth crawling."""
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https"):
        return False
    if loose:
        return True

    path = parts.path
    if len(_ALIEN_CHAR_RE.findall(unquote(path))) > 2:
        return False

    if (parts.hostname or "").startswith(VCS_HOST_PREFIXES):
        return False

    last = path.rsplit("/", 1)[-1]
    i = last.rfind(".")
    # No extension or too long to be one
    if i == -1 or len(last) - i > 6:
        return True
    return last[i + 1 :].lower() in HTML_EXTENSIONS
