"""
Robots.txt Handling

Parses the `User-agent: *` group of a robots.txt into disallow rules and an
optional crawl delay, and answers whether a path is disallowed.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from crawlrank.crawler.fetcher import Fetcher

logger = logging.getLogger(__name__)

_USER_AGENT_ANY_RE = re.compile(r"^[ \t]*user-agent[ \t]*:[ \t]*\*", re.M | re.I)
_USER_AGENT_RE = re.compile(r"^[ \t]*user-agent[ \t]*:", re.M | re.I)
_DISALLOW_RE = re.compile(r"^[ \t]*disallow[ \t]*:[ \t]*(/[^\r\n#]*)", re.M | re.I)
_CRAWL_DELAY_RE = re.compile(r"^[ \t]*crawl-delay[ \t]*:[ \t]*([\d.]+)", re.M | re.I)
_REGEX_SPECIAL_RE = re.compile(r"[.?+^\[\]\\(){}|-]")

Rule = Union[str, re.Pattern]


@dataclass
class RobotsRules:
    """Disallow rules (plain prefixes first, then patterns) and crawl delay."""

    rules: list[Rule] = field(default_factory=list)
    crawl_delay: float | None = None

    @classmethod
    def empty(cls) -> "RobotsRules":
        return cls()


def _compile_wildcard(path: str) -> re.Pattern:
    escaped = _REGEX_SPECIAL_RE.sub(lambda m: "\\" + m.group(0), path)
    return re.compile("^" + escaped.replace("*", ".*"))


def parse(content: str) -> RobotsRules:
    """Parse robots.txt content; only the first `User-agent: *` group counts."""
    start_match = _USER_AGENT_ANY_RE.search(content)
    if start_match is None:
        return RobotsRules.empty()

    end_match = _USER_AGENT_RE.search(content, start_match.end())
    useful = content[start_match.start() : end_match.start() if end_match else None]

    prefixes: list[str] = []
    patterns: list[re.Pattern] = []
    for match in _DISALLOW_RE.finditer(useful):
        path = match.group(1).strip()

        # Dynamic pages are never crawled
        if "?" in path:
            continue

        if path.endswith("*"):
            path = path[:-1]

        if "*" in path or "$" in path:
            patterns.append(_compile_wildcard(path))
        else:
            prefixes.append(path)

    prefixes.sort(key=len)
    rules: list[Rule] = [*prefixes, *patterns]

    crawl_delay = None
    delay_match = _CRAWL_DELAY_RE.search(useful)
    if delay_match:
        try:
            crawl_delay = float(delay_match.group(1))
        except ValueError:
            logger.debug(f"Ignoring malformed crawl-delay: {delay_match.group(1)}")

    return RobotsRules(rules=rules, crawl_delay=crawl_delay)


def is_disallowed(rules: list[Rule], path: str) -> bool:
    for rule in rules:
        if isinstance(rule, str):
            if path.startswith(rule):
                return True
        elif rule.match(path):
            return True
    return False


async def fetch_rules(fetcher: "Fetcher", base_url: str) -> RobotsRules:
    """Fetch and parse `<base_url>/robots.txt`; absence means no rules."""
    response = await fetcher.download(f"{base_url}/robots.txt")
    if response is None:
        logger.debug(f"No robots.txt for {base_url}")
        return RobotsRules.empty()
    rules = parse(response.text)
    logger.debug(
        f"robots.txt for {base_url}: {len(rules.rules)} rules, "
        f"crawl-delay={rules.crawl_delay}"
    )
    return rules
